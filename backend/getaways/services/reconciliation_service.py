"""
Session Verifier / Reconciler.

Matches a completed checkout session to exactly one booking and applies the
payment to it exactly once.

FLOW
====

  1. Validate      the session must exist and be paid
  2. Resolve       token flow    -> the token's booking (token consumed)
                   metadata flow -> metadata.bookingId, else the booking this
                                    session created, else synthesize one
  3. Apply         ledger row + amount_paid += paid, status=Confirmed
  4. Notify        client receipt and finance alert, bounded, best effort

Steps 2 and 3 commit in ONE transaction; step 4 runs only after that commit
and only if something was applied.

IDEMPOTENCY
===========

Checkout sessions are delivered at least once: the customer's redirect can
fire twice, and the provider webhook races the redirect. Three guards:

  - token.used_at       a consumed token short-circuits to "Already processed"
  - ledger              payment_transactions.stripe_session_id is UNIQUE; a
                        session already in the ledger is never re-applied
  - source_session_id   bookings.source_session_id is UNIQUE, so two racing
                        requests cannot both synthesize a booking

The racing loser hits an IntegrityError at commit, rolls back, sees the
winner's ledger row and reports "Already processed". A per-session Redis
claim (claim_service) keeps that path rare across workers.
"""

import enum
import time
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import AsyncContextManager, Callable, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from fastapi import HTTPException, status

from getaways.core.config import ReconciliationConfig
from getaways.core.logging import get_logger
from getaways.core.metrics import bookings_synthesized, reconciliation_latency, record_reconciliation
from getaways.core.timeutils import parse_iso, utcnow
from getaways.models.booking import Booking, BookingStatus, PaymentStatus, new_booking_id
from getaways.models.payment_token import PaymentToken
from getaways.models.payment_transaction import PaymentMethod, PaymentTransaction, TransactionStatus
from getaways.services.claim_service import session_claim
from getaways.services.interfaces.payment_gateway import (
    CheckoutSession,
    InvalidCheckoutSession,
    PaymentGateway,
    PaymentGatewayConfigError,
    PaymentGatewayError,
)
from getaways.services.notification_service import NotificationService

logger = get_logger(__name__)

ALREADY_PROCESSED = "Already processed"
DEFAULT_GUESTS = 2


class SourceKind(str, enum.Enum):
    TOKEN = "token"
    METADATA = "metadata"


@dataclass
class BookingSource:
    """The booking a session pays for, and how it was found."""

    kind: SourceKind
    booking: Booking
    token: Optional[PaymentToken] = None
    synthesized: bool = False


@dataclass
class ReconciliationResult:
    applied: bool
    booking_id: Optional[str] = None
    synthesized: bool = False
    booking: Optional[Booking] = None

    def as_response(self) -> dict:
        if self.applied:
            return {"success": True}
        return {"success": True, "message": ALREADY_PROCESSED}


def _decimal(value: Optional[str]) -> Optional[Decimal]:
    if value is None or str(value).strip() == "":
        return None
    try:
        parsed = Decimal(str(value).strip())
    except InvalidOperation:
        return None
    return parsed if parsed.is_finite() else None


def classify_payment(amount: Decimal, deposit_amount: Optional[str], tolerance: Decimal) -> PaymentStatus:
    """A payment within `tolerance` of the quoted deposit is a deposit; anything else pays in full."""
    deposit = _decimal(deposit_amount)
    if deposit is not None and abs(amount - deposit) <= tolerance:
        return PaymentStatus.DEPOSIT_PAID
    return PaymentStatus.FULLY_PAID


def parse_guests(value: Optional[str]) -> int:
    parsed = _decimal(value)
    if parsed is None or parsed < 1:
        return DEFAULT_GUESTS
    return int(parsed)


def flow_label(token: Optional[str], session: Optional[CheckoutSession] = None) -> str:
    """Metrics label: a token presented by the caller or carried in the session metadata means the token flow."""
    if token or (session is not None and session.metadata.get("tokenId")):
        return SourceKind.TOKEN.value
    return SourceKind.METADATA.value


def booking_creation_failed(details: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "Failed to create booking", "details": details},
    )


class PaymentReconciler:
    def __init__(
        self,
        db: AsyncSession,
        gateway: PaymentGateway,
        notifier: NotificationService,
        config: ReconciliationConfig,
        claim: Callable[[str], AsyncContextManager[bool]] = session_claim,
    ):
        self.db = db
        self.gateway = gateway
        self.notifier = notifier
        self.config = config
        self.claim = claim

    # ----- entry points -----

    async def verify_session(self, session_id: Optional[str], token: Optional[str] = None) -> dict:
        """Customer returned from checkout. Raises HTTPException with the client-facing error."""
        if not session_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing sessionId")

        flow = flow_label(token)
        started = time.perf_counter()
        try:
            session = await self._retrieve(session_id)
            flow = flow_label(token, session)
            if not session.is_paid:
                logger.info("verify_session_unpaid", session_id=session_id, payment_status=session.payment_status)
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Payment not completed")

            result = await self.reconcile(session, token=token)
        except HTTPException as e:
            record_reconciliation(flow, "rejected" if e.status_code < 500 else "error")
            raise
        except Exception:
            logger.exception("verify_session_failed", session_id=session_id)
            record_reconciliation(flow, "error")
            raise HTTPException(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Internal Server Error",
            )
        finally:
            reconciliation_latency.observe(time.perf_counter() - started)

        return result.as_response()

    async def reconcile(self, session: CheckoutSession, token: Optional[str] = None) -> ReconciliationResult:
        """
        Apply a paid session. Shared by the redirect verification and the webhook.
        Without an explicit token, a tokenId carried in the session metadata is honoured.
        """
        async with self.claim(session.id):
            result = await self._reconcile(session, token)

        record_reconciliation(flow_label(token, session), "applied" if result.applied else "already_processed")

        if result.applied:
            await self._send_notifications(result.booking, session)
        return result

    # ----- steps -----

    async def _retrieve(self, session_id: str) -> CheckoutSession:
        try:
            return await self.gateway.retrieve_session(session_id)
        except InvalidCheckoutSession:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid sessionId")
        except PaymentGatewayConfigError:
            logger.error("verify_session_gateway_not_configured")
            raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Payments are not configured")
        except PaymentGatewayError as e:
            logger.error("verify_session_gateway_error", session_id=session_id, error=str(e))
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Payment provider unavailable, please try again",
            )

    async def _reconcile(self, session: CheckoutSession, token: Optional[str]) -> ReconciliationResult:
        meta = session.metadata
        payment_token = None

        if token or meta.get("tokenId"):
            payment_token = await self._load_token(token, meta.get("tokenId"))
            if payment_token is None:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid token")
            if meta.get("bookingId") and meta["bookingId"] != payment_token.booking_id:
                logger.warning(
                    "verify_session_token_mismatch",
                    session_id=session.id,
                    token_booking_id=payment_token.booking_id,
                )
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid token")
            if meta.get("tokenId") and meta["tokenId"] != str(payment_token.id):
                # Session was started from another payment link
                logger.warning(
                    "verify_session_token_not_session_token",
                    session_id=session.id,
                    token_id=payment_token.id,
                    session_token_id=meta["tokenId"],
                )
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid token")
            if payment_token.used_at is not None:
                logger.info("verify_session_token_already_used", session_id=session.id, token_id=payment_token.id)
                return ReconciliationResult(applied=False, booking_id=payment_token.booking_id)

        if await self._session_applied(session.id):
            logger.info("verify_session_already_applied", session_id=session.id)
            return ReconciliationResult(applied=False, booking_id=meta.get("bookingId") or None)

        if payment_token is not None:
            payment_token.used_at = utcnow()
            source = BookingSource(kind=SourceKind.TOKEN, booking=payment_token.booking, token=payment_token)
        else:
            source = await self._booking_from_metadata(session)

        booking_id = source.booking.id
        try:
            if source.synthesized:
                # Booking row must exist before its ledger row references it
                await self.db.flush()
            self._apply_payment(source, session)
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            if await self._session_applied(session.id):
                logger.info("verify_session_lost_race", session_id=session.id, booking_id=booking_id)
                return ReconciliationResult(applied=False, booking_id=booking_id)
            logger.error("reconcile_persist_failed", session_id=session.id, booking_id=booking_id, error=str(e.orig))
            if source.synthesized:
                raise booking_creation_failed(str(e.orig))
            raise

        logger.info(
            "payment_reconciled",
            session_id=session.id,
            booking_id=booking_id,
            flow=source.kind.value,
            synthesized=source.synthesized,
            amount=str(session.amount_paid),
            amount_paid=str(source.booking.amount_paid),
            payment_status=source.booking.payment_status,
        )
        return ReconciliationResult(
            applied=True,
            booking_id=booking_id,
            synthesized=source.synthesized,
            booking=source.booking,
        )

    async def _load_token(self, token: Optional[str], token_id: Optional[str]) -> Optional[PaymentToken]:
        if token:
            query = select(PaymentToken).where(PaymentToken.token == token)
        else:
            try:
                query = select(PaymentToken).where(PaymentToken.id == int(token_id))
            except (TypeError, ValueError):
                return None
        result = await self.db.execute(
            query.options(selectinload(PaymentToken.booking)).execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def _session_applied(self, session_id: str) -> bool:
        result = await self.db.execute(
            select(PaymentTransaction.id).where(PaymentTransaction.stripe_session_id == session_id)
        )
        return result.first() is not None

    async def _booking_from_metadata(self, session: CheckoutSession) -> BookingSource:
        booking_id = session.metadata.get("bookingId") or None
        booking = None

        if booking_id:
            result = await self.db.execute(select(Booking).where(Booking.id == booking_id))
            booking = result.scalar_one_or_none()
        if booking is None:
            result = await self.db.execute(select(Booking).where(Booking.source_session_id == session.id))
            booking = result.scalar_one_or_none()

        if booking is not None:
            return BookingSource(kind=SourceKind.METADATA, booking=booking)

        # The webhook that normally creates it has not run yet
        logger.info("booking_not_found_synthesizing", session_id=session.id, booking_id=booking_id)
        booking = self._synthesize_booking(session, booking_id)
        self.db.add(booking)
        bookings_synthesized.inc()
        return BookingSource(kind=SourceKind.METADATA, booking=booking, synthesized=True)

    def _synthesize_booking(self, session: CheckoutSession, booking_id: Optional[str]) -> Booking:
        meta = session.metadata
        try:
            start = parse_iso(meta.get("startTime"))
            end = parse_iso(meta.get("endTime"))
        except ValueError as e:
            raise booking_creation_failed(f"Invalid booking time in session metadata: {e}")
        if start is None:
            raise booking_creation_failed("Session metadata has no startTime")

        amount = session.amount_paid
        client_name = meta.get("clientName") or session.customer_name or "Guest"
        total = _decimal(meta.get("totalPrice"))

        return Booking(
            id=booking_id or new_booking_id(),
            houseboat_id=meta.get("boatId") or None,
            restaurant_table_id=meta.get("restaurantTableId") or None,
            daily_travel_package_id=meta.get("dailyTravelPackageId") or None,
            start_time=start,
            end_time=end,
            client_name=client_name,
            client_email=meta.get("clientEmail") or session.customer_email,
            client_phone=meta.get("clientPhone") or "",
            status=BookingStatus.CONFIRMED.value,
            payment_status=classify_payment(amount, meta.get("depositAmount"), self.config.deposit_tolerance).value,
            amount_paid=Decimal("0"),
            total_price=total if total is not None else amount,
            number_of_guests=parse_guests(meta.get("numberOfGuests")),
            billing_name=meta.get("billingName") or meta.get("clientName") or None,
            billing_nif=meta.get("billingNif") or None,
            billing_address=meta.get("billingAddress") or None,
            notes="",
            source="website",
            source_session_id=session.id,
        )

    def _apply_payment(self, source: BookingSource, session: CheckoutSession) -> None:
        booking = source.booking
        amount = session.amount_paid
        meta = session.metadata

        self.db.add(
            PaymentTransaction(
                booking_id=booking.id,
                amount=amount,
                method=PaymentMethod.STRIPE.value,
                status=TransactionStatus.PAID.value,
                reference=session.payment_intent,
                stripe_session_id=session.id,
                notes=f"Stripe Checkout ({source.kind.value})",
                paid_at=utcnow(),
            )
        )

        booking.amount_paid = Decimal(booking.amount_paid or 0) + amount
        booking.status = BookingStatus.CONFIRMED.value
        if not source.synthesized:
            # A synthesized booking keeps its deposit/full classification
            booking.payment_status = PaymentStatus.FULLY_PAID.value

        if meta.get("billingName"):
            booking.billing_name = meta["billingName"]
        if meta.get("billingNif"):
            booking.billing_nif = meta["billingNif"]
        if meta.get("billingAddress"):
            booking.billing_address = meta["billingAddress"]

    async def _send_notifications(self, booking: Booking, session: CheckoutSession) -> None:
        amount = session.amount_paid
        await self.notifier.send_payment_receipt(booking, amount)
        await self.notifier.send_finance_alert(
            booking,
            amount,
            session.id,
            self.config.finance_notification_address,
        )
