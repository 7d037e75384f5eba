"""
Payment Link Issuer.

A payment link is {SITE_URL}/payment/{token}. The token is the only thing
that authorizes paying the booking's balance, so it is random, unique and
single-use: used_at is set once, by the reconciler, and never cleared.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from fastapi import HTTPException, status

from getaways.core.config import Settings
from getaways.core.logging import get_logger
from getaways.core.metrics import record_payment_link
from getaways.core.timeutils import as_utc, utcnow
from getaways.models.payment_token import PaymentToken
from getaways.models.staff import Staff
from getaways.schemas.payment import PaymentLinkCreate
from getaways.services.booking_service import get_booking
from getaways.services.notification_service import NotificationService

logger = get_logger(__name__)

# Balances below one cent count as settled
SETTLED_THRESHOLD = Decimal("0.01")


def payment_link_url(site_url: str, token: str) -> str:
    return f"{site_url.rstrip('/')}/payment/{token}"


def is_expired(token: PaymentToken) -> bool:
    return as_utc(token.expires_at) < utcnow()


def amount_due(token: PaymentToken) -> Decimal:
    """
    Outstanding balance, capped by the amount staff requested on the link.
    The cap matters when the client paid part of the balance elsewhere.
    """
    remaining = token.booking.balance_due
    if token.requested_amount and token.requested_amount > 0:
        return min(Decimal(token.requested_amount), remaining)
    return remaining


async def get_token(db: AsyncSession, token: str) -> Optional[PaymentToken]:
    """Token row with its booking loaded, or None. Always read fresh: used_at gates redemption."""
    result = await db.execute(
        select(PaymentToken)
        .where(PaymentToken.token == token)
        .options(selectinload(PaymentToken.booking))
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def generate_payment_link(
    db: AsyncSession,
    data: PaymentLinkCreate,
    staff: Staff,
    notifier: NotificationService,
    settings: Settings,
) -> dict:
    booking = await get_booking(db, data.booking_id)

    final_amount = booking.balance_due
    if data.amount is not None and data.amount > 0:
        final_amount = data.amount

    if final_amount <= 0:
        record_payment_link("rejected")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Amount to pay must be greater than 0",
        )

    expires_at = utcnow() + timedelta(hours=settings.PAYMENT_LINK_TTL_HOURS)
    token = PaymentToken(
        booking_id=booking.id,
        requested_amount=final_amount,
        expires_at=expires_at,
        created_by_id=staff.id,
    )
    db.add(token)
    await db.flush()
    await db.commit()

    link = payment_link_url(settings.SITE_URL, token.token)
    record_payment_link("created")
    logger.info(
        "payment_link_created",
        booking_id=booking.id,
        token_id=token.id,
        amount=str(final_amount),
        staff_id=staff.id,
    )

    email_sent = False
    if not data.skip_email:
        email_sent = await notifier.send_payment_link(
            data.email or booking.client_email,
            booking.client_name or "Valued Guest",
            link,
            booking.service_label,
            final_amount,
            settings.PAYMENT_LINK_TTL_HOURS,
        )
        if email_sent:
            booking.email_sent = True
            await db.flush()

    return {
        "success": True,
        "link": link,
        "expires_at": expires_at,
        "email_sent": email_sent,
    }


async def validate_payment_link(db: AsyncSession, token_value: Optional[str], currency: str) -> dict:
    """What the payment page shows before the client starts checkout."""
    if not token_value:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing token")

    token = await get_token(db, token_value)
    if token is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invalid or expired token")
    if is_expired(token):
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="Token expired")
    if token.used_at is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Token already used")

    booking = token.booking
    if booking.balance_due <= SETTLED_THRESHOLD:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This booking has already been fully paid.",
        )

    return {
        "valid": True,
        "booking": {
            "id": booking.id,
            "client_name": booking.client_name,
            "service_type": booking.service_label,
            "start_date": booking.start_time,
            "end_date": booking.end_time,
            "amount_due": float(amount_due(token)),
            "currency": currency.upper(),
        },
    }
