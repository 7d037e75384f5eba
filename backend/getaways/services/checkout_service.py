"""
Checkout Session Creator.

Starts a hosted checkout session and returns its redirect URL. Two inputs:

  token flow   - an existing booking's payment link; charges the amount due
  intent flow  - a new website reservation; charges a deposit or the total

Nothing is written locally. The session metadata carries everything the
reconciler needs to find or rebuild the booking after payment, so it never
has to trust booking state that may have changed while the customer was on
the provider's page.
"""

import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from getaways.core.config import Settings
from getaways.core.logging import get_logger
from getaways.core.metrics import record_checkout_session
from getaways.core.timeutils import as_utc, utcnow
from getaways.schemas.payment import BillingInfo, CheckoutSessionCreate
from getaways.services.booking_service import is_houseboat_available
from getaways.services.interfaces.payment_gateway import (
    CheckoutSessionRequest,
    PaymentGateway,
    PaymentGatewayConfigError,
    PaymentGatewayError,
)
from getaways.services.payment_link_service import amount_due, get_token, payment_link_url

logger = get_logger(__name__)

CHECKOUT_SESSION_PLACEHOLDER = "{CHECKOUT_SESSION_ID}"


def deposit_for(total: Decimal, rate: Decimal) -> Decimal:
    return (Decimal(total) * rate).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def _billing_metadata(billing: Optional[BillingInfo]) -> dict[str, str]:
    billing = billing or BillingInfo()
    return {
        "billingName": billing.name or "",
        "billingNif": billing.nif or "",
        "billingAddress": billing.address or "",
    }


async def _start_session(gateway: PaymentGateway, request: CheckoutSessionRequest, kind: str) -> dict:
    try:
        session = await gateway.create_session(request)
    except PaymentGatewayConfigError as e:
        record_checkout_session(kind, "error")
        logger.error("checkout_session_config_error", kind=kind, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Payments are not configured",
        )
    except PaymentGatewayError as e:
        record_checkout_session(kind, "error")
        logger.error("checkout_session_failed", kind=kind, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Payment provider unavailable, please try again",
        )

    record_checkout_session(kind, "created")
    logger.info("checkout_session_started", kind=kind, session_id=session.id, amount=str(request.amount))
    return {"session_id": session.id, "url": session.url}


async def create_token_checkout(
    db: AsyncSession,
    gateway: PaymentGateway,
    data: CheckoutSessionCreate,
    settings: Settings,
) -> dict:
    token = await get_token(db, data.token)
    if token is None or token.used_at is not None or as_utc(token.expires_at) < utcnow():
        record_checkout_session("token", "rejected")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or expired token")

    booking = token.booking
    amount = amount_due(token)
    if amount <= 0:
        record_checkout_session("token", "rejected")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Booking is already fully paid")

    link = payment_link_url(settings.SITE_URL, token.token)
    metadata = {
        "bookingId": booking.id,
        "tokenId": str(token.id),
        **_billing_metadata(data.billing_info),
    }
    request = CheckoutSessionRequest(
        amount=amount,
        currency=settings.CHECKOUT_CURRENCY,
        product_name=booking.service_label,
        description=f"Booking #{booking.id[:8]} - {booking.client_name}",
        success_url=f"{link}?success=true&session_id={CHECKOUT_SESSION_PLACEHOLDER}",
        cancel_url=f"{link}?canceled=true",
        metadata=metadata,
        customer_email=booking.client_email,
    )
    return await _start_session(gateway, request, "token")


async def create_intent_checkout(
    db: AsyncSession,
    gateway: PaymentGateway,
    data: CheckoutSessionCreate,
    settings: Settings,
) -> dict:
    start = as_utc(data.start_time)
    end = as_utc(data.end_time)

    if data.boat_id and not await is_houseboat_available(db, data.boat_id, start, end):
        record_checkout_session("intent", "rejected")
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="No boats available for the selected dates",
        )

    total = data.total_price
    deposit = deposit_for(total, settings.DEPOSIT_RATE)
    charge = deposit if data.payment_option == "deposit" else total

    if data.boat_id:
        product_name = f"Houseboat: {data.boat_name}" if data.boat_name else "Houseboat Reservation"
    elif data.restaurant_table_id:
        product_name = "Restaurant Reservation"
    else:
        product_name = "Daily Travel Excursion"

    period = start.strftime("%Y-%m-%d") + (f" to {end.strftime('%Y-%m-%d')}" if end else "")
    label = "Deposit" if data.payment_option == "deposit" else "Full Payment"
    billing = data.billing_info or BillingInfo()

    # Minted here so the redirect and the webhook converge on the same primary key
    booking_id = str(uuid.uuid4())
    metadata = {
        "bookingId": booking_id,
        "boatId": data.boat_id or "",
        "restaurantTableId": data.restaurant_table_id or "",
        "dailyTravelPackageId": data.daily_travel_package_id or "",
        "startTime": start.isoformat(),
        "endTime": end.isoformat() if end else "",
        "clientName": data.client_name,
        "clientEmail": str(data.client_email),
        "clientPhone": data.client_phone or "",
        "totalPrice": str(total),
        "depositAmount": str(deposit),
        "numberOfGuests": str(data.number_of_guests or 2),
        "paymentOption": data.payment_option,
        "billingName": billing.name or data.client_name,
        "billingNif": billing.nif or "",
        "billingAddress": billing.address or "",
    }
    site = settings.SITE_URL.rstrip("/")
    request = CheckoutSessionRequest(
        amount=charge,
        currency=settings.CHECKOUT_CURRENCY,
        product_name=product_name,
        description=f"{label} • {period}",
        success_url=f"{site}/checkout/success?session_id={CHECKOUT_SESSION_PLACEHOLDER}",
        cancel_url=f"{site}/checkout?canceled=true",
        metadata=metadata,
        customer_email=str(data.client_email),
    )
    return await _start_session(gateway, request, "intent")


async def create_checkout_session(
    db: AsyncSession,
    gateway: PaymentGateway,
    data: CheckoutSessionCreate,
    settings: Settings,
) -> dict:
    if data.token:
        return await create_token_checkout(db, gateway, data, settings)
    return await create_intent_checkout(db, gateway, data, settings)
