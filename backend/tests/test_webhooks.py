"""
Tests for the Stripe webhook and its convergence with verify-session.
"""

import json
from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from getaways.core.timeutils import utcnow
from getaways.models.booking import Booking
from getaways.models.payment_transaction import PaymentTransaction

WEBHOOK_URL = "/api/webhooks/stripe"
SIGNED = {"stripe-signature": "valid-signature"}


def event(event_type: str, session_id: str) -> bytes:
    return json.dumps({"type": event_type, "session_id": session_id}).encode()


def reservation_metadata(booking_id: str) -> dict:
    start = utcnow() + timedelta(days=5)
    return {
        "bookingId": booking_id,
        "restaurantTableId": "table-9",
        "startTime": start.isoformat(),
        "endTime": "",
        "clientName": "Pedro Reis",
        "clientEmail": "pedro@example.com",
        "totalPrice": "80.00",
        "depositAmount": "24.00",
    }


@pytest.mark.asyncio
async def test_missing_signature(client: AsyncClient):
    response = await client.post(WEBHOOK_URL, content=event("checkout.session.completed", "cs_x"))
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_bad_signature(client: AsyncClient):
    response = await client.post(
        WEBHOOK_URL,
        content=event("checkout.session.completed", "cs_x"),
        headers={"stripe-signature": "forged"},
    )
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid signature"}


@pytest.mark.asyncio
async def test_other_events_acknowledged(client: AsyncClient, gateway):
    response = await client.post(WEBHOOK_URL, content=event("payment_intent.created", "cs_x"), headers=SIGNED)
    assert response.status_code == 200
    assert response.json() == {"received": True}


@pytest.mark.asyncio
async def test_completed_session_creates_booking(client: AsyncClient, gateway, db_session, email_sender):
    booking_id = "7b1e2c3d-2222-4f5a-8b6c-000000000002"
    gateway.add_session("cs_hook", Decimal("80.00"), metadata=reservation_metadata(booking_id))

    response = await client.post(WEBHOOK_URL, content=event("checkout.session.completed", "cs_hook"), headers=SIGNED)
    assert response.status_code == 200
    assert response.json() == {"received": True}

    booking = await db_session.get(Booking, booking_id)
    assert booking is not None
    await db_session.refresh(booking)
    assert booking.restaurant_table_id == "table-9"
    assert booking.end_time is None
    assert booking.status == "Confirmed"
    assert booking.payment_status == "fully_paid"
    assert booking.amount_paid == Decimal("80.00")
    assert "Payment Receipt - Pedro Reis" in email_sender.subjects()


@pytest.mark.asyncio
async def test_webhook_then_redirect_applies_once(client: AsyncClient, gateway, db_session, email_sender):
    """The webhook and the customer's redirect converge on one booking and one ledger row."""
    booking_id = "7b1e2c3d-2222-4f5a-8b6c-000000000003"
    gateway.add_session("cs_both", Decimal("24.00"), metadata=reservation_metadata(booking_id))

    hook = await client.post(WEBHOOK_URL, content=event("checkout.session.completed", "cs_both"), headers=SIGNED)
    assert hook.status_code == 200
    sent_after_hook = len(email_sender.sent)

    redirect = await client.post("/api/payments/verify-session", json={"sessionId": "cs_both"})
    assert redirect.json() == {"success": True, "message": "Already processed"}

    bookings = await db_session.execute(select(func.count(Booking.id)))
    assert bookings.scalar_one() == 1
    ledger = await db_session.execute(
        select(func.count(PaymentTransaction.id)).where(PaymentTransaction.stripe_session_id == "cs_both")
    )
    assert ledger.scalar_one() == 1

    booking = await db_session.get(Booking, booking_id)
    await db_session.refresh(booking)
    assert booking.amount_paid == Decimal("24.00")
    assert booking.payment_status == "deposit_paid"
    assert len(email_sender.sent) == sent_after_hook


@pytest.mark.asyncio
async def test_redelivered_event_is_idempotent(client: AsyncClient, gateway, db_session, payment_token, houseboat_booking):
    gateway.add_session(
        "cs_redeliver",
        Decimal("500.00"),
        metadata={"bookingId": houseboat_booking.id, "tokenId": str(payment_token.id)},
    )

    for _ in range(2):
        response = await client.post(
            WEBHOOK_URL,
            content=event("checkout.session.completed", "cs_redeliver"),
            headers=SIGNED,
        )
        assert response.status_code == 200

    await db_session.refresh(houseboat_booking)
    await db_session.refresh(payment_token)
    assert houseboat_booking.amount_paid == Decimal("500.00")
    assert payment_token.used_at is not None


@pytest.mark.asyncio
async def test_unpaid_completed_session_ignored(client: AsyncClient, gateway, db_session):
    gateway.add_session(
        "cs_async",
        Decimal("80.00"),
        metadata=reservation_metadata("7b1e2c3d-2222-4f5a-8b6c-000000000004"),
        payment_status="unpaid",
    )

    response = await client.post(WEBHOOK_URL, content=event("checkout.session.completed", "cs_async"), headers=SIGNED)
    assert response.status_code == 200

    result = await db_session.execute(select(func.count(Booking.id)))
    assert result.scalar_one() == 0


@pytest.mark.asyncio
async def test_unknown_token_acknowledged(client: AsyncClient, gateway, houseboat_booking):
    """Redelivery cannot fix a bad tokenId, so the event is acknowledged."""
    gateway.add_session("cs_badtoken", Decimal("10.00"), metadata={"bookingId": houseboat_booking.id, "tokenId": "999"})

    response = await client.post(WEBHOOK_URL, content=event("checkout.session.completed", "cs_badtoken"), headers=SIGNED)
    assert response.status_code == 200
    assert response.json() == {"received": True}
