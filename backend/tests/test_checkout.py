"""
Tests for checkout session creation (payment-link tokens and website reservations).
"""

from datetime import timedelta
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from getaways.core.timeutils import utcnow
from getaways.models.booking import Booking
from getaways.services.interfaces.payment_gateway import PaymentGatewayConfigError, PaymentGatewayError

CHECKOUT_URL = "/api/payments/create-checkout-session"


def reservation(**overrides) -> dict:
    start = utcnow() + timedelta(days=20)
    body = {
        "boatId": "boat-1",
        "boatName": "Amieira 42",
        "startTime": start.isoformat(),
        "endTime": (start + timedelta(days=3)).isoformat(),
        "clientName": "Rita Alves",
        "clientEmail": "rita@example.com",
        "clientPhone": "+351922222222",
        "totalPrice": 1000,
        "paymentOption": "deposit",
        "numberOfGuests": 4,
        "billingInfo": {"name": "Rita Alves", "nif": "234567890", "address": "Evora"},
    }
    body.update(overrides)
    return body


# ----- Token checkout -----

@pytest.mark.asyncio
async def test_token_checkout(client: AsyncClient, gateway, payment_token, houseboat_booking):
    response = await client.post(CHECKOUT_URL, json={
        "token": payment_token.token,
        "billingInfo": {"name": "Silva Lda", "nif": "501234567"},
    })
    assert response.status_code == 200
    data = response.json()
    assert data["sessionId"] == "cs_test_1"
    assert data["url"] == "https://checkout.test/pay/cs_test_1"

    request = gateway.created[0]
    assert request.amount == Decimal("500.00")
    assert request.metadata["bookingId"] == houseboat_booking.id
    assert request.metadata["tokenId"] == str(payment_token.id)
    assert request.metadata["billingNif"] == "501234567"
    assert request.metadata["billingAddress"] == ""
    assert request.product_name == "Houseboat Reservation"
    assert request.success_url == (
        f"http://localhost:9002/payment/{payment_token.token}?success=true&session_id={{CHECKOUT_SESSION_ID}}"
    )


@pytest.mark.asyncio
async def test_token_checkout_charges_remaining_balance(
    client: AsyncClient, gateway, db_session, payment_token, houseboat_booking
):
    """A partial payment made elsewhere caps the amount below the requested one."""
    houseboat_booking.amount_paid = Decimal("350.00")
    await db_session.commit()

    response = await client.post(CHECKOUT_URL, json={"token": payment_token.token})
    assert response.status_code == 200
    assert gateway.created[0].amount == Decimal("150.00")


@pytest.mark.asyncio
async def test_token_checkout_unknown_token(client: AsyncClient, gateway):
    response = await client.post(CHECKOUT_URL, json={"token": "nope"})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid or expired token"}
    assert gateway.created == []


@pytest.mark.asyncio
async def test_token_checkout_expired_token(client: AsyncClient, db_session, payment_token):
    payment_token.expires_at = utcnow() - timedelta(minutes=1)
    await db_session.commit()

    response = await client.post(CHECKOUT_URL, json={"token": payment_token.token})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_token_checkout_used_token(client: AsyncClient, db_session, payment_token):
    payment_token.used_at = utcnow()
    await db_session.commit()

    response = await client.post(CHECKOUT_URL, json={"token": payment_token.token})
    assert response.status_code == 400
    assert response.json() == {"error": "Invalid or expired token"}


@pytest.mark.asyncio
async def test_token_checkout_fully_paid(client: AsyncClient, db_session, payment_token, houseboat_booking):
    houseboat_booking.amount_paid = Decimal("500.00")
    await db_session.commit()

    response = await client.post(CHECKOUT_URL, json={"token": payment_token.token})
    assert response.status_code == 400
    assert response.json() == {"error": "Booking is already fully paid"}


# ----- Reservation checkout -----

@pytest.mark.asyncio
async def test_reservation_checkout_deposit(client: AsyncClient, gateway, db_session):
    response = await client.post(CHECKOUT_URL, json=reservation())
    assert response.status_code == 200

    request = gateway.created[0]
    assert request.amount == Decimal("300.00")
    assert request.product_name == "Houseboat: Amieira 42"
    assert request.customer_email == "rita@example.com"
    assert request.success_url == "http://localhost:9002/checkout/success?session_id={CHECKOUT_SESSION_ID}"

    metadata = request.metadata
    assert len(metadata["bookingId"]) == 36
    assert metadata["boatId"] == "boat-1"
    assert metadata["depositAmount"] == "300.00"
    assert metadata["totalPrice"] == "1000"
    assert metadata["numberOfGuests"] == "4"
    assert metadata["paymentOption"] == "deposit"
    assert metadata["billingNif"] == "234567890"
    assert all(isinstance(value, str) for value in metadata.values())

    # Nothing is stored until the payment is verified
    result = await db_session.execute(select(func.count(Booking.id)))
    assert result.scalar_one() == 0


@pytest.mark.asyncio
async def test_reservation_checkout_full(client: AsyncClient, gateway):
    response = await client.post(CHECKOUT_URL, json=reservation(paymentOption="full"))
    assert response.status_code == 200
    assert gateway.created[0].amount == Decimal("1000")


@pytest.mark.asyncio
async def test_each_checkout_mints_a_new_booking_id(client: AsyncClient, gateway):
    await client.post(CHECKOUT_URL, json=reservation())
    await client.post(CHECKOUT_URL, json=reservation())
    assert gateway.created[0].metadata["bookingId"] != gateway.created[1].metadata["bookingId"]


@pytest.mark.asyncio
async def test_reservation_checkout_boat_unavailable(client: AsyncClient, gateway, houseboat_booking):
    """Overlapping an existing stay of the same boat is refused."""
    start = houseboat_booking.start_time + timedelta(days=1)
    response = await client.post(CHECKOUT_URL, json=reservation(
        startTime=start.isoformat(),
        endTime=(start + timedelta(days=2)).isoformat(),
    ))
    assert response.status_code == 409
    assert response.json() == {"error": "No boats available for the selected dates"}
    assert gateway.created == []


@pytest.mark.asyncio
async def test_reservation_checkout_cancelled_booking_frees_boat(
    client: AsyncClient, gateway, db_session, houseboat_booking
):
    houseboat_booking.status = "Cancelled"
    await db_session.commit()

    start = houseboat_booking.start_time
    response = await client.post(CHECKOUT_URL, json=reservation(
        startTime=start.isoformat(),
        endTime=(start + timedelta(days=1)).isoformat(),
    ))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_restaurant_checkout(client: AsyncClient, gateway):
    body = reservation(paymentOption="full", restaurantTableId="table-3", endTime=None)
    del body["boatId"]

    response = await client.post(CHECKOUT_URL, json=body)
    assert response.status_code == 200
    request = gateway.created[0]
    assert request.product_name == "Restaurant Reservation"
    assert request.metadata["restaurantTableId"] == "table-3"
    assert request.metadata["endTime"] == ""


@pytest.mark.asyncio
async def test_reservation_requires_one_resource(client: AsyncClient):
    body = reservation(restaurantTableId="table-3")
    response = await client.post(CHECKOUT_URL, json=body)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reservation_requires_contact(client: AsyncClient):
    body = reservation()
    del body["clientEmail"]
    response = await client.post(CHECKOUT_URL, json=body)
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_provider_failure_is_retryable(client: AsyncClient, gateway, monkeypatch):
    async def unavailable(request):
        raise PaymentGatewayError("connection reset")

    monkeypatch.setattr(gateway, "create_session", unavailable)

    response = await client.post(CHECKOUT_URL, json=reservation())
    assert response.status_code == 502
    assert response.json() == {"error": "Payment provider unavailable, please try again"}


@pytest.mark.asyncio
async def test_provider_not_configured(client: AsyncClient, gateway, monkeypatch):
    async def not_configured(request):
        raise PaymentGatewayConfigError("Stripe secret key not configured.")

    monkeypatch.setattr(gateway, "create_session", not_configured)

    response = await client.post(CHECKOUT_URL, json=reservation())
    assert response.status_code == 503
