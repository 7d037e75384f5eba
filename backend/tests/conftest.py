"""
Pytest fixtures for test database, client, fakes and authentication.

The database is TEST_DATABASE_URL (in-memory SQLite by default); tables are
created and dropped around every test. The payment gateway and email sender
are replaced with in-memory fakes through app.dependency_overrides.
"""

import json
import os
from datetime import timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

# Configure before the application reads its settings
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("TEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool, StaticPool

from getaways.main import app
from getaways.db.base import Base
from getaways.db.session import get_db
from getaways.core.security import create_access_token, hash_password
from getaways.core.timeutils import utcnow
from getaways.models.booking import Booking, BookingStatus
from getaways.models.payment_token import PaymentToken
from getaways.models.staff import Staff
from getaways.services.interfaces.email_sender import EmailSender
from getaways.services.interfaces.payment_gateway import (
    CheckoutSession,
    CheckoutSessionRequest,
    InvalidCheckoutSession,
    InvalidWebhookSignature,
    PaymentGateway,
    WebhookEvent,
    to_minor_units,
)
from getaways.services.provider_factory import get_email_sender, get_payment_gateway

TEST_DATABASE_URL = os.environ["TEST_DATABASE_URL"]

if TEST_DATABASE_URL.startswith("sqlite"):
    # One shared connection so every session sees the same in-memory database
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
else:
    # Connections are bound to the loop that opened them; each test gets its own loop
    test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)

TestSessionLocal = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


# ----- Fakes -----

class FakeGateway(PaymentGateway):
    """In-memory checkout provider. Tests register paid sessions with add_session()."""

    WEBHOOK_SIGNATURE = "valid-signature"

    def __init__(self):
        self.sessions: dict[str, CheckoutSession] = {}
        self.created: list[CheckoutSessionRequest] = []
        self.retrieved: list[str] = []

    def add_session(
        self,
        session_id: str,
        amount: Decimal,
        metadata: Optional[dict] = None,
        payment_status: str = "paid",
        customer_name: Optional[str] = None,
        customer_email: Optional[str] = None,
    ) -> CheckoutSession:
        session = CheckoutSession(
            id=session_id,
            payment_status=payment_status,
            amount_total=to_minor_units(Decimal(amount)),
            metadata=dict(metadata or {}),
            customer_name=customer_name,
            customer_email=customer_email,
            payment_intent=f"pi_{session_id}",
        )
        self.sessions[session_id] = session
        return session

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        self.retrieved.append(session_id)
        if session_id not in self.sessions:
            raise InvalidCheckoutSession(f"No such checkout.session: {session_id}")
        return self.sessions[session_id]

    async def create_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        self.created.append(request)
        session_id = f"cs_test_{len(self.created)}"
        session = CheckoutSession(
            id=session_id,
            payment_status="unpaid",
            amount_total=to_minor_units(request.amount),
            currency=request.currency,
            metadata=dict(request.metadata),
            customer_email=request.customer_email,
            url=f"https://checkout.test/pay/{session_id}",
        )
        self.sessions[session_id] = session
        return session

    def parse_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        if signature != self.WEBHOOK_SIGNATURE:
            raise InvalidWebhookSignature("signature mismatch")
        event = json.loads(payload)
        return WebhookEvent(type=event["type"], session=self.sessions.get(event.get("session_id")))


class RecordingEmailSender(EmailSender):
    def __init__(self):
        self.sent: list[dict] = []

    async def send(self, to_address: str, subject: str, body_text: str) -> None:
        self.sent.append({"to": to_address, "subject": subject, "body": body_text})

    def subjects(self) -> list[str]:
        return [message["subject"] for message in self.sent]


# ----- Database and client -----

@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield session, then drop tables for isolation."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def email_sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    gateway: FakeGateway,
    email_sender: EmailSender,
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client wired to the test session and the fakes."""

    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    app.dependency_overrides[get_email_sender] = lambda: email_sender

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ----- Staff -----

@pytest_asyncio.fixture
async def staff_user(db_session: AsyncSession) -> Staff:
    staff = Staff(
        email="staff@example.com",
        username="frontdesk",
        hashed_password=hash_password("staffpassword123"),
    )
    db_session.add(staff)
    await db_session.commit()
    await db_session.refresh(staff)
    return staff


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> Staff:
    admin = Staff(
        email="admin@example.com",
        username="manager",
        hashed_password=hash_password("adminpassword123"),
        is_admin=True,
    )
    db_session.add(admin)
    await db_session.commit()
    await db_session.refresh(admin)
    return admin


@pytest_asyncio.fixture
async def auth_headers(staff_user: Staff) -> dict:
    """Authorization headers with Bearer token."""
    token = create_access_token(data={"sub": str(staff_user.id)})
    return {"Authorization": f"Bearer {token}"}


@pytest_asyncio.fixture
async def admin_headers(admin_user: Staff) -> dict:
    token = create_access_token(data={"sub": str(admin_user.id)})
    return {"Authorization": f"Bearer {token}"}


# ----- Bookings and payment links -----

@pytest_asyncio.fixture
async def houseboat_booking(db_session: AsyncSession) -> Booking:
    """Pending houseboat booking, 500.00 total, nothing paid."""
    start = utcnow() + timedelta(days=30)
    booking = Booking(
        client_name="Ana Silva",
        client_email="ana@example.com",
        client_phone="+351900000000",
        start_time=start,
        end_time=start + timedelta(days=3),
        houseboat_id="boat-1",
        total_price=Decimal("500.00"),
        amount_paid=Decimal("0"),
        status=BookingStatus.PENDING.value,
    )
    db_session.add(booking)
    await db_session.commit()
    await db_session.refresh(booking)
    return booking


@pytest_asyncio.fixture
async def payment_token(db_session: AsyncSession, houseboat_booking: Booking) -> PaymentToken:
    token = PaymentToken(
        booking_id=houseboat_booking.id,
        requested_amount=Decimal("500.00"),
        expires_at=utcnow() + timedelta(hours=48),
    )
    db_session.add(token)
    await db_session.commit()
    await db_session.refresh(token)
    return token
