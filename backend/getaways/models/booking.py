"""
Booking model: one reservation of exactly one resource kind.

Key design decisions:
- Resource type is inferred from whichever foreign reference is set; a CHECK
  constraint keeps at most one of them non-null
- amount_paid only grows through recorded payments (see PaymentTransaction)
- source_session_id is unique so a payment session can synthesize at most one booking
- Status fields allow cancellation without deleting records
"""

import enum
import uuid
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)

from getaways.db.base import Base, TimestampMixin


class BookingStatus(str, enum.Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    MAINTENANCE = "Maintenance"
    CANCELLED = "Cancelled"


class PaymentStatus(str, enum.Enum):
    UNPAID = "unpaid"
    DEPOSIT_PAID = "deposit_paid"
    FULLY_PAID = "fully_paid"
    FAILED = "failed"


class ResourceType(str, enum.Enum):
    HOUSEBOAT = "houseboat"
    RESTAURANT = "restaurant"
    DAILY_TRAVEL = "daily_travel"


def new_booking_id() -> str:
    return str(uuid.uuid4())


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=new_booking_id)

    # Client contact
    client_name = Column(String(255), nullable=False)
    client_email = Column(String(255), nullable=True, index=True)
    client_phone = Column(String(50), nullable=False, default="")

    # Time window
    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=True)

    # Commercial state
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.UNPAID.value)
    amount_paid = Column(Numeric(10, 2), nullable=False, default=0)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    number_of_guests = Column(Integer, nullable=False, default=2)
    source = Column(String(30), nullable=False, default="manual")
    notes = Column(Text, nullable=False, default="")
    email_sent = Column(Boolean, nullable=False, default=False)

    # Billing snapshot captured at checkout
    billing_name = Column(String(255), nullable=True)
    billing_nif = Column(String(50), nullable=True)
    billing_address = Column(String(500), nullable=True)

    # Reserved resource (at most one)
    houseboat_id = Column(String(64), nullable=True)
    restaurant_table_id = Column(String(64), nullable=True)
    daily_travel_package_id = Column(String(64), nullable=True)

    # Payment session that created this booking, if any
    source_session_id = Column(String(255), nullable=True, unique=True)

    __table_args__ = (
        CheckConstraint(
            "(CASE WHEN houseboat_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN restaurant_table_id IS NULL THEN 0 ELSE 1 END)"
            " + (CASE WHEN daily_travel_package_id IS NULL THEN 0 ELSE 1 END) <= 1",
            name="check_booking_single_resource",
        ),
        CheckConstraint("amount_paid >= 0", name="check_booking_amount_paid_non_negative"),
        CheckConstraint(
            "status IN ('Pending', 'Confirmed', 'Maintenance', 'Cancelled')",
            name="check_booking_status",
        ),
        CheckConstraint(
            "payment_status IN ('unpaid', 'deposit_paid', 'fully_paid', 'failed')",
            name="check_booking_payment_status",
        ),
        # Availability checks scan a boat's bookings by time
        Index("ix_bookings_houseboat_start", "houseboat_id", "start_time"),
    )

    @property
    def resource_type(self) -> Optional[ResourceType]:
        if self.houseboat_id:
            return ResourceType.HOUSEBOAT
        if self.restaurant_table_id:
            return ResourceType.RESTAURANT
        if self.daily_travel_package_id:
            return ResourceType.DAILY_TRAVEL
        return None

    @property
    def service_label(self) -> str:
        """Human-readable service name used in emails and checkout line items."""
        return {
            ResourceType.HOUSEBOAT: "Houseboat Reservation",
            ResourceType.RESTAURANT: "Restaurant Reservation",
            ResourceType.DAILY_TRAVEL: "Daily Travel Excursion",
        }.get(self.resource_type, "Reservation")

    @property
    def balance_due(self) -> Decimal:
        remaining = Decimal(self.total_price or 0) - Decimal(self.amount_paid or 0)
        return max(Decimal("0"), remaining)

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, client={self.client_name}, status={self.status}, payment={self.payment_status})>"
