"""
Payment ledger. One row per received payment, online or manual.

stripe_session_id is unique: a checkout session can be applied to a booking
at most once, whichever of the redirect or the webhook gets there first.
"""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, func

from getaways.db.base import Base, TimestampMixin


class PaymentMethod(str, enum.Enum):
    STRIPE = "stripe"
    CASH = "cash"
    CARD = "card"
    TRANSFER = "transfer"
    OTHER = "other"


class TransactionStatus(str, enum.Enum):
    PAID = "paid"
    PENDING = "pending"
    REFUNDED = "refunded"
    FAILED = "failed"


class PaymentTransaction(Base, TimestampMixin):
    __tablename__ = "payment_transactions"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(Numeric(10, 2), nullable=False)
    method = Column(String(20), nullable=False, default=PaymentMethod.OTHER.value)
    status = Column(String(20), nullable=False, default=TransactionStatus.PAID.value)
    reference = Column(String(255), nullable=True)
    notes = Column(Text, nullable=True)
    stripe_session_id = Column(String(255), nullable=True, unique=True)
    paid_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (
        CheckConstraint("amount >= 0", name="check_transaction_amount_non_negative"),
        CheckConstraint(
            "status IN ('paid', 'pending', 'refunded', 'failed')",
            name="check_transaction_status",
        ),
    )

    def __repr__(self) -> str:
        return f"<PaymentTransaction(id={self.id}, booking={self.booking_id}, amount={self.amount}, status={self.status})>"
