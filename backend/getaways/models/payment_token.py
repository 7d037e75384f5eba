"""
Payment token: a single-use bearer capability to pay one booking's balance.

Tokens are never deleted; used_at doubles as the audit trail of redemption.
"""

import secrets

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from getaways.db.base import Base, TimestampMixin


def new_token() -> str:
    # 32 random bytes, URL-safe: unguessable since nothing else gates redemption
    return secrets.token_urlsafe(32)


class PaymentToken(Base, TimestampMixin):
    __tablename__ = "payment_tokens"

    id = Column(Integer, primary_key=True, index=True)
    token = Column(String(64), nullable=False, unique=True, index=True, default=new_token)
    booking_id = Column(String(36), ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    requested_amount = Column(Numeric(10, 2), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)
    created_by_id = Column(Integer, ForeignKey("staff.id"), nullable=True)

    booking = relationship("Booking", lazy="selectin")

    def __repr__(self) -> str:
        return f"<PaymentToken(id={self.id}, booking={self.booking_id}, used={self.used_at is not None})>"
