"""
Pydantic schemas for checkout, payment links, verification and the ledger.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import EmailStr, Field, model_validator

from getaways.schemas.base import CamelModel


class BillingInfo(CamelModel):
    name: Optional[str] = Field(None, max_length=255)
    nif: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = Field(None, max_length=500)


# ----- Checkout -----

class CheckoutSessionCreate(CamelModel):
    """
    Either a payment-link token, or the booking intent of a new website checkout.
    """

    token: Optional[str] = None
    billing_info: Optional[BillingInfo] = None

    # Booking intent
    boat_id: Optional[str] = None
    boat_name: Optional[str] = Field(None, max_length=255)
    restaurant_table_id: Optional[str] = None
    daily_travel_package_id: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    client_name: Optional[str] = Field(None, max_length=255)
    client_email: Optional[EmailStr] = None
    client_phone: Optional[str] = Field(None, max_length=50)
    total_price: Optional[Decimal] = Field(None, gt=0)
    payment_option: Literal["deposit", "full"] = "full"
    number_of_guests: Optional[int] = Field(None, ge=1, le=100)

    @model_validator(mode="after")
    def check_intent(self):
        if self.token:
            return self
        resources = [self.boat_id, self.restaurant_table_id, self.daily_travel_package_id]
        if sum(1 for r in resources if r) != 1:
            raise ValueError("Exactly one of boatId, restaurantTableId, dailyTravelPackageId is required")
        missing = [
            name for name, value in (
                ("startTime", self.start_time),
                ("clientName", self.client_name),
                ("clientEmail", self.client_email),
                ("totalPrice", self.total_price),
            )
            if value is None
        ]
        if missing:
            raise ValueError(f"Missing booking fields: {', '.join(missing)}")
        if self.end_time and self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class CheckoutSessionResponse(CamelModel):
    session_id: str
    url: Optional[str]


# ----- Verification -----

class VerifySessionRequest(CamelModel):
    # Optional so an absent id gets the documented 400 instead of a 422
    session_id: Optional[str] = None
    token: Optional[str] = None


class VerifySessionResponse(CamelModel):
    success: bool
    message: Optional[str] = None


# ----- Payment links -----

class PaymentLinkCreate(CamelModel):
    booking_id: str
    email: Optional[EmailStr] = None
    amount: Optional[Decimal] = None
    skip_email: bool = False


class PaymentLinkResponse(CamelModel):
    success: bool
    link: str
    expires_at: datetime
    email_sent: bool


class PaymentLinkBooking(CamelModel):
    id: str
    client_name: str
    service_type: str
    start_date: datetime
    end_date: Optional[datetime]
    amount_due: float
    currency: str


class PaymentLinkValidation(CamelModel):
    valid: bool
    booking: PaymentLinkBooking


# ----- Ledger -----

class TransactionCreate(CamelModel):
    booking_id: str
    amount: Decimal = Field(..., ge=0)
    method: Literal["cash", "card", "transfer", "stripe", "other"] = "cash"
    ref: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)
    status: Literal["paid", "pending", "refunded", "failed"] = "paid"
    date: Optional[datetime] = None


class TransactionUpdate(CamelModel):
    amount: Optional[Decimal] = Field(None, ge=0)
    method: Optional[Literal["cash", "card", "transfer", "stripe", "other"]] = None
    ref: Optional[str] = Field(None, max_length=255)
    notes: Optional[str] = Field(None, max_length=2000)
    status: Optional[Literal["paid", "pending", "refunded", "failed"]] = None
    date: Optional[datetime] = None


class TransactionResponse(CamelModel):
    id: int
    booking_id: str
    amount: float
    method: str
    status: str
    reference: Optional[str]
    notes: Optional[str]
    stripe_session_id: Optional[str]
    paid_at: datetime


class TransactionListResponse(CamelModel):
    transactions: list[TransactionResponse]
