"""
Pydantic schemas for booking-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Literal, Optional

from pydantic import EmailStr, Field, model_validator

from getaways.schemas.base import CamelModel


class BookingRequestCreate(CamelModel):
    """Public reservation request (contact / reservation forms)."""

    client_name: str = Field(..., min_length=1, max_length=255)
    client_email: EmailStr
    client_phone: str = Field("", max_length=50)
    start_time: datetime
    end_time: Optional[datetime] = None
    number_of_guests: int = Field(2, ge=1, le=100)
    houseboat_id: Optional[str] = None
    restaurant_table_id: Optional[str] = None
    daily_travel_package_id: Optional[str] = None
    total_price: Decimal = Field(Decimal("0"), ge=0)
    notes: str = Field("", max_length=2000)
    source: str = Field("website", max_length=30)

    @model_validator(mode="after")
    def check_booking(self):
        resources = [self.houseboat_id, self.restaurant_table_id, self.daily_travel_package_id]
        if sum(1 for r in resources if r) > 1:
            raise ValueError("A booking reserves at most one resource")
        if self.end_time and self.end_time <= self.start_time:
            raise ValueError("endTime must be after startTime")
        return self


class BookingStatusUpdate(CamelModel):
    status: Literal["Pending", "Confirmed", "Maintenance", "Cancelled"]
    notes: Optional[str] = Field(None, max_length=2000)


class BookingResponse(CamelModel):
    id: str
    client_name: str
    client_email: Optional[str]
    client_phone: str
    start_time: datetime
    end_time: Optional[datetime]
    status: str
    payment_status: str
    amount_paid: float
    total_price: float
    number_of_guests: int
    source: str
    notes: str
    billing_name: Optional[str]
    billing_nif: Optional[str]
    billing_address: Optional[str]
    houseboat_id: Optional[str]
    restaurant_table_id: Optional[str]
    daily_travel_package_id: Optional[str]
    email_sent: bool
    created_at: datetime


class BookingListResponse(CamelModel):
    bookings: list[BookingResponse]
