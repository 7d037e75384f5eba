"""
Booking endpoints: public reservation requests and staff management.
"""

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from getaways.api.deps import get_notifier
from getaways.core.security import get_current_staff
from getaways.db.session import get_db
from getaways.models.staff import Staff
from getaways.schemas.booking import (
    BookingListResponse,
    BookingRequestCreate,
    BookingResponse,
    BookingStatusUpdate,
)
from getaways.services.booking_service import (
    create_booking_request,
    delete_booking,
    get_booking,
    list_bookings,
    update_booking_status,
)
from getaways.services.notification_service import NotificationService

router = APIRouter(prefix="/bookings", tags=["Bookings"])

BookingStatusFilter = Literal["Pending", "Confirmed", "Maintenance", "Cancelled"]


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking_request_endpoint(
    data: BookingRequestCreate,
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    """
    Submit a reservation request from the website.

    The booking starts Pending; staff confirm it or the client pays through a
    payment link. The acknowledgement email is best effort.
    """
    return await create_booking_request(db, data, notifier)


@router.get("", response_model=BookingListResponse)
async def list_bookings_endpoint(
    status_filter: Optional[BookingStatusFilter] = Query(None, alias="status"),
    staff: Staff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    bookings = await list_bookings(db, status_filter)
    return {"bookings": bookings}


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking_endpoint(
    booking_id: str,
    staff: Staff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    return await get_booking(db, booking_id)


@router.patch("/{booking_id}/status", response_model=BookingResponse)
async def update_booking_status_endpoint(
    booking_id: str,
    data: BookingStatusUpdate,
    staff: Staff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
):
    """Change a booking's status. Confirmations and cancellations are emailed."""
    return await update_booking_status(db, booking_id, data, notifier)


@router.delete("/{booking_id}")
async def delete_booking_endpoint(
    booking_id: str,
    staff: Staff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    """Hard delete, along with the booking's payment links and ledger rows."""
    await delete_booking(db, booking_id)
    return {"success": True, "bookingId": booking_id}
