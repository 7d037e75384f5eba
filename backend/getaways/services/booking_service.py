"""
Booking service: reservation requests, staff status changes and availability.

Bookings enter the system in one of two ways:
  - a customer reservation/contact form (status=Pending, this module)
  - a paid checkout session with no prior booking (reconciliation_service)

Staff move bookings between statuses and may hard-delete them; nothing else
deletes a booking.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from getaways.core.logging import get_logger
from getaways.core.timeutils import as_utc
from getaways.models.booking import Booking, BookingStatus
from getaways.models.payment_token import PaymentToken
from getaways.models.payment_transaction import PaymentTransaction
from getaways.schemas.booking import BookingRequestCreate, BookingStatusUpdate
from getaways.services.client_service import find_or_create_client
from getaways.services.notification_service import NotificationService

logger = get_logger(__name__)


async def is_houseboat_available(
    db: AsyncSession,
    houseboat_id: str,
    start: datetime,
    end: Optional[datetime],
    exclude_booking_id: Optional[str] = None,
) -> bool:
    """
    True if no non-cancelled booking of this boat overlaps [start, end).
    A booking without an end time occupies its start instant only.
    """
    start = as_utc(start)
    end = as_utc(end) or start

    query = select(Booking.id).where(
        Booking.houseboat_id == houseboat_id,
        Booking.status != BookingStatus.CANCELLED.value,
        or_(
            and_(Booking.end_time.is_not(None), Booking.start_time < end, Booking.end_time > start),
            and_(Booking.end_time.is_(None), Booking.start_time >= start, Booking.start_time <= end),
        ),
    )
    if exclude_booking_id:
        query = query.where(Booking.id != exclude_booking_id)

    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none() is None


async def create_booking_request(
    db: AsyncSession,
    data: BookingRequestCreate,
    notifier: NotificationService,
) -> Booking:
    """Create a Pending booking, upsert the client and acknowledge by email."""
    await find_or_create_client(db, data.client_name, data.client_email, data.client_phone)

    booking = Booking(
        client_name=data.client_name,
        client_email=data.client_email.lower(),
        client_phone=data.client_phone,
        start_time=as_utc(data.start_time),
        end_time=as_utc(data.end_time),
        number_of_guests=data.number_of_guests,
        houseboat_id=data.houseboat_id,
        restaurant_table_id=data.restaurant_table_id,
        daily_travel_package_id=data.daily_travel_package_id,
        total_price=data.total_price,
        notes=data.notes,
        source=data.source,
        status=BookingStatus.PENDING.value,
    )
    db.add(booking)
    await db.flush()
    await db.refresh(booking)
    await db.commit()

    logger.info(
        "booking_requested",
        booking_id=booking.id,
        resource=booking.resource_type.value if booking.resource_type else None,
    )

    await notifier.send_booking_request(booking)
    return booking


async def get_booking(db: AsyncSession, booking_id: str) -> Booking:
    result = await db.execute(select(Booking).where(Booking.id == booking_id))
    booking = result.scalar_one_or_none()

    if not booking:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Booking not found",
        )
    return booking


async def list_bookings(db: AsyncSession, status_filter: Optional[str] = None) -> list[Booking]:
    """All bookings ordered by start time, optionally narrowed to one status."""
    query = select(Booking)
    if status_filter:
        query = query.where(Booking.status == status_filter)
    result = await db.execute(query.order_by(Booking.start_time.asc()))
    return list(result.scalars().all())


async def update_booking_status(
    db: AsyncSession,
    booking_id: str,
    data: BookingStatusUpdate,
    notifier: NotificationService,
) -> Booking:
    """Staff status change. Confirmations and cancellations are emailed to the client."""
    booking = await get_booking(db, booking_id)
    previous = booking.status

    booking.status = data.status
    if data.notes is not None:
        booking.notes = data.notes
    await db.flush()
    await db.refresh(booking)
    await db.commit()

    logger.info("booking_status_changed", booking_id=booking.id, previous=previous, status=booking.status)

    if previous != booking.status:
        await notifier.send_status_update(booking, booking.status)
    return booking


async def delete_booking(db: AsyncSession, booking_id: str) -> None:
    """Explicit staff hard delete. Tokens and ledger rows go with the booking."""
    booking = await get_booking(db, booking_id)

    await db.execute(delete(PaymentToken).where(PaymentToken.booking_id == booking.id))
    await db.execute(delete(PaymentTransaction).where(PaymentTransaction.booking_id == booking.id))
    await db.delete(booking)
    await db.flush()

    logger.info("booking_deleted", booking_id=booking_id)
