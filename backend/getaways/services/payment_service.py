"""
Manual payment ledger and balance reconciliation.

Staff record cash, card and transfer payments here. After every change the
booking's amount_paid and payment_status are recomputed from the ledger, so
the booking totals always equal the sum of its paid transactions.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from fastapi import HTTPException, status

from getaways.core.logging import get_logger
from getaways.core.timeutils import as_utc, utcnow
from getaways.models.booking import Booking, BookingStatus, PaymentStatus
from getaways.models.payment_transaction import PaymentTransaction, TransactionStatus
from getaways.schemas.payment import TransactionCreate, TransactionUpdate
from getaways.services.booking_service import get_booking

logger = get_logger(__name__)


async def recalculate_booking_totals(db: AsyncSession, booking: Booking) -> Booking:
    """
    amount_paid    = sum of paid transactions
    payment_status = fully_paid if that covers a positive total_price,
                     deposit_paid if anything was paid, unpaid otherwise
    A Pending booking with any payment becomes Confirmed.
    """
    result = await db.execute(
        select(func.coalesce(func.sum(PaymentTransaction.amount), 0)).where(
            PaymentTransaction.booking_id == booking.id,
            PaymentTransaction.status == TransactionStatus.PAID.value,
        )
    )
    total_paid = Decimal(str(result.scalar_one())).quantize(Decimal("0.01"))
    total_price = Decimal(booking.total_price or 0)

    if total_price > 0 and total_paid >= total_price:
        payment_status = PaymentStatus.FULLY_PAID
    elif total_paid > 0:
        payment_status = PaymentStatus.DEPOSIT_PAID
    else:
        payment_status = PaymentStatus.UNPAID

    booking.amount_paid = total_paid
    booking.payment_status = payment_status.value
    if total_paid > 0 and booking.status == BookingStatus.PENDING.value:
        booking.status = BookingStatus.CONFIRMED.value

    await db.flush()
    logger.info(
        "booking_totals_recalculated",
        booking_id=booking.id,
        amount_paid=str(total_paid),
        payment_status=booking.payment_status,
    )
    return booking


async def list_transactions(db: AsyncSession, booking_id: Optional[str] = None) -> list[PaymentTransaction]:
    query = select(PaymentTransaction)
    if booking_id:
        query = query.where(PaymentTransaction.booking_id == booking_id)
    result = await db.execute(query.order_by(PaymentTransaction.paid_at.desc()))
    return list(result.scalars().all())


async def get_transaction(db: AsyncSession, transaction_id: int) -> PaymentTransaction:
    result = await db.execute(select(PaymentTransaction).where(PaymentTransaction.id == transaction_id))
    transaction = result.scalar_one_or_none()
    if not transaction:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Transaction not found",
        )
    return transaction


async def create_transaction(db: AsyncSession, data: TransactionCreate, staff_id: int) -> PaymentTransaction:
    booking = await get_booking(db, data.booking_id)

    transaction = PaymentTransaction(
        booking_id=booking.id,
        amount=data.amount,
        method=data.method,
        status=data.status,
        reference=data.ref,
        notes=data.notes,
        paid_at=as_utc(data.date) or utcnow(),
    )
    db.add(transaction)
    await db.flush()
    await recalculate_booking_totals(db, booking)
    await db.refresh(transaction)

    logger.info(
        "transaction_recorded",
        transaction_id=transaction.id,
        booking_id=booking.id,
        amount=str(data.amount),
        method=data.method,
        staff_id=staff_id,
    )
    return transaction


async def update_transaction(
    db: AsyncSession,
    transaction_id: int,
    data: TransactionUpdate,
    staff_id: int,
) -> PaymentTransaction:
    transaction = await get_transaction(db, transaction_id)

    changes = data.model_dump(exclude_unset=True)
    if "amount" in changes and changes["amount"] is not None:
        transaction.amount = changes["amount"]
    if changes.get("method"):
        transaction.method = changes["method"]
    if changes.get("status"):
        transaction.status = changes["status"]
    if "ref" in changes:
        transaction.reference = changes["ref"]
    if "notes" in changes:
        transaction.notes = changes["notes"]
    if changes.get("date"):
        transaction.paid_at = as_utc(changes["date"])
    await db.flush()

    booking = await get_booking(db, transaction.booking_id)
    await recalculate_booking_totals(db, booking)
    await db.refresh(transaction)

    logger.info("transaction_updated", transaction_id=transaction.id, fields=sorted(changes), staff_id=staff_id)
    return transaction


async def delete_transaction(db: AsyncSession, transaction_id: int, staff_id: int) -> None:
    transaction = await get_transaction(db, transaction_id)
    booking_id = transaction.booking_id

    await db.delete(transaction)
    await db.flush()

    booking = await get_booking(db, booking_id)
    await recalculate_booking_totals(db, booking)

    logger.info("transaction_deleted", transaction_id=transaction_id, booking_id=booking_id, staff_id=staff_id)
