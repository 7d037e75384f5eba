"""
Payment endpoints: checkout, payment links, session verification and the manual ledger.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from getaways.api.deps import get_notifier, get_reconciler
from getaways.core.config import Settings, get_settings
from getaways.core.security import get_current_staff
from getaways.db.session import get_db
from getaways.models.staff import Staff
from getaways.schemas.payment import (
    CheckoutSessionCreate,
    CheckoutSessionResponse,
    PaymentLinkCreate,
    PaymentLinkResponse,
    PaymentLinkValidation,
    TransactionCreate,
    TransactionListResponse,
    TransactionResponse,
    TransactionUpdate,
    VerifySessionRequest,
    VerifySessionResponse,
)
from getaways.services.checkout_service import create_checkout_session
from getaways.services.interfaces.payment_gateway import PaymentGateway
from getaways.services.notification_service import NotificationService
from getaways.services.payment_link_service import generate_payment_link, validate_payment_link
from getaways.services.payment_service import (
    create_transaction,
    delete_transaction,
    list_transactions,
    update_transaction,
)
from getaways.services.provider_factory import get_payment_gateway
from getaways.services.reconciliation_service import PaymentReconciler

router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post("/create-checkout-session", response_model=CheckoutSessionResponse)
async def create_checkout_session_endpoint(
    data: CheckoutSessionCreate,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_settings),
):
    """Start a hosted checkout for a payment link token or a new website reservation."""
    return await create_checkout_session(db, gateway, data, settings)


@router.post(
    "/verify-session",
    response_model=VerifySessionResponse,
    response_model_exclude_none=True,
)
async def verify_session_endpoint(
    data: VerifySessionRequest,
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    """
    Called by the success page after the customer returns from checkout.

    Safe to call any number of times for the same session: the payment is
    applied once and later calls answer "Already processed".
    """
    return await reconciler.verify_session(data.session_id, data.token)


@router.post("/link/generate", response_model=PaymentLinkResponse)
async def generate_payment_link_endpoint(
    data: PaymentLinkCreate,
    staff: Staff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
    notifier: NotificationService = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
):
    """Issue a single-use payment link for a booking's balance. Staff only."""
    return await generate_payment_link(db, data, staff, notifier, settings)


@router.get("/link/validate", response_model=PaymentLinkValidation)
async def validate_payment_link_endpoint(
    token: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """What the public payment page shows before checkout."""
    return await validate_payment_link(db, token, settings.CHECKOUT_CURRENCY)


@router.get("", response_model=TransactionListResponse)
async def list_transactions_endpoint(
    booking_id: Optional[str] = Query(None, alias="bookingId"),
    staff: Staff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    transactions = await list_transactions(db, booking_id)
    return {"transactions": transactions}


@router.post("", response_model=TransactionResponse, status_code=status.HTTP_201_CREATED)
async def create_transaction_endpoint(
    data: TransactionCreate,
    staff: Staff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    """Record a manual payment and recompute the booking's totals."""
    return await create_transaction(db, data, staff.id)


@router.put("/{transaction_id}", response_model=TransactionResponse)
async def update_transaction_endpoint(
    transaction_id: int,
    data: TransactionUpdate,
    staff: Staff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    return await update_transaction(db, transaction_id, data, staff.id)


@router.delete("/{transaction_id}")
async def delete_transaction_endpoint(
    transaction_id: int,
    staff: Staff = Depends(get_current_staff),
    db: AsyncSession = Depends(get_db),
):
    await delete_transaction(db, transaction_id, staff.id)
    return {"success": True}
