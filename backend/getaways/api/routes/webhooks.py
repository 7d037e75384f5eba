"""
Stripe webhook. Delivery is at-least-once and races the customer's redirect,
so completed sessions go through the same reconcile() as verify-session.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from getaways.api.deps import get_reconciler
from getaways.core.logging import get_logger
from getaways.services.interfaces.payment_gateway import (
    InvalidWebhookSignature,
    PaymentGatewayConfigError,
)
from getaways.services.reconciliation_service import PaymentReconciler

logger = get_logger(__name__)
router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

COMPLETED_EVENTS = ("checkout.session.completed", "checkout.session.async_payment_succeeded")


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    reconciler: PaymentReconciler = Depends(get_reconciler),
):
    if not stripe_signature:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Missing stripe-signature header")

    payload = await request.body()
    try:
        event = reconciler.gateway.parse_webhook(payload, stripe_signature)
    except InvalidWebhookSignature as e:
        logger.warning("webhook_signature_rejected", error=str(e))
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid signature")
    except PaymentGatewayConfigError:
        logger.error("webhook_secret_not_configured")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Webhooks are not configured")

    session = event.session
    if event.type not in COMPLETED_EVENTS or session is None:
        logger.info("webhook_ignored", event_type=event.type)
        return {"received": True}

    if not session.is_paid:
        logger.info("webhook_session_unpaid", session_id=session.id, payment_status=session.payment_status)
        return {"received": True}

    try:
        result = await reconciler.reconcile(session)
    except HTTPException as e:
        if e.status_code >= 500:
            raise
        # Redelivering the same event cannot fix a client error
        logger.warning("webhook_session_rejected", session_id=session.id, error=e.detail)
        return {"received": True}

    logger.info(
        "webhook_session_reconciled",
        session_id=session.id,
        booking_id=result.booking_id,
        applied=result.applied,
    )
    return {"received": True}
