"""
Stripe implementation of the PaymentGateway interface.

The Stripe SDK is synchronous; calls run in a worker thread so a slow
provider does not stall the event loop. SDK errors are mapped onto the
gateway's own exception types so callers never import stripe.
"""

import asyncio
from typing import Any, Optional

import stripe

from getaways.core.logging import get_logger
from getaways.services.interfaces.payment_gateway import (
    CheckoutSession,
    CheckoutSessionRequest,
    InvalidCheckoutSession,
    InvalidWebhookSignature,
    PaymentGateway,
    PaymentGatewayConfigError,
    PaymentGatewayError,
    WebhookEvent,
    to_minor_units,
)

logger = get_logger(__name__)


def _field(obj: Any, name: str) -> Any:
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(name)
    return getattr(obj, name, None)


def _plain_dict(obj: Any) -> dict[str, str]:
    if obj is None:
        return {}
    if isinstance(obj, dict):
        data = dict(obj)
    elif callable(getattr(obj, "to_dict", None)):
        data = dict(obj.to_dict())
    else:
        return {}
    return {str(k): "" if v is None else str(v) for k, v in data.items()}


def _object_id(value: Any) -> Optional[str]:
    """payment_intent is either an id string or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return _field(value, "id")


def to_checkout_session(obj: Any) -> CheckoutSession:
    details = _field(obj, "customer_details")
    return CheckoutSession(
        id=_field(obj, "id"),
        payment_status=_field(obj, "payment_status") or "unpaid",
        amount_total=_field(obj, "amount_total") or 0,
        currency=_field(obj, "currency") or "eur",
        metadata=_plain_dict(_field(obj, "metadata")),
        customer_name=_field(details, "name"),
        customer_email=_field(details, "email") or _field(obj, "customer_email"),
        url=_field(obj, "url"),
        payment_intent=_object_id(_field(obj, "payment_intent")),
    )


def _map_stripe_error(exc: stripe.StripeError) -> PaymentGatewayError:
    if isinstance(exc, (stripe.AuthenticationError, stripe.PermissionError)):
        return PaymentGatewayConfigError("Stripe credentials are invalid or unauthorized.")
    if isinstance(exc, stripe.InvalidRequestError):
        return InvalidCheckoutSession(exc.user_message or "Invalid checkout session request.")
    return PaymentGatewayError("Temporary Stripe error, please retry.")


class StripeGateway(PaymentGateway):
    """Hosted Stripe Checkout in payment mode, one line item per session."""

    def __init__(self, api_key: str, webhook_secret: str = ""):
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    def _require_key(self) -> None:
        if not self.api_key:
            raise PaymentGatewayConfigError("Stripe secret key not configured.")

    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        self._require_key()
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.retrieve, session_id, api_key=self.api_key
            )
        except stripe.StripeError as e:
            logger.error("stripe_session_retrieve_failed", session_id=session_id, error=str(e))
            raise _map_stripe_error(e) from e
        return to_checkout_session(session)

    async def create_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        self._require_key()
        params = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": request.currency,
                        "product_data": {
                            "name": request.product_name,
                            "description": request.description,
                        },
                        "unit_amount": to_minor_units(request.amount),
                    },
                    "quantity": 1,
                }
            ],
            "metadata": request.metadata,
            "success_url": request.success_url,
            "cancel_url": request.cancel_url,
        }
        if request.customer_email:
            params["customer_email"] = request.customer_email

        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create, api_key=self.api_key, **params
            )
        except stripe.StripeError as e:
            logger.error("stripe_session_create_failed", error=str(e))
            raise _map_stripe_error(e) from e

        logger.info("stripe_session_created", session_id=_field(session, "id"))
        return to_checkout_session(session)

    def parse_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        if not self.webhook_secret:
            raise PaymentGatewayConfigError("Stripe webhook secret not configured.")
        try:
            event = stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except (ValueError, stripe.SignatureVerificationError) as e:
            raise InvalidWebhookSignature(str(e)) from e

        event_type = _field(event, "type")
        session = None
        if event_type and event_type.startswith("checkout.session."):
            session = to_checkout_session(_field(_field(event, "data"), "object"))
        return WebhookEvent(type=event_type, session=session)
