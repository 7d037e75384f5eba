"""
Payment gateway interface.
Allows swapping the hosted-checkout provider (or a test double) without
touching the reconciliation logic.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

CENTS = Decimal("0.01")


def to_minor_units(amount: Decimal) -> int:
    """Convert a major-unit amount (e.g. 150.50 EUR) to integer cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_minor_units(amount: int) -> Decimal:
    return (Decimal(amount or 0) / 100).quantize(CENTS, rounding=ROUND_HALF_UP)


class PaymentGatewayError(Exception):
    """Provider call failed. The caller may retry."""


class PaymentGatewayConfigError(PaymentGatewayError):
    """Provider credentials are missing or rejected."""


class InvalidCheckoutSession(PaymentGatewayError):
    """The provider does not know the requested session."""


class InvalidWebhookSignature(Exception):
    """Webhook payload could not be authenticated."""


@dataclass
class CheckoutSession:
    """Read-only view of a provider checkout session."""

    id: str
    payment_status: str
    amount_total: int  # minor units
    currency: str = "eur"
    metadata: dict[str, str] = field(default_factory=dict)
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    url: Optional[str] = None
    payment_intent: Optional[str] = None

    @property
    def is_paid(self) -> bool:
        return self.payment_status == "paid"

    @property
    def amount_paid(self) -> Decimal:
        return from_minor_units(self.amount_total)


@dataclass
class CheckoutSessionRequest:
    amount: Decimal  # major units
    currency: str
    product_name: str
    description: str
    success_url: str
    cancel_url: str
    metadata: dict[str, str] = field(default_factory=dict)
    customer_email: Optional[str] = None


@dataclass
class WebhookEvent:
    type: str
    session: Optional[CheckoutSession] = None


class PaymentGateway(ABC):
    """
    Interface for hosted checkout providers.

    Implementations:
    - StripeGateway: Stripe Checkout Sessions
    """

    @abstractmethod
    async def retrieve_session(self, session_id: str) -> CheckoutSession:
        """
        Fetch a checkout session by id.

        Raises:
            InvalidCheckoutSession: unknown session id
            PaymentGatewayError: provider unavailable
        """

    @abstractmethod
    async def create_session(self, request: CheckoutSessionRequest) -> CheckoutSession:
        """Create a hosted checkout session and return it (with its redirect url)."""

    @abstractmethod
    def parse_webhook(self, payload: bytes, signature: str) -> WebhookEvent:
        """
        Authenticate and decode a webhook delivery.

        Raises:
            InvalidWebhookSignature: payload or signature rejected
        """
