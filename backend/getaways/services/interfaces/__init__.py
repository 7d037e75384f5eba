"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .email_sender import EmailSender
from .log_email_sender import LogEmailSender
from .payment_gateway import (
    CheckoutSession,
    CheckoutSessionRequest,
    InvalidCheckoutSession,
    InvalidWebhookSignature,
    PaymentGateway,
    PaymentGatewayConfigError,
    PaymentGatewayError,
    WebhookEvent,
)

__all__ = [
    'EmailSender', 'LogEmailSender',
    'PaymentGateway', 'CheckoutSession', 'CheckoutSessionRequest', 'WebhookEvent',
    'PaymentGatewayError', 'PaymentGatewayConfigError', 'InvalidCheckoutSession',
    'InvalidWebhookSignature',
]
