"""
External provider factory.
Configures which payment gateway and email sender the services use.
"""

from typing import Optional

from getaways.core.config import get_settings
from getaways.services.email_service import ResendEmailSender
from getaways.services.interfaces.email_sender import EmailSender
from getaways.services.interfaces.log_email_sender import LogEmailSender
from getaways.services.interfaces.payment_gateway import PaymentGateway
from getaways.services.stripe_gateway import StripeGateway


def build_email_sender() -> EmailSender:
    """
    Email sender selection:
    - RESEND_API_KEY set: ResendEmailSender
    - otherwise: LogEmailSender (messages are logged, not sent)
    """
    settings = get_settings()
    if settings.RESEND_API_KEY:
        return ResendEmailSender(settings.RESEND_API_KEY, settings.EMAIL_FROM)
    return LogEmailSender()


# Singleton instances
_gateway: Optional[PaymentGateway] = None
_email_sender: Optional[EmailSender] = None


def get_payment_gateway() -> PaymentGateway:
    """Get payment gateway singleton."""
    global _gateway
    if _gateway is None:
        settings = get_settings()
        _gateway = StripeGateway(settings.STRIPE_SECRET_KEY, settings.STRIPE_WEBHOOK_SECRET)
    return _gateway


def get_email_sender() -> EmailSender:
    """Get email sender singleton."""
    global _email_sender
    if _email_sender is None:
        _email_sender = build_email_sender()
    return _email_sender
