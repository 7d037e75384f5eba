"""
Log-only email sender - used when no provider API key is configured.
"""

from getaways.core.logging import get_logger
from getaways.services.interfaces.email_sender import EmailSender

logger = get_logger(__name__)


class LogEmailSender(EmailSender):
    """
    Writes outgoing messages to the log instead of sending them.

    Use when:
    - Local development
    - RESEND_API_KEY is not set
    """

    async def send(self, to_address: str, subject: str, body_text: str) -> None:
        logger.info("email_not_sent_no_provider", to=to_address, subject=subject, body=body_text)
