"""
Resend implementation of the EmailSender interface.
"""

import asyncio

import resend

from getaways.core.logging import get_logger
from getaways.services.interfaces.email_sender import EmailSender

logger = get_logger(__name__)


class ResendEmailSender(EmailSender):
    """Plain-text transactional email through the Resend API."""

    def __init__(self, api_key: str, from_address: str):
        resend.api_key = api_key
        self.from_address = from_address

    async def send(self, to_address: str, subject: str, body_text: str) -> None:
        params = {
            "from": self.from_address,
            "to": [to_address],
            "subject": subject,
            "text": body_text,
        }
        # The SDK is blocking; keep it off the event loop
        response = await asyncio.to_thread(resend.Emails.send, params)
        logger.info("email_sent", to=to_address, subject=subject, message_id=_message_id(response))


def _message_id(response) -> str:
    if isinstance(response, dict):
        return response.get("id", "")
    return getattr(response, "id", "") or ""
