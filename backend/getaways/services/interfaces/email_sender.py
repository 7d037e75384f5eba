"""
Outbound email interface.
"""

from abc import ABC, abstractmethod


class EmailSender(ABC):
    """
    Interface for transactional email providers.

    Implementations:
    - ResendEmailSender: Resend API
    - LogEmailSender: writes the message to the log (no provider configured)
    """

    @abstractmethod
    async def send(self, to_address: str, subject: str, body_text: str) -> None:
        """
        Send a plain-text email.

        Raises on provider failure; callers decide whether that matters.
        """
