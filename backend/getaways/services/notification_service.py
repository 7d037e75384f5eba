"""
Notification dispatcher: client receipts, finance alerts and booking emails.

DELIVERY POLICY
===============

Every message is an attempt with a bounded wait:

  asyncio.wait_for(sender.send(...), timeout)

A timeout or provider error is logged, counted in email_dispatch_total and
reported as False. Nothing here raises, so callers can send after they have
committed their state without risking a failed response. There is no retry;
a message that fails is gone.
"""

import asyncio
from decimal import Decimal
from typing import Optional

from getaways.core.logging import get_logger
from getaways.core.metrics import record_email
from getaways.models.booking import Booking, BookingStatus
from getaways.services.interfaces.email_sender import EmailSender

logger = get_logger(__name__)


def format_amount(amount: Decimal) -> str:
    return f"€{Decimal(amount):.2f}"


def _format_date(value) -> str:
    return value.strftime("%Y-%m-%d") if value else "N/A"


class NotificationService:
    def __init__(self, sender: EmailSender, timeout_seconds: float = 4.0, business_name: str = "Amieira Getaways"):
        self.sender = sender
        self.timeout_seconds = timeout_seconds
        self.business_name = business_name

    async def deliver(self, kind: str, to_address: Optional[str], subject: str, body: str) -> bool:
        """Send one message with a bounded wait. Returns True only if the provider accepted it."""
        if not to_address:
            logger.warning("email_skipped_no_recipient", kind=kind, subject=subject)
            record_email(kind, "skipped")
            return False

        try:
            await asyncio.wait_for(
                self.sender.send(to_address, subject, body),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error("email_timeout", kind=kind, to=to_address, timeout_seconds=self.timeout_seconds)
            record_email(kind, "timeout")
            return False
        except Exception as e:
            logger.error("email_failed", kind=kind, to=to_address, error=str(e))
            record_email(kind, "failed")
            return False

        record_email(kind, "sent")
        return True

    async def send_payment_receipt(self, booking: Booking, amount: Decimal) -> bool:
        subject = f"Payment Receipt - {booking.client_name}"
        body = f"""
Dear {booking.client_name},

We have received your payment of {format_amount(amount)}.

Your reservation is now CONFIRMED.

Billing Details (if provided):
Name: {booking.billing_name or booking.client_name}
NIF: {booking.billing_nif or 'Not provided'}
Address: {booking.billing_address or 'Not provided'}

Thank you for choosing {self.business_name}.
"""
        return await self.deliver("receipt", booking.client_email, subject, body)

    async def send_finance_alert(
        self,
        booking: Booking,
        amount: Decimal,
        session_id: str,
        finance_address: str,
    ) -> bool:
        subject = f"[URGENT] Issue Invoice - Booking {booking.id[:8]}"
        body = f"""
To Finance Department,

A payment has been received via Stripe Checkout. Please issue the invoice/fatura.

Client: {booking.billing_name or booking.client_name}
NIF: {booking.billing_nif or 'N/A'}
Address: {booking.billing_address or 'N/A'}

Amount: {format_amount(amount)}
Booking Date: {_format_date(booking.start_time)}
Service: {booking.service_label}

Booking ID: {booking.id}
Stripe Session: {session_id}
"""
        return await self.deliver("finance", finance_address, subject, body)

    async def send_payment_link(
        self,
        to_address: str,
        client_name: str,
        link: str,
        booking_type: str,
        amount: Decimal,
        ttl_hours: int,
    ) -> bool:
        subject = f"Payment Request for {booking_type} - {self.business_name}"
        body = f"""
Dear {client_name},

A payment link has been generated for your reservation.

Payment Details:
- Service: {booking_type}
- Amount Due: {format_amount(amount)}

Please click the link below to complete your payment securely:
{link}

This link is valid for {ttl_hours} hours.

If you have any questions, simply reply to this email.

Best regards,
The {self.business_name} Team
"""
        return await self.deliver("payment_link", to_address, subject, body)

    async def send_booking_request(self, booking: Booking) -> bool:
        subject = f"Booking Request Received for {booking.service_label}"
        body = f"""
Dear {booking.client_name},

Thank you for your booking request! We have received it and will be reviewing it shortly.

Request Details:
- Service: {booking.service_label}
- Date: {_format_date(booking.start_time)}
- Status: {booking.status}

We will notify you via email once your booking has been confirmed.

Best regards,
The {self.business_name} Team
"""
        return await self.deliver("booking_request", booking.client_email, subject, body)

    async def send_status_update(self, booking: Booking, new_status: str) -> bool:
        if new_status == BookingStatus.CONFIRMED.value:
            subject = f"Your Booking is Confirmed! - {booking.service_label}"
            opening = "Great news! Your booking has been confirmed."
            closing = "We look forward to welcoming you! Please don't hesitate to contact us if you have any questions."
        elif new_status == BookingStatus.CANCELLED.value:
            subject = f"Booking Cancellation Notice - {booking.service_label}"
            opening = "This is a notification that your booking has been cancelled."
            closing = "If you believe this was in error or have any questions, please contact us immediately."
        else:
            return False

        body = f"""
Dear {booking.client_name},

{opening}

Booking Details:
- Service: {booking.service_label}
- Date: {_format_date(booking.start_time)}
- Status: {new_status}

{closing}

Best regards,
The {self.business_name} Team
"""
        return await self.deliver("status_update", booking.client_email, subject, body)
