"""
Shared endpoint dependencies: wires the external providers into services.
Tests replace get_payment_gateway / get_email_sender via dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from getaways.core.config import ReconciliationConfig, Settings, get_settings
from getaways.db.session import get_db
from getaways.services.interfaces.email_sender import EmailSender
from getaways.services.interfaces.payment_gateway import PaymentGateway
from getaways.services.notification_service import NotificationService
from getaways.services.provider_factory import get_email_sender, get_payment_gateway
from getaways.services.reconciliation_service import PaymentReconciler


def get_notifier(
    sender: EmailSender = Depends(get_email_sender),
    settings: Settings = Depends(get_settings),
) -> NotificationService:
    return NotificationService(
        sender,
        timeout_seconds=settings.EMAIL_SEND_TIMEOUT_SECONDS,
        business_name=settings.BUSINESS_NAME,
    )


def get_reconciler(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: NotificationService = Depends(get_notifier),
    settings: Settings = Depends(get_settings),
) -> PaymentReconciler:
    return PaymentReconciler(db, gateway, notifier, ReconciliationConfig.from_settings(settings))
