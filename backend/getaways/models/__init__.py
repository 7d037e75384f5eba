from getaways.models.booking import Booking, BookingStatus, PaymentStatus, ResourceType
from getaways.models.client import Client
from getaways.models.payment_token import PaymentToken
from getaways.models.payment_transaction import PaymentMethod, PaymentTransaction, TransactionStatus
from getaways.models.staff import Staff

__all__ = [
    "Booking", "BookingStatus", "PaymentStatus", "ResourceType",
    "Client",
    "PaymentToken",
    "PaymentTransaction", "PaymentMethod", "TransactionStatus",
    "Staff",
]
