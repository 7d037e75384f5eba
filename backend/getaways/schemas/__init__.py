from getaways.schemas.staff import StaffCreate, StaffResponse, StaffLogin, Token
from getaways.schemas.booking import (
    BookingRequestCreate, BookingStatusUpdate, BookingResponse, BookingListResponse,
)
from getaways.schemas.payment import (
    BillingInfo,
    CheckoutSessionCreate, CheckoutSessionResponse,
    VerifySessionRequest, VerifySessionResponse,
    PaymentLinkCreate, PaymentLinkResponse, PaymentLinkValidation,
    TransactionCreate, TransactionUpdate, TransactionResponse, TransactionListResponse,
)

__all__ = [
    "StaffCreate", "StaffResponse", "StaffLogin", "Token",
    "BookingRequestCreate", "BookingStatusUpdate", "BookingResponse", "BookingListResponse",
    "BillingInfo",
    "CheckoutSessionCreate", "CheckoutSessionResponse",
    "VerifySessionRequest", "VerifySessionResponse",
    "PaymentLinkCreate", "PaymentLinkResponse", "PaymentLinkValidation",
    "TransactionCreate", "TransactionUpdate", "TransactionResponse", "TransactionListResponse",
]
