from enum import Enum


class PaymentRequestStatus(str, Enum):
    pending = "pending"
    verified = "verified"
    expired = "expired"
    cancelled = "cancelled"


TERMINAL_PAYMENT_REQUEST_STATUSES = frozenset(
    {PaymentRequestStatus.verified, PaymentRequestStatus.expired, PaymentRequestStatus.cancelled}
)
