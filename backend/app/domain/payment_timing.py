from dataclasses import dataclass
from datetime import datetime, timedelta

BACKEND_EXPIRY_MINUTES = 10
DISPLAY_EXPIRY_MINUTES = 5


@dataclass(frozen=True)
class PaymentTiming:
    backend_expires_at: datetime
    display_expires_at: datetime
    display_minutes: int


def calculate_payment_timing(
    now: datetime,
    *,
    backend_minutes: int = BACKEND_EXPIRY_MINUTES,
    display_minutes: int = DISPLAY_EXPIRY_MINUTES,
) -> PaymentTiming:
    """
    Dual timers for a payment request.

    The student sees the short display window; the backend deadline keeps a buffer
    for late bank notifications and is the only one that expires a request.
    """
    if display_minutes > backend_minutes:
        raise ValueError("display window cannot exceed backend window")
    return PaymentTiming(
        backend_expires_at=now + timedelta(minutes=backend_minutes),
        display_expires_at=now + timedelta(minutes=display_minutes),
        display_minutes=display_minutes,
    )


def display_deadline(
    backend_expires_at: datetime,
    *,
    backend_minutes: int = BACKEND_EXPIRY_MINUTES,
    display_minutes: int = DISPLAY_EXPIRY_MINUTES,
) -> datetime:
    return backend_expires_at - timedelta(minutes=backend_minutes - display_minutes)


def is_backend_expired(backend_expires_at: datetime, now: datetime) -> bool:
    return now >= backend_expires_at


def is_display_expired(
    backend_expires_at: datetime,
    now: datetime,
    *,
    backend_minutes: int = BACKEND_EXPIRY_MINUTES,
    display_minutes: int = DISPLAY_EXPIRY_MINUTES,
) -> bool:
    deadline = display_deadline(backend_expires_at, backend_minutes=backend_minutes, display_minutes=display_minutes)
    return now >= deadline
