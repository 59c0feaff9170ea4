import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.application.errors import CapacityError, ValidationError
from app.config import settings
from app.domain.clock import utcnow
from app.domain.money import ZERO, to_money
from app.domain.payment_request_status import PaymentRequestStatus
from app.infrastructure.db.models import PaymentRequest
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)

MIN_UNIQUE_CODE = 1
MAX_UNIQUE_CODE = 999


@dataclass(frozen=True)
class UniqueAmount:
    base_amount: Decimal
    unique_code: int
    total_amount: Decimal


def draw_unique_code() -> int:
    return secrets.randbelow(MAX_UNIQUE_CODE) + MIN_UNIQUE_CODE


def generate_unique_amount(base_amount: Decimal, *, rng: Callable[[], int] = draw_unique_code) -> UniqueAmount:
    unique_code = rng()
    if not MIN_UNIQUE_CODE <= unique_code <= MAX_UNIQUE_CODE:
        raise ValueError(f"unique code out of range: {unique_code}")
    base = to_money(base_amount)
    return UniqueAmount(base_amount=base, unique_code=unique_code, total_amount=to_money(base + unique_code))


def is_total_amount_pending(db: Session, *, total_amount: Decimal, now: datetime) -> bool:
    existing = db.execute(
        select(PaymentRequest.id)
        .where(
            PaymentRequest.total_amount == total_amount,
            PaymentRequest.status == PaymentRequestStatus.pending,
            PaymentRequest.expires_at > now,
        )
        .limit(1)
    ).scalar_one_or_none()
    return existing is not None


def get_available_unique_amount(
    db: Session,
    *,
    base_amount: Decimal,
    now: datetime | None = None,
    rng: Callable[[], int] = draw_unique_code,
    max_attempts: int | None = None,
) -> UniqueAmount:
    """
    Pick a transfer amount not used by any pending, unexpired request across all banks.

    This is a pre-check; the partial unique index on pending totals is what rejects a
    concurrent insert that slipped between the check and the write.
    """
    if base_amount <= ZERO:
        raise ValidationError("Base amount must be greater than zero")
    current = now or utcnow()
    attempts = max_attempts if max_attempts is not None else settings.unique_amount_max_attempts
    for attempt in range(1, attempts + 1):
        candidate = generate_unique_amount(base_amount, rng=rng)
        if not is_total_amount_pending(db, total_amount=candidate.total_amount, now=current):
            if attempt > 1:
                logger.info(
                    "unique_amount_allocated_after_retries",
                    base_amount=str(candidate.base_amount),
                    attempts=attempt,
                )
            return candidate
    logger.warning("unique_amount_exhausted", base_amount=str(base_amount), attempts=attempts)
    raise CapacityError("Too many pending payments, try again shortly")
