from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete
from sqlalchemy.orm import Session

from app.application.services.idempotency_service import deactivate_expired_idempotency_records
from app.application.services.payment_request_service import expire_pending_payment_requests
from app.application.services.rate_limit_service import deactivate_expired_rate_limits
from app.config import settings
from app.domain.clock import utcnow
from app.domain.record_status import RecordStatus
from app.infrastructure.db.models import IdempotencyRecord, RateLimitRecord
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PurgeResult:
    rate_limit_records: int
    idempotency_records: int


def run_expire_payment_requests(db: Session, *, now: datetime | None = None) -> dict:
    expired = expire_pending_payment_requests(db, now=now)
    return {"expired_payment_requests": expired}


def run_deactivate_rate_limits(db: Session, *, now: datetime | None = None) -> dict:
    deactivated = deactivate_expired_rate_limits(db, now=now)
    if deactivated:
        logger.info("rate_limits_deactivated", count=deactivated)
    return {"deactivated_rate_limits": deactivated}


def run_deactivate_idempotency_records(db: Session, *, now: datetime | None = None) -> dict:
    deactivated = deactivate_expired_idempotency_records(db, now=now)
    if deactivated:
        logger.info("idempotency_records_deactivated", count=deactivated)
    return {"deactivated_idempotency_records": deactivated}


def purge_inactive_records(
    db: Session,
    *,
    now: datetime | None = None,
    retention_days: int | None = None,
) -> PurgeResult:
    """Hard-delete inactive rate-limit and idempotency rows whose window ended before the retention cutoff."""
    current = now or utcnow()
    days = retention_days if retention_days is not None else settings.inactive_record_retention_days
    cutoff = current - timedelta(days=days)
    rate_limits = db.execute(
        delete(RateLimitRecord)
        .where(RateLimitRecord.status == RecordStatus.inactive, RateLimitRecord.expires_at < cutoff)
        .execution_options(synchronize_session=False)
    ).rowcount
    idempotency = db.execute(
        delete(IdempotencyRecord)
        .where(IdempotencyRecord.status == RecordStatus.inactive, IdempotencyRecord.expires_at < cutoff)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    logger.info(
        "inactive_records_purged",
        rate_limit_records=rate_limits,
        idempotency_records=idempotency,
        retention_days=days,
    )
    return PurgeResult(rate_limit_records=rate_limits, idempotency_records=idempotency)
