from dataclasses import dataclass
from datetime import datetime, timedelta
from math import ceil

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.application.errors import RateLimitError
from app.domain.clock import as_utc, utcnow
from app.domain.rate_limits import RateLimitAction, get_rate_limit_config
from app.domain.record_status import RecordStatus
from app.infrastructure.db.models import RateLimitRecord
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    remaining: int
    reset: datetime
    limit: int

    def retry_after_seconds(self, now: datetime | None = None) -> int:
        current = now or utcnow()
        return max(ceil((self.reset - current).total_seconds()), 0)


def rate_limit_key(*, identifier: str, action: str) -> str:
    return f"{identifier}:{action}"


def _get_record(db: Session, key: str) -> RateLimitRecord | None:
    return db.execute(
        select(RateLimitRecord).where(RateLimitRecord.key == key).execution_options(populate_existing=True)
    ).scalar_one_or_none()


def check_rate_limit(
    db: Session,
    *,
    action: RateLimitAction | str,
    identifier: str,
    now: datetime | None = None,
    _retry: bool = True,
) -> RateLimitResult:
    """
    Count one attempt of `action` by `identifier` against its fixed window.

    The increment is a conditional UPDATE guarded by `count < limit`, so concurrent
    callers cannot push a window past its limit; the unique key backs the insert of a
    fresh window.
    """
    action_name = RateLimitAction(action).value
    config = get_rate_limit_config(action_name)
    key = rate_limit_key(identifier=identifier, action=action_name)
    current = now or utcnow()
    window_floor = current - timedelta(seconds=config.window_seconds)

    incremented = db.execute(
        update(RateLimitRecord)
        .where(
            RateLimitRecord.key == key,
            RateLimitRecord.status == RecordStatus.active,
            RateLimitRecord.window_start > window_floor,
            RateLimitRecord.count < config.limit,
        )
        .values(count=RateLimitRecord.count + 1)
        .execution_options(synchronize_session=False)
    ).rowcount
    if incremented:
        record = _get_record(db, key)
        db.commit()
        return RateLimitResult(
            success=True,
            remaining=max(config.limit - record.count, 0),
            reset=as_utc(record.expires_at),
            limit=config.limit,
        )

    record = _get_record(db, key)
    if (
        record is not None
        and record.status == RecordStatus.active
        and as_utc(record.window_start) > window_floor
    ):
        db.rollback()
        logger.warning("rate_limit_exceeded", action=action_name, identifier=identifier, limit=config.limit)
        return RateLimitResult(success=False, remaining=0, reset=as_utc(record.expires_at), limit=config.limit)

    expires_at = current + timedelta(seconds=config.window_seconds)
    if record is None:
        db.add(
            RateLimitRecord(
                key=key,
                action=action_name,
                identifier=identifier,
                count=1,
                window_start=current,
                expires_at=expires_at,
                status=RecordStatus.active,
            )
        )
    else:
        record.count = 1
        record.window_start = current
        record.expires_at = expires_at
        record.status = RecordStatus.active
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        if not _retry:
            raise
        return check_rate_limit(db, action=action_name, identifier=identifier, now=current, _retry=False)
    return RateLimitResult(success=True, remaining=config.limit - 1, reset=expires_at, limit=config.limit)


def enforce_rate_limit(
    db: Session,
    *,
    action: RateLimitAction | str,
    identifier: str,
    now: datetime | None = None,
) -> RateLimitResult:
    result = check_rate_limit(db, action=action, identifier=identifier, now=now)
    if not result.success:
        retry_after = result.retry_after_seconds(now)
        raise RateLimitError(f"Too many requests. Try again in {retry_after} seconds.", result)
    return result


def get_rate_limit_status(
    db: Session,
    *,
    action: RateLimitAction | str,
    identifier: str,
    now: datetime | None = None,
) -> RateLimitResult:
    action_name = RateLimitAction(action).value
    config = get_rate_limit_config(action_name)
    current = now or utcnow()
    window_floor = current - timedelta(seconds=config.window_seconds)
    record = _get_record(db, rate_limit_key(identifier=identifier, action=action_name))
    if record is None or record.status != RecordStatus.active or as_utc(record.window_start) <= window_floor:
        return RateLimitResult(
            success=True,
            remaining=config.limit,
            reset=current + timedelta(seconds=config.window_seconds),
            limit=config.limit,
        )
    return RateLimitResult(
        success=record.count < config.limit,
        remaining=max(config.limit - record.count, 0),
        reset=as_utc(record.expires_at),
        limit=config.limit,
    )


def reset_rate_limit(db: Session, *, action: RateLimitAction | str, identifier: str) -> int:
    action_name = RateLimitAction(action).value
    key = rate_limit_key(identifier=identifier, action=action_name)
    updated = db.execute(
        update(RateLimitRecord)
        .where(RateLimitRecord.key == key, RateLimitRecord.status == RecordStatus.active)
        .values(status=RecordStatus.inactive)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    logger.info("rate_limit_reset", action=action_name, identifier=identifier, records=updated)
    return updated


def deactivate_expired_rate_limits(db: Session, *, now: datetime | None = None) -> int:
    current = now or utcnow()
    updated = db.execute(
        update(RateLimitRecord)
        .where(RateLimitRecord.status == RecordStatus.active, RateLimitRecord.expires_at < current)
        .values(status=RecordStatus.inactive)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    return updated


def list_rate_limit_records_query(*, action: str | None = None, identifier: str | None = None):
    query = select(RateLimitRecord).order_by(RateLimitRecord.updated_at.desc(), RateLimitRecord.id.desc())
    if action is not None:
        query = query.where(RateLimitRecord.action == action)
    if identifier is not None:
        query = query.where(RateLimitRecord.identifier == identifier)
    return query


def serialize_rate_limit_record(record: RateLimitRecord) -> dict:
    return {
        "id": record.id,
        "key": record.key,
        "action": record.action,
        "identifier": record.identifier,
        "count": record.count,
        "window_start": record.window_start,
        "expires_at": record.expires_at,
        "status": record.status,
        "created_at": record.created_at,
        "updated_at": record.updated_at,
    }
