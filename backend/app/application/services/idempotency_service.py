import hashlib
import json
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.domain.clock import utcnow
from app.domain.record_status import RecordStatus
from app.infrastructure.db.models import IdempotencyRecord
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class IdempotentResult:
    is_duplicate: bool
    result: Any


def _canonical_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"), default=str)


def generate_idempotency_key(actor_id: str, action: str, payload: Any, now: datetime | None = None) -> str:
    """Deterministic key for one actor's logical operation inside a one-minute bucket."""
    current = now or utcnow()
    minute_bucket = int(current.timestamp() // 60)
    data = _canonical_json({"actor_id": actor_id, "action": action, "payload": payload, "bucket": minute_bucket})
    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def get_active_idempotency_record(db: Session, *, key: str, now: datetime | None = None) -> IdempotencyRecord | None:
    current = now or utcnow()
    return db.execute(
        select(IdempotencyRecord)
        .where(
            IdempotencyRecord.key == key,
            IdempotencyRecord.status == RecordStatus.active,
            IdempotencyRecord.expires_at > current,
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def with_idempotency(
    db: Session,
    *,
    key: str,
    action: Callable[[], Any],
    ttl_hours: int | None = None,
    now: datetime | None = None,
) -> IdempotentResult:
    """
    Run `action` at most once per key while its record is active.

    `action` must return a JSON-serializable value; callers receive the stored
    representation on both the first and any repeated call so payloads are identical.
    """
    current = now or utcnow()
    existing = get_active_idempotency_record(db, key=key, now=current)
    if existing is not None:
        logger.info("idempotent_replay", idempotency_key=key)
        return IdempotentResult(is_duplicate=True, result=json.loads(existing.response))

    result = action()
    serialized = _canonical_json(result)
    expires_at = current + timedelta(hours=ttl_hours if ttl_hours is not None else settings.idempotency_ttl_hours)

    record = db.execute(
        select(IdempotencyRecord).where(IdempotencyRecord.key == key).execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if record is None:
        db.add(IdempotencyRecord(key=key, response=serialized, expires_at=expires_at, status=RecordStatus.active))
    else:
        record.response = serialized
        record.expires_at = expires_at
        record.status = RecordStatus.active
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = get_active_idempotency_record(db, key=key, now=current)
        if winner is None:
            raise
        logger.info("idempotent_race_resolved", idempotency_key=key)
        return IdempotentResult(is_duplicate=True, result=json.loads(winner.response))
    return IdempotentResult(is_duplicate=False, result=json.loads(serialized))


def deactivate_expired_idempotency_records(db: Session, *, now: datetime | None = None) -> int:
    current = now or utcnow()
    updated = db.execute(
        update(IdempotencyRecord)
        .where(IdempotencyRecord.status == RecordStatus.active, IdempotencyRecord.expires_at < current)
        .values(status=RecordStatus.inactive)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    return updated
