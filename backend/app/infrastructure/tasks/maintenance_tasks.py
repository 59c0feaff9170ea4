from app.application.services.maintenance_service import (
    purge_inactive_records,
    run_deactivate_idempotency_records,
    run_deactivate_rate_limits,
    run_expire_payment_requests,
)
from app.infrastructure.db.session import SessionLocal
from app.infrastructure.logging import get_logger
from app.infrastructure.tasks.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="maintenance.expire_payment_requests")
def expire_payment_requests_task() -> dict:
    db = SessionLocal()
    try:
        return run_expire_payment_requests(db)
    finally:
        db.close()


@celery_app.task(name="maintenance.deactivate_rate_limits")
def deactivate_rate_limits_task() -> dict:
    db = SessionLocal()
    try:
        return run_deactivate_rate_limits(db)
    finally:
        db.close()


@celery_app.task(name="maintenance.deactivate_idempotency_records")
def deactivate_idempotency_records_task() -> dict:
    db = SessionLocal()
    try:
        return run_deactivate_idempotency_records(db)
    finally:
        db.close()


@celery_app.task(name="maintenance.purge_inactive_records")
def purge_inactive_records_task() -> dict:
    db = SessionLocal()
    logger.info("purge_task_started")
    try:
        result = purge_inactive_records(db)
        return {"rate_limit_records": result.rate_limit_records, "idempotency_records": result.idempotency_records}
    except Exception as exc:
        logger.error("purge_task_failed", error=str(exc))
        raise
    finally:
        db.close()
