from app.application.services.scholarship_service import sync_scholarships
from app.infrastructure.db.session import SessionLocal
from app.infrastructure.logging import get_logger
from app.infrastructure.tasks.celery_app import celery_app

logger = get_logger(__name__)


@celery_app.task(name="scholarships.sync")
def sync_scholarships_task(student_id: int | None = None, class_academic_id: int | None = None) -> dict:
    db = SessionLocal()
    logger.info("scholarship_sync_task_started", student_id=student_id, class_academic_id=class_academic_id)
    try:
        result = sync_scholarships(db, student_id=student_id, class_academic_id=class_academic_id)
        return {
            "total_tuitions": result.total_tuitions,
            "updated": result.updated,
            "status_changed": result.status_changed,
            "skipped_paid_tuitions": result.skipped_paid_tuitions,
        }
    except Exception as exc:
        logger.error("scholarship_sync_task_failed", error=str(exc))
        raise
    finally:
        db.close()


def enqueue_scholarship_sync_task(*, student_id: int | None = None, class_academic_id: int | None = None) -> str:
    task = sync_scholarships_task.delay(student_id=student_id, class_academic_id=class_academic_id)
    return str(task.id)
