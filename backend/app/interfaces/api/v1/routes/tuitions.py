from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.application.services.pagination_service import paginate_scalars
from app.application.services.scholarship_service import sync_scholarships
from app.application.services.tuition_service import (
    TuitionFilters,
    build_tuitions_query,
    get_tuition,
    serialize_tuition_response,
)
from app.domain.tuition_status import TuitionStatus
from app.infrastructure.db.models import Employee, Tuition
from app.infrastructure.db.session import get_db
from app.infrastructure.logging import get_logger
from app.infrastructure.tasks.scholarship_tasks import enqueue_scholarship_sync_task
from app.interfaces.api.v1.dependencies.auth import get_current_employee, require_admin
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.pagination import PaginationParams
from app.interfaces.api.v1.schemas.tuition import (
    ScholarshipSyncRequest,
    ScholarshipSyncResponse,
    ScholarshipSyncTaskResponse,
    TuitionListResponse,
    TuitionResponse,
)

router = APIRouter(prefix="/tuitions", tags=["tuitions"])
logger = get_logger(__name__)


@router.get(
    "",
    response_model=TuitionListResponse,
    summary="List tuitions",
    description="Filter tuitions by student, class, academic year, status or period. `search` matches the period.",
    responses={401: {"description": "Unauthorized"}},
)
def list_tuitions(
    student_id: int | None = None,
    class_academic_id: int | None = None,
    academic_year_id: int | None = None,
    status_filter: TuitionStatus | None = Query(default=None, alias="status"),
    period: str | None = None,
    pagination: PaginationParams = Depends(get_pagination_params),
    _: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    filters = TuitionFilters(
        student_id=student_id,
        class_academic_id=class_academic_id,
        academic_year_id=academic_year_id,
        status=status_filter,
        period=period,
    )
    items, meta = paginate_scalars(db, build_tuitions_query(filters), pagination, search_columns=[Tuition.period])
    return {"items": [serialize_tuition_response(item) for item in items], "pagination": meta}


@router.get(
    "/{tuition_id}",
    response_model=TuitionResponse,
    summary="Get tuition detail",
    responses={401: {"description": "Unauthorized"}, 404: {"description": "Tuition not found"}},
)
def get_tuition_detail(
    tuition_id: int,
    _: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return serialize_tuition_response(get_tuition(db, tuition_id=tuition_id))


@router.post(
    "/sync-scholarships",
    response_model=ScholarshipSyncResponse,
    summary="Recompute scholarship amounts",
    description=(
        "Recompute scholarship amounts on unpaid and partial tuitions, optionally scoped to one student "
        "and/or class. Paid tuitions are never reopened."
    ),
    responses={401: {"description": "Unauthorized"}, 403: {"description": "Admin role required"}},
)
def sync_tuition_scholarships(
    payload: ScholarshipSyncRequest,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = sync_scholarships(db, student_id=payload.student_id, class_academic_id=payload.class_academic_id)
    return {
        "total_tuitions": result.total_tuitions,
        "updated": result.updated,
        "status_changed": result.status_changed,
        "skipped_paid_tuitions": result.skipped_paid_tuitions,
    }


@router.post(
    "/sync-scholarships/enqueue",
    response_model=ScholarshipSyncTaskResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Enqueue scholarship re-sync",
    description="Admin-only async variant of the scholarship re-sync. Returns queue metadata immediately.",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        503: {"description": "Task enqueue failed"},
    },
)
def enqueue_tuition_scholarship_sync(
    payload: ScholarshipSyncRequest,
    _: Employee = Depends(require_admin),
):
    logger.info(
        "scholarship_sync_enqueue_requested",
        student_id=payload.student_id,
        class_academic_id=payload.class_academic_id,
    )
    try:
        task_id = enqueue_scholarship_sync_task(
            student_id=payload.student_id,
            class_academic_id=payload.class_academic_id,
        )
    except Exception as exc:
        logger.error("scholarship_sync_enqueue_failed", error=str(exc))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Failed to enqueue scholarship sync task",
        ) from exc
    logger.info("scholarship_sync_enqueued", task_id=task_id)
    return {"task_id": task_id, "status": "queued", "message": "Scholarship sync started"}
