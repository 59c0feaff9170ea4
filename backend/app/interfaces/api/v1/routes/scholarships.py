from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.application.services.scholarship_service import create_scholarship, delete_scholarship, list_scholarships
from app.infrastructure.db.models import Employee
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import get_current_employee, require_admin
from app.interfaces.api.v1.schemas.scholarship import (
    ScholarshipCreate,
    ScholarshipCreateResponse,
    ScholarshipListResponse,
)
from app.interfaces.api.v1.schemas.tuition import ScholarshipSyncResponse

router = APIRouter(prefix="/scholarships", tags=["scholarships"])


@router.post(
    "",
    response_model=ScholarshipCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Grant scholarship",
    description=(
        "Grant a scholarship to a student for one class. A nominal at or above the monthly fee "
        "auto-settles every unpaid tuition with a system payment; open tuitions are then re-synced."
    ),
    responses={
        400: {"description": "Invalid nominal"},
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        404: {"description": "Student or class not found"},
    },
)
def create_scholarship_endpoint(
    payload: ScholarshipCreate,
    current_employee: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = create_scholarship(db, payload=payload, employee_id=current_employee.id)
    return {
        "scholarship": result.scholarship,
        "tuitions_auto_settled": len(result.application.auto_payments),
        "auto_payment_ids": result.application.auto_payments,
        "tuitions_updated": result.sync.updated,
    }


@router.get(
    "",
    response_model=ScholarshipListResponse,
    summary="List scholarships",
    responses={401: {"description": "Unauthorized"}},
)
def list_scholarships_endpoint(
    student_id: int | None = None,
    class_academic_id: int | None = None,
    _: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return {"items": list_scholarships(db, student_id=student_id, class_academic_id=class_academic_id)}


@router.delete(
    "/{scholarship_id}",
    response_model=ScholarshipSyncResponse,
    summary="Revoke scholarship",
    description="Delete a scholarship and re-sync the open tuitions it covered. Paid tuitions keep their state.",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        404: {"description": "Scholarship not found"},
    },
)
def delete_scholarship_endpoint(
    scholarship_id: int,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = delete_scholarship(db, scholarship_id=scholarship_id)
    return {
        "total_tuitions": result.total_tuitions,
        "updated": result.updated,
        "status_changed": result.status_changed,
        "skipped_paid_tuitions": result.skipped_paid_tuitions,
    }
