from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.application.services.payment_request_service import list_unpaid_tuitions
from app.application.services.payment_service import tuition_outstanding
from app.application.services.tuition_service import serialize_tuition_response
from app.domain.money import ZERO
from app.infrastructure.db.models import Student
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import get_current_student
from app.interfaces.api.v1.schemas.tuition import UnpaidTuitionListResponse

router = APIRouter(prefix="/student/tuitions", tags=["student-tuitions"])


@router.get(
    "/unpaid",
    response_model=UnpaidTuitionListResponse,
    summary="List own unpaid tuitions",
    description="Unpaid and partially paid tuitions of the caller, ordered by year and due date.",
    responses={401: {"description": "Unauthorized"}},
)
def get_unpaid_tuitions(current_student: Student = Depends(get_current_student), db: Session = Depends(get_db)):
    tuitions = list_unpaid_tuitions(db, student_id=current_student.id)
    return {
        "items": [serialize_tuition_response(tuition) for tuition in tuitions],
        "total_outstanding": sum((tuition_outstanding(tuition) for tuition in tuitions), ZERO),
    }
