from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.application.errors import NotFoundError
from app.application.services.payment_service import tuition_effective_fee, tuition_outstanding
from app.domain.tuition_status import TuitionStatus
from app.infrastructure.db.models import ClassAcademic, Tuition


@dataclass(frozen=True)
class TuitionFilters:
    student_id: int | None = None
    class_academic_id: int | None = None
    academic_year_id: int | None = None
    status: TuitionStatus | None = None
    period: str | None = None


def build_tuitions_query(filters: TuitionFilters):
    query = (
        select(Tuition)
        .join(ClassAcademic, ClassAcademic.id == Tuition.class_academic_id)
        .options(selectinload(Tuition.class_academic).selectinload(ClassAcademic.academic_year))
        .order_by(Tuition.year, Tuition.due_date, Tuition.id)
    )
    if filters.student_id is not None:
        query = query.where(Tuition.student_id == filters.student_id)
    if filters.class_academic_id is not None:
        query = query.where(Tuition.class_academic_id == filters.class_academic_id)
    if filters.academic_year_id is not None:
        query = query.where(ClassAcademic.academic_year_id == filters.academic_year_id)
    if filters.status is not None:
        query = query.where(Tuition.status == filters.status)
    if filters.period is not None:
        query = query.where(Tuition.period == filters.period)
    return query


def get_tuition(db: Session, *, tuition_id: int) -> Tuition:
    tuition = db.execute(
        select(Tuition)
        .where(Tuition.id == tuition_id)
        .options(selectinload(Tuition.class_academic).selectinload(ClassAcademic.academic_year))
    ).scalar_one_or_none()
    if tuition is None:
        raise NotFoundError("Tuition not found")
    return tuition


def serialize_tuition_response(tuition: Tuition) -> dict:
    return {
        "id": tuition.id,
        "student_id": tuition.student_id,
        "class_academic_id": tuition.class_academic_id,
        "class_name": tuition.class_academic.class_name,
        "academic_year": tuition.class_academic.academic_year.year,
        "period": tuition.period,
        "year": tuition.year,
        "fee_amount": tuition.fee_amount,
        "scholarship_amount": tuition.scholarship_amount,
        "discount_amount": tuition.discount_amount,
        "discount_id": tuition.discount_id,
        "effective_fee_amount": tuition_effective_fee(tuition),
        "paid_amount": tuition.paid_amount,
        "outstanding_amount": tuition_outstanding(tuition),
        "status": tuition.status,
        "due_date": tuition.due_date,
    }
