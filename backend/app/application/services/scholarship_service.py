from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.application.errors import NotFoundError, ValidationError
from app.application.services.payment_service import apply_payment_to_tuition, recalculate_tuition_status
from app.domain.clock import utcnow
from app.domain.money import ZERO, to_money
from app.domain.payment_method import PaymentMethod
from app.domain.tuition_status import TuitionStatus
from app.infrastructure.db.models import ClassAcademic, Scholarship, Student, Tuition
from app.infrastructure.logging import get_logger
from app.interfaces.api.v1.schemas.scholarship import ScholarshipCreate

logger = get_logger(__name__)

FULL_SCHOLARSHIP_NOTE = "Auto-settled by full scholarship"


@dataclass(frozen=True)
class ScholarshipApplicationResult:
    is_full_scholarship: bool
    tuitions_affected: int
    auto_payments: list[int]


@dataclass(frozen=True)
class ScholarshipSyncResult:
    total_tuitions: int
    updated: int
    status_changed: int
    skipped_paid_tuitions: int


@dataclass(frozen=True)
class ScholarshipCreationResult:
    scholarship: Scholarship
    application: ScholarshipApplicationResult
    sync: ScholarshipSyncResult


def is_full_scholarship(*, nominal: Decimal, monthly_fee: Decimal) -> bool:
    return to_money(nominal) >= to_money(monthly_fee)


def apply_scholarship(
    db: Session,
    *,
    student_id: int,
    class_academic_id: int,
    nominal: Decimal,
    monthly_fee: Decimal,
    now: datetime | None = None,
) -> ScholarshipApplicationResult:
    """
    Settle every unpaid tuition of a student in a class when the scholarship covers the fee.

    Each settled tuition gets a system payment (no employee) for its full fee. Partial and
    paid tuitions are left alone, as are partial scholarships, which only flow through
    `sync_scholarships`.
    """
    if not is_full_scholarship(nominal=nominal, monthly_fee=monthly_fee):
        return ScholarshipApplicationResult(is_full_scholarship=False, tuitions_affected=0, auto_payments=[])

    current = now or utcnow()
    tuitions = list(
        db.execute(
            select(Tuition)
            .where(
                Tuition.student_id == student_id,
                Tuition.class_academic_id == class_academic_id,
                Tuition.status == TuitionStatus.unpaid,
            )
            .order_by(Tuition.due_date, Tuition.id)
            .with_for_update()
        )
        .scalars()
        .all()
    )
    payment_ids: list[int] = []
    for tuition in tuitions:
        amount = to_money(tuition.fee_amount - tuition.paid_amount)
        if amount <= ZERO:
            recalculate_tuition_status(tuition)
            continue
        payment = apply_payment_to_tuition(
            db,
            tuition=tuition,
            amount=amount,
            method=PaymentMethod.scholarship,
            employee_id=None,
            paid_at=current,
            notes=FULL_SCHOLARSHIP_NOTE,
        )
        payment_ids.append(payment.id)
    db.commit()
    logger.info(
        "full_scholarship_applied",
        student_id=student_id,
        class_academic_id=class_academic_id,
        tuitions_affected=len(tuitions),
        auto_payments=len(payment_ids),
    )
    return ScholarshipApplicationResult(
        is_full_scholarship=True,
        tuitions_affected=len(tuitions),
        auto_payments=payment_ids,
    )


def _scholarship_totals(db: Session, *, student_id: int | None, class_academic_id: int | None) -> dict:
    query = select(
        Scholarship.student_id,
        Scholarship.class_academic_id,
        func.coalesce(func.sum(Scholarship.nominal), 0),
    ).group_by(Scholarship.student_id, Scholarship.class_academic_id)
    if student_id is not None:
        query = query.where(Scholarship.student_id == student_id)
    if class_academic_id is not None:
        query = query.where(Scholarship.class_academic_id == class_academic_id)
    return {(row[0], row[1]): to_money(row[2]) for row in db.execute(query).all()}


def sync_scholarships(
    db: Session,
    *,
    student_id: int | None = None,
    class_academic_id: int | None = None,
) -> ScholarshipSyncResult:
    """Recompute scholarship amounts on open tuitions; paid tuitions are never reopened."""
    totals = _scholarship_totals(db, student_id=student_id, class_academic_id=class_academic_id)
    query = select(Tuition).order_by(Tuition.id)
    if student_id is not None:
        query = query.where(Tuition.student_id == student_id)
    if class_academic_id is not None:
        query = query.where(Tuition.class_academic_id == class_academic_id)
    tuitions = list(db.execute(query.with_for_update()).scalars().all())

    updated = 0
    status_changed = 0
    skipped_paid = 0
    for tuition in tuitions:
        if tuition.status == TuitionStatus.paid:
            skipped_paid += 1
            continue
        scholarship_amount = totals.get((tuition.student_id, tuition.class_academic_id), ZERO)
        if to_money(tuition.scholarship_amount) == scholarship_amount:
            continue
        previous_status = tuition.status
        tuition.scholarship_amount = scholarship_amount
        if recalculate_tuition_status(tuition) != previous_status:
            status_changed += 1
        updated += 1
    db.commit()
    result = ScholarshipSyncResult(
        total_tuitions=len(tuitions),
        updated=updated,
        status_changed=status_changed,
        skipped_paid_tuitions=skipped_paid,
    )
    logger.info(
        "scholarships_synced",
        student_id=student_id,
        class_academic_id=class_academic_id,
        total_tuitions=result.total_tuitions,
        updated=result.updated,
        status_changed=result.status_changed,
        skipped_paid_tuitions=result.skipped_paid_tuitions,
    )
    return result


def create_scholarship(
    db: Session,
    *,
    payload: ScholarshipCreate,
    employee_id: int | None,
    now: datetime | None = None,
) -> ScholarshipCreationResult:
    nominal = to_money(payload.nominal)
    if nominal <= ZERO:
        raise ValidationError("Scholarship nominal must be greater than zero")
    if db.get(Student, payload.student_id) is None:
        raise NotFoundError("Student not found")
    class_academic = db.get(ClassAcademic, payload.class_academic_id)
    if class_academic is None:
        raise NotFoundError("Class not found")

    monthly_fee = to_money(payload.monthly_fee if payload.monthly_fee is not None else class_academic.monthly_fee)
    scholarship = Scholarship(
        student_id=payload.student_id,
        class_academic_id=payload.class_academic_id,
        nominal=nominal,
        is_full_scholarship=is_full_scholarship(nominal=nominal, monthly_fee=monthly_fee),
        created_by_employee_id=employee_id,
    )
    db.add(scholarship)
    db.commit()
    logger.info(
        "scholarship_created",
        scholarship_id=scholarship.id,
        student_id=scholarship.student_id,
        class_academic_id=scholarship.class_academic_id,
        nominal=str(nominal),
        is_full_scholarship=scholarship.is_full_scholarship,
    )

    application = apply_scholarship(
        db,
        student_id=scholarship.student_id,
        class_academic_id=scholarship.class_academic_id,
        nominal=nominal,
        monthly_fee=monthly_fee,
        now=now,
    )
    sync = sync_scholarships(
        db,
        student_id=scholarship.student_id,
        class_academic_id=scholarship.class_academic_id,
    )
    db.refresh(scholarship)
    return ScholarshipCreationResult(scholarship=scholarship, application=application, sync=sync)


def delete_scholarship(db: Session, *, scholarship_id: int) -> ScholarshipSyncResult:
    scholarship = db.get(Scholarship, scholarship_id)
    if scholarship is None:
        raise NotFoundError("Scholarship not found")
    student_id = scholarship.student_id
    class_academic_id = scholarship.class_academic_id
    db.delete(scholarship)
    db.commit()
    logger.info("scholarship_deleted", scholarship_id=scholarship_id, student_id=student_id)
    return sync_scholarships(db, student_id=student_id, class_academic_id=class_academic_id)


def list_scholarships(
    db: Session,
    *,
    student_id: int | None = None,
    class_academic_id: int | None = None,
) -> list[Scholarship]:
    query = select(Scholarship).order_by(Scholarship.id)
    if student_id is not None:
        query = query.where(Scholarship.student_id == student_id)
    if class_academic_id is not None:
        query = query.where(Scholarship.class_academic_id == class_academic_id)
    return list(db.execute(query).scalars().all())
