from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.application.errors import NotFoundError, ValidationError
from app.domain.clock import utcnow
from app.domain.money import ZERO, to_money
from app.domain.payment_method import PaymentMethod
from app.domain.tuition_status import TuitionStatus, derive_tuition_status, effective_fee, outstanding_amount
from app.infrastructure.db.models import Payment, Tuition
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class PaymentResult:
    payment_id: int
    tuition_id: int
    previous_status: TuitionStatus
    new_status: TuitionStatus
    previous_paid_amount: Decimal
    new_paid_amount: Decimal
    remaining_amount: Decimal
    fee_amount: Decimal
    scholarship_amount: Decimal
    discount_amount: Decimal
    effective_fee_amount: Decimal


@dataclass(frozen=True)
class ReversalResult:
    tuition_id: int
    previous_status: TuitionStatus
    new_status: TuitionStatus
    new_paid_amount: Decimal


@dataclass(frozen=True)
class PaymentFilters:
    student_id: int | None = None
    tuition_id: int | None = None
    class_academic_id: int | None = None
    method: PaymentMethod | None = None
    paid_from: date | None = None
    paid_to: date | None = None


def recalculate_tuition_status(tuition: Tuition) -> TuitionStatus:
    tuition.status = derive_tuition_status(
        fee_amount=tuition.fee_amount,
        scholarship_amount=tuition.scholarship_amount,
        discount_amount=tuition.discount_amount,
        paid_amount=tuition.paid_amount,
    )
    return tuition.status


def tuition_outstanding(tuition: Tuition) -> Decimal:
    return outstanding_amount(
        fee_amount=tuition.fee_amount,
        scholarship_amount=tuition.scholarship_amount,
        discount_amount=tuition.discount_amount,
        paid_amount=tuition.paid_amount,
    )


def tuition_effective_fee(tuition: Tuition) -> Decimal:
    return effective_fee(
        fee_amount=tuition.fee_amount,
        scholarship_amount=tuition.scholarship_amount,
        discount_amount=tuition.discount_amount,
    )


def get_tuition_for_update(db: Session, *, tuition_id: int) -> Tuition:
    tuition = db.execute(
        select(Tuition)
        .where(Tuition.id == tuition_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if tuition is None:
        raise NotFoundError("Tuition not found")
    return tuition


def apply_payment_to_tuition(
    db: Session,
    *,
    tuition: Tuition,
    amount: Decimal,
    method: PaymentMethod,
    employee_id: int | None,
    paid_at: datetime,
    notes: str | None = None,
    payment_request_id: int | None = None,
) -> Payment:
    """Record one payment and move the tuition's paid amount/status; the caller commits."""
    tuition.paid_amount = to_money(tuition.paid_amount + amount)
    recalculate_tuition_status(tuition)
    payment = Payment(
        tuition_id=tuition.id,
        employee_id=employee_id,
        payment_request_id=payment_request_id,
        amount=to_money(amount),
        method=method,
        paid_at=paid_at,
        notes=notes,
    )
    db.add(payment)
    db.flush()
    return payment


def process_payment(
    db: Session,
    *,
    tuition_id: int,
    amount: Decimal,
    employee_id: int | None,
    notes: str | None = None,
    method: PaymentMethod = PaymentMethod.cash,
    paid_at: datetime | None = None,
) -> PaymentResult:
    amount = to_money(amount)
    if amount <= ZERO:
        raise ValidationError("Payment amount must be greater than zero")
    tuition = get_tuition_for_update(db, tuition_id=tuition_id)
    if tuition.status == TuitionStatus.paid:
        logger.warning("payment_rejected_tuition_already_paid", tuition_id=tuition_id, amount=str(amount))
        raise ValidationError("Tuition is already fully paid")

    previous_status = tuition.status
    previous_paid = to_money(tuition.paid_amount)
    payment = apply_payment_to_tuition(
        db,
        tuition=tuition,
        amount=amount,
        method=method,
        employee_id=employee_id,
        paid_at=paid_at or utcnow(),
        notes=notes,
    )
    result = PaymentResult(
        payment_id=payment.id,
        tuition_id=tuition.id,
        previous_status=previous_status,
        new_status=tuition.status,
        previous_paid_amount=previous_paid,
        new_paid_amount=to_money(tuition.paid_amount),
        remaining_amount=tuition_outstanding(tuition),
        fee_amount=to_money(tuition.fee_amount),
        scholarship_amount=to_money(tuition.scholarship_amount),
        discount_amount=to_money(tuition.discount_amount),
        effective_fee_amount=tuition_effective_fee(tuition),
    )
    db.commit()
    logger.info(
        "payment_processed",
        payment_id=result.payment_id,
        tuition_id=tuition_id,
        employee_id=employee_id,
        amount=str(amount),
        previous_status=previous_status.value,
        new_status=result.new_status.value,
    )
    return result


def reverse_payment(db: Session, *, payment_id: int) -> ReversalResult:
    payment = db.get(Payment, payment_id)
    if payment is None:
        raise NotFoundError("Payment not found")
    tuition = get_tuition_for_update(db, tuition_id=payment.tuition_id)
    previous_status = tuition.status
    tuition.paid_amount = max(to_money(tuition.paid_amount - payment.amount), ZERO)
    recalculate_tuition_status(tuition)
    db.delete(payment)
    result = ReversalResult(
        tuition_id=tuition.id,
        previous_status=previous_status,
        new_status=tuition.status,
        new_paid_amount=to_money(tuition.paid_amount),
    )
    db.commit()
    logger.info(
        "payment_reversed",
        payment_id=payment_id,
        tuition_id=result.tuition_id,
        previous_status=previous_status.value,
        new_status=result.new_status.value,
        new_paid_amount=str(result.new_paid_amount),
    )
    return result


def get_payment(db: Session, *, payment_id: int) -> Payment:
    payment = db.execute(
        select(Payment)
        .where(Payment.id == payment_id)
        .options(selectinload(Payment.tuition).selectinload(Tuition.student), selectinload(Payment.employee))
    ).scalar_one_or_none()
    if payment is None:
        raise NotFoundError("Payment not found")
    return payment


def build_payments_query(filters: PaymentFilters):
    query = (
        select(Payment)
        .join(Tuition, Tuition.id == Payment.tuition_id)
        .options(selectinload(Payment.tuition).selectinload(Tuition.student), selectinload(Payment.employee))
        .order_by(Payment.paid_at.desc(), Payment.id.desc())
    )
    if filters.student_id is not None:
        query = query.where(Tuition.student_id == filters.student_id)
    if filters.tuition_id is not None:
        query = query.where(Payment.tuition_id == filters.tuition_id)
    if filters.class_academic_id is not None:
        query = query.where(Tuition.class_academic_id == filters.class_academic_id)
    if filters.method is not None:
        query = query.where(Payment.method == filters.method)
    if filters.paid_from is not None:
        query = query.where(Payment.paid_at >= datetime.combine(filters.paid_from, time.min, tzinfo=timezone.utc))
    if filters.paid_to is not None:
        upper = datetime.combine(filters.paid_to + timedelta(days=1), time.min, tzinfo=timezone.utc)
        query = query.where(Payment.paid_at < upper)
    return query


def serialize_payment_response(payment: Payment) -> dict:
    tuition = payment.tuition
    return {
        "id": payment.id,
        "tuition_id": payment.tuition_id,
        "employee_id": payment.employee_id,
        "payment_request_id": payment.payment_request_id,
        "amount": payment.amount,
        "method": payment.method,
        "paid_at": payment.paid_at,
        "notes": payment.notes,
        "created_at": payment.created_at,
        "tuition": {
            "id": tuition.id,
            "period": tuition.period,
            "year": tuition.year,
            "status": tuition.status,
            "paid_amount": tuition.paid_amount,
        },
        "student": {"id": tuition.student.id, "nis": tuition.student.nis, "name": tuition.student.name},
        "employee": (
            {"id": payment.employee.id, "name": payment.employee.name} if payment.employee is not None else None
        ),
    }


def serialize_payment_result(result: PaymentResult) -> dict:
    return {
        "payment_id": result.payment_id,
        "tuition_id": result.tuition_id,
        "previous_status": result.previous_status,
        "new_status": result.new_status,
        "previous_paid_amount": result.previous_paid_amount,
        "new_paid_amount": result.new_paid_amount,
        "remaining_amount": result.remaining_amount,
        "fee_amount": result.fee_amount,
        "scholarship_amount": result.scholarship_amount,
        "discount_amount": result.discount_amount,
        "effective_fee_amount": result.effective_fee_amount,
    }
