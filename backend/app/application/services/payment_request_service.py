from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from app.application.errors import ConflictError, NotFoundError, ValidationError
from app.application.services.idempotency_service import (
    IdempotentResult,
    generate_idempotency_key,
    with_idempotency,
)
from app.application.services.payment_service import (
    apply_payment_to_tuition,
    get_tuition_for_update,
    tuition_outstanding,
)
from app.application.services.unique_amount_service import draw_unique_code, get_available_unique_amount
from app.config import settings
from app.domain.clock import as_utc, utcnow
from app.domain.money import ZERO, to_money
from app.domain.payment_method import PaymentMethod
from app.domain.payment_request_status import PaymentRequestStatus
from app.domain.payment_timing import calculate_payment_timing, display_deadline, is_backend_expired
from app.domain.tuition_status import TuitionStatus
from app.infrastructure.db.models import (
    BankAccount,
    ClassAcademic,
    PaymentRequest,
    PaymentRequestTuition,
    Student,
    Tuition,
)
from app.infrastructure.logging import get_logger
from app.interfaces.api.v1.schemas.payment_request import PaymentRequestResponse

logger = get_logger(__name__)

CREATE_PAYMENT_REQUEST_ACTION = "CREATE_PAYMENT_REQUEST"
PENDING_TOTAL_INSERT_ATTEMPTS = 3


@dataclass(frozen=True)
class VerificationResult:
    payment_request: PaymentRequest
    payment_ids: list[int]
    unallocated_amount: Decimal


def _payment_request_load_options():
    return (
        selectinload(PaymentRequest.items)
        .selectinload(PaymentRequestTuition.tuition)
        .selectinload(Tuition.class_academic)
        .selectinload(ClassAcademic.academic_year),
        selectinload(PaymentRequest.bank_account),
        selectinload(PaymentRequest.student),
    )


def _load_payment_request(db: Session, *, payment_request_id: int) -> PaymentRequest | None:
    return db.execute(
        select(PaymentRequest)
        .where(PaymentRequest.id == payment_request_id)
        .options(*_payment_request_load_options())
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def _get_by_idempotency_key(db: Session, *, idempotency_key: str) -> PaymentRequest | None:
    return db.execute(
        select(PaymentRequest)
        .where(PaymentRequest.idempotency_key == idempotency_key)
        .options(*_payment_request_load_options())
    ).scalar_one_or_none()


def effective_payment_request_status(request: PaymentRequest, now: datetime) -> PaymentRequestStatus:
    """Stored status corrected for a backend deadline that passed before any sweep ran."""
    if request.status == PaymentRequestStatus.pending and is_backend_expired(as_utc(request.expires_at), now):
        return PaymentRequestStatus.expired
    return request.status


def _expire_if_stale(db: Session, request: PaymentRequest, now: datetime) -> bool:
    if effective_payment_request_status(request, now) == request.status:
        return False
    request.status = PaymentRequestStatus.expired
    db.commit()
    logger.info("payment_request_expired_on_read", payment_request_id=request.id, student_id=request.student_id)
    return True


def expire_pending_payment_requests(db: Session, *, now: datetime | None = None) -> int:
    current = now or utcnow()
    expired = db.execute(
        update(PaymentRequest)
        .where(PaymentRequest.status == PaymentRequestStatus.pending, PaymentRequest.expires_at <= current)
        .values(status=PaymentRequestStatus.expired)
        .execution_options(synchronize_session=False)
    ).rowcount
    db.commit()
    if expired:
        logger.info("payment_requests_expired", count=expired)
    return expired


def get_active_payment_request(
    db: Session,
    *,
    student_id: int,
    now: datetime | None = None,
) -> PaymentRequest | None:
    current = now or utcnow()
    return db.execute(
        select(PaymentRequest)
        .where(
            PaymentRequest.student_id == student_id,
            PaymentRequest.status == PaymentRequestStatus.pending,
            PaymentRequest.expires_at > current,
        )
        .options(*_payment_request_load_options())
        .order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc())
        .limit(1)
    ).scalar_one_or_none()


def _tuitions_in_active_requests(db: Session, *, tuition_ids: list[int], now: datetime) -> list[int]:
    return list(
        db.execute(
            select(PaymentRequestTuition.tuition_id)
            .join(PaymentRequest, PaymentRequest.id == PaymentRequestTuition.payment_request_id)
            .where(
                PaymentRequestTuition.tuition_id.in_(tuition_ids),
                PaymentRequest.status == PaymentRequestStatus.pending,
                PaymentRequest.expires_at > now,
            )
        )
        .scalars()
        .all()
    )


def create_payment_request(
    db: Session,
    *,
    student_id: int,
    tuition_ids: list[int],
    idempotency_key: str,
    now: datetime | None = None,
    rng: Callable[[], int] = draw_unique_code,
) -> PaymentRequest:
    current = now or utcnow()
    requested_ids = list(dict.fromkeys(tuition_ids))
    if not requested_ids:
        raise ValidationError("Select at least one tuition")

    existing = _get_by_idempotency_key(db, idempotency_key=idempotency_key)
    if existing is not None:
        if existing.student_id != student_id:
            raise ConflictError("Idempotency key was already used")
        logger.info("payment_request_reused_by_key", payment_request_id=existing.id, student_id=student_id)
        return existing

    expire_pending_payment_requests(db, now=current)
    if get_active_payment_request(db, student_id=student_id, now=current) is not None:
        logger.warning("payment_request_rejected_active_exists", student_id=student_id)
        raise ValidationError("You still have a payment in progress. Complete or cancel it first.")

    tuitions = list(
        db.execute(
            select(Tuition)
            .where(
                Tuition.id.in_(requested_ids),
                Tuition.student_id == student_id,
                Tuition.status != TuitionStatus.paid,
            )
            .order_by(Tuition.due_date, Tuition.id)
        )
        .scalars()
        .all()
    )
    if len(tuitions) != len(requested_ids):
        logger.warning(
            "payment_request_rejected_invalid_tuitions",
            student_id=student_id,
            requested=len(requested_ids),
            found=len(tuitions),
        )
        raise ValidationError("Some tuitions were not found or are already paid")

    booked = _tuitions_in_active_requests(db, tuition_ids=requested_ids, now=current)
    if booked:
        logger.warning("payment_request_rejected_double_booking", student_id=student_id, tuition_ids=booked)
        raise ValidationError("Some tuitions are already part of another pending payment request")

    lines: list[tuple[Tuition, Decimal]] = []
    for tuition in tuitions:
        outstanding = tuition_outstanding(tuition)
        if outstanding <= ZERO:
            raise ValidationError(f"Tuition {tuition.period} {tuition.year} is already settled")
        lines.append((tuition, outstanding))
    base_amount = to_money(sum((amount for _, amount in lines), ZERO))

    timing = calculate_payment_timing(
        current,
        backend_minutes=settings.payment_request_backend_expiry_minutes,
        display_minutes=settings.payment_request_display_minutes,
    )
    line_amounts = [(tuition.id, amount) for tuition, amount in lines]
    for attempt in range(1, PENDING_TOTAL_INSERT_ATTEMPTS + 1):
        unique_amount = get_available_unique_amount(db, base_amount=base_amount, now=current, rng=rng)
        request = PaymentRequest(
            student_id=student_id,
            idempotency_key=idempotency_key,
            base_amount=unique_amount.base_amount,
            unique_code=unique_amount.unique_code,
            total_amount=unique_amount.total_amount,
            status=PaymentRequestStatus.pending,
            expires_at=timing.backend_expires_at,
            items=[PaymentRequestTuition(tuition_id=tuition_id, amount=amount) for tuition_id, amount in line_amounts],
        )
        db.add(request)
        try:
            db.commit()
            break
        except IntegrityError:
            db.rollback()
            winner = _get_by_idempotency_key(db, idempotency_key=idempotency_key)
            if winner is not None and winner.student_id == student_id:
                logger.info("payment_request_race_resolved_by_key", payment_request_id=winner.id, student_id=student_id)
                return winner
            if winner is not None:
                raise ConflictError("Idempotency key was already used")
            logger.warning(
                "payment_request_total_collision",
                student_id=student_id,
                total_amount=str(unique_amount.total_amount),
                attempt=attempt,
            )
    else:
        raise ConflictError("Another payment request claimed the same amount, please retry")

    logger.info(
        "payment_request_created",
        payment_request_id=request.id,
        student_id=student_id,
        tuition_count=len(lines),
        base_amount=str(unique_amount.base_amount),
        unique_code=unique_amount.unique_code,
        total_amount=str(unique_amount.total_amount),
    )
    loaded = _load_payment_request(db, payment_request_id=request.id)
    if loaded is None:
        raise NotFoundError("Payment request not found")
    return loaded


def submit_payment_request(
    db: Session,
    *,
    student: Student,
    tuition_ids: list[int],
    idempotency_key: str | None = None,
    now: datetime | None = None,
    rng: Callable[[], int] = draw_unique_code,
) -> IdempotentResult:
    """Create a payment request at most once per idempotency key and return its student view."""
    current = now or utcnow()
    key = idempotency_key or generate_idempotency_key(
        student.nis,
        CREATE_PAYMENT_REQUEST_ACTION,
        {"tuition_ids": sorted(set(tuition_ids))},
        now=current,
    )

    def action() -> dict:
        request = create_payment_request(
            db,
            student_id=student.id,
            tuition_ids=tuition_ids,
            idempotency_key=key,
            now=current,
            rng=rng,
        )
        payload = serialize_student_payment_request(request, now=current)
        return PaymentRequestResponse.model_validate(payload).model_dump(mode="json")

    return with_idempotency(db, key=key, action=action, now=current)


def get_payment_request(db: Session, *, payment_request_id: int, now: datetime | None = None) -> PaymentRequest:
    current = now or utcnow()
    request = _load_payment_request(db, payment_request_id=payment_request_id)
    if request is None:
        raise NotFoundError("Payment request not found")
    _expire_if_stale(db, request, current)
    return request


def get_payment_request_for_student(
    db: Session,
    *,
    payment_request_id: int,
    student_id: int,
    now: datetime | None = None,
) -> PaymentRequest:
    current = now or utcnow()
    request = _load_payment_request(db, payment_request_id=payment_request_id)
    if request is None or request.student_id != student_id:
        raise NotFoundError("Payment request not found")
    _expire_if_stale(db, request, current)
    return request


def cancel_payment_request(
    db: Session,
    *,
    payment_request_id: int,
    student_id: int,
    now: datetime | None = None,
) -> PaymentRequest:
    current = now or utcnow()
    request = get_payment_request_for_student(
        db,
        payment_request_id=payment_request_id,
        student_id=student_id,
        now=current,
    )
    if request.status != PaymentRequestStatus.pending:
        logger.warning(
            "payment_request_cancel_rejected",
            payment_request_id=payment_request_id,
            student_id=student_id,
            status=request.status.value,
        )
        raise ValidationError("Only pending payment requests can be cancelled")
    request.status = PaymentRequestStatus.cancelled
    db.commit()
    logger.info("payment_request_cancelled", payment_request_id=payment_request_id, student_id=student_id)
    return request


def verify_payment_request(
    db: Session,
    *,
    payment_request_id: int,
    bank_account_id: int | None = None,
    verified_by_employee_id: int | None = None,
    notes: str | None = None,
    now: datetime | None = None,
) -> VerificationResult:
    """
    Settle a pending request whose transfer was observed before the backend deadline.

    Each bundle line is applied to its tuition in due-date order through the shared
    payment step, so replays over the same inputs produce the same allocation.
    """
    current = now or utcnow()
    request = db.execute(
        select(PaymentRequest)
        .where(PaymentRequest.id == payment_request_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if request is None:
        raise NotFoundError("Payment request not found")
    if _expire_if_stale(db, request, current):
        raise ValidationError("Payment request has expired")
    if request.status != PaymentRequestStatus.pending:
        raise ValidationError(f"Payment request is already {request.status.value}")
    if bank_account_id is not None and db.get(BankAccount, bank_account_id) is None:
        raise NotFoundError("Bank account not found")

    request.status = PaymentRequestStatus.verified
    request.verified_at = current
    request.bank_account_id = bank_account_id
    request.verified_by_employee_id = verified_by_employee_id
    note = notes or (
        f"Bank transfer verified. Request #{request.id}"
        if verified_by_employee_id is None
        else f"Bank transfer manually verified. Request #{request.id}"
    )

    payment_ids: list[int] = []
    unallocated = ZERO
    items = sorted(request.items, key=lambda item: (item.tuition.due_date, item.tuition_id))
    for item in items:
        tuition = get_tuition_for_update(db, tuition_id=item.tuition_id)
        if tuition.status == TuitionStatus.paid:
            unallocated = to_money(unallocated + item.amount)
            logger.warning(
                "payment_request_tuition_already_paid",
                payment_request_id=request.id,
                tuition_id=tuition.id,
                amount=str(item.amount),
            )
            continue
        payment = apply_payment_to_tuition(
            db,
            tuition=tuition,
            amount=item.amount,
            method=PaymentMethod.bank_transfer,
            employee_id=verified_by_employee_id,
            paid_at=current,
            notes=note,
            payment_request_id=request.id,
        )
        payment_ids.append(payment.id)

    student = db.get(Student, request.student_id)
    if student is not None:
        student.last_payment_at = current
    db.commit()
    logger.info(
        "payment_request_verified",
        payment_request_id=request.id,
        student_id=request.student_id,
        total_amount=str(request.total_amount),
        payments=len(payment_ids),
        unallocated_amount=str(unallocated),
        verified_by_employee_id=verified_by_employee_id,
    )
    loaded = _load_payment_request(db, payment_request_id=request.id)
    if loaded is None:
        raise NotFoundError("Payment request not found")
    return VerificationResult(payment_request=loaded, payment_ids=payment_ids, unallocated_amount=unallocated)


def list_payment_requests_query(*, student_id: int | None = None, status: PaymentRequestStatus | None = None):
    query = (
        select(PaymentRequest)
        .options(*_payment_request_load_options())
        .order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc())
    )
    if student_id is not None:
        query = query.where(PaymentRequest.student_id == student_id)
    if status is not None:
        query = query.where(PaymentRequest.status == status)
    return query


def list_unpaid_tuitions(db: Session, *, student_id: int) -> list[Tuition]:
    return list(
        db.execute(
            select(Tuition)
            .where(Tuition.student_id == student_id, Tuition.status != TuitionStatus.paid)
            .options(selectinload(Tuition.class_academic).selectinload(ClassAcademic.academic_year))
            .order_by(Tuition.year, Tuition.due_date, Tuition.id)
        )
        .scalars()
        .all()
    )


def serialize_student_payment_request(request: PaymentRequest, *, now: datetime | None = None) -> dict:
    """Student view: only the display deadline is exposed, never the backend buffer."""
    current = now or utcnow()
    backend_expires_at = as_utc(request.expires_at)
    bank_account = request.bank_account
    return {
        "id": request.id,
        "status": effective_payment_request_status(request, current),
        "base_amount": request.base_amount,
        "unique_code": request.unique_code,
        "total_amount": request.total_amount,
        "expires_at": display_deadline(
            backend_expires_at,
            backend_minutes=settings.payment_request_backend_expiry_minutes,
            display_minutes=settings.payment_request_display_minutes,
        ),
        "display_minutes": settings.payment_request_display_minutes,
        "verified_at": as_utc(request.verified_at) if request.verified_at is not None else None,
        "created_at": as_utc(request.created_at),
        "bank_account": (
            {
                "id": bank_account.id,
                "bank_name": bank_account.bank_name,
                "account_number": bank_account.account_number,
                "account_name": bank_account.account_name,
            }
            if bank_account is not None
            else None
        ),
        "tuitions": [
            {
                "id": item.tuition.id,
                "period": item.tuition.period,
                "year": item.tuition.year,
                "amount": item.amount,
                "status": item.tuition.status,
                "class_name": item.tuition.class_academic.class_name,
                "academic_year": item.tuition.class_academic.academic_year.year,
            }
            for item in request.items
        ],
    }


def serialize_admin_payment_request(request: PaymentRequest, *, now: datetime | None = None) -> dict:
    payload = serialize_student_payment_request(request, now=now)
    payload.update(
        {
            "backend_expires_at": as_utc(request.expires_at),
            "stored_status": request.status,
            "verified_by_employee_id": request.verified_by_employee_id,
            "student": {"id": request.student.id, "nis": request.student.nis, "name": request.student.name},
        }
    )
    return payload
