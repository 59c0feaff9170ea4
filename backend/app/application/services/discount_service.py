from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from app.application.errors import NotFoundError, ValidationError
from app.application.services.payment_service import recalculate_tuition_status
from app.domain.money import ZERO, to_money
from app.domain.periods import is_period_match, unknown_period_codes
from app.domain.tuition_status import TuitionStatus
from app.infrastructure.db.models import AcademicYear, ClassAcademic, Discount, Tuition
from app.infrastructure.logging import get_logger
from app.interfaces.api.v1.schemas.discount import DiscountCreate

logger = get_logger(__name__)


@dataclass(frozen=True)
class DiscountApplicationResult:
    discount_id: int
    preview: bool
    matched_tuitions: int
    applied_tuitions: int
    skipped_tuitions: int
    status_changed: int
    total_discount: Decimal
    tuition_ids: list[int] = field(default_factory=list)


@dataclass(frozen=True)
class DiscountRemovalResult:
    discount_id: int
    cleared_tuitions: int
    status_changed: int


def create_discount(db: Session, *, payload: DiscountCreate) -> Discount:
    amount = to_money(payload.discount_amount)
    if amount <= ZERO:
        raise ValidationError("Discount amount must be greater than zero")
    target_periods = list(dict.fromkeys(period.strip().upper() for period in payload.target_periods))
    if not target_periods:
        raise ValidationError("At least one target period is required")
    unknown = unknown_period_codes(target_periods)
    if unknown:
        raise ValidationError(f"Unknown target periods: {', '.join(unknown)}")
    if db.get(AcademicYear, payload.academic_year_id) is None:
        raise NotFoundError("Academic year not found")
    if payload.class_academic_id is not None:
        class_academic = db.get(ClassAcademic, payload.class_academic_id)
        if class_academic is None:
            raise NotFoundError("Class not found")
        if class_academic.academic_year_id != payload.academic_year_id:
            raise ValidationError("Class does not belong to the discount academic year")

    discount = Discount(
        name=payload.name,
        description=payload.description,
        academic_year_id=payload.academic_year_id,
        class_academic_id=payload.class_academic_id,
        discount_amount=amount,
        target_periods=target_periods,
        is_active=True,
    )
    db.add(discount)
    db.commit()
    db.refresh(discount)
    logger.info(
        "discount_created",
        discount_id=discount.id,
        academic_year_id=discount.academic_year_id,
        class_academic_id=discount.class_academic_id,
        discount_amount=str(amount),
        target_periods=target_periods,
    )
    return discount


def get_discount(db: Session, *, discount_id: int) -> Discount:
    discount = db.get(Discount, discount_id)
    if discount is None:
        raise NotFoundError("Discount not found")
    return discount


def list_discounts(db: Session, *, academic_year_id: int | None = None, is_active: bool | None = None) -> list[Discount]:
    query = select(Discount).order_by(Discount.id)
    if academic_year_id is not None:
        query = query.where(Discount.academic_year_id == academic_year_id)
    if is_active is not None:
        query = query.where(Discount.is_active == is_active)
    return list(db.execute(query).scalars().all())


def _matching_tuitions(db: Session, discount: Discount, *, lock: bool) -> list[Tuition]:
    query = (
        select(Tuition)
        .join(ClassAcademic, ClassAcademic.id == Tuition.class_academic_id)
        .where(
            ClassAcademic.academic_year_id == discount.academic_year_id,
            Tuition.status != TuitionStatus.paid,
        )
        .options(selectinload(Tuition.discount))
        .order_by(Tuition.id)
    )
    if discount.class_academic_id is not None:
        query = query.where(Tuition.class_academic_id == discount.class_academic_id)
    if lock:
        query = query.with_for_update(of=Tuition)
    return [
        tuition
        for tuition in db.execute(query).scalars().all()
        if is_period_match(tuition.period, discount.target_periods)
    ]


def _overrides_existing(discount: Discount, tuition: Tuition) -> bool:
    """Class-specific beats school-wide; otherwise only a strictly larger amount wins."""
    current = tuition.discount
    if current is None:
        return True
    if current.class_academic_id is not None and discount.class_academic_id is None:
        return False
    if discount.class_academic_id is not None and current.class_academic_id is None:
        return True
    return to_money(discount.discount_amount) > to_money(tuition.discount_amount)


def apply_discount(db: Session, *, discount_id: int, preview: bool = False) -> DiscountApplicationResult:
    discount = get_discount(db, discount_id=discount_id)
    if not discount.is_active:
        raise ValidationError("Discount is not active")

    tuitions = _matching_tuitions(db, discount, lock=not preview)
    amount = to_money(discount.discount_amount)
    applied_ids: list[int] = []
    skipped = 0
    status_changed = 0
    for tuition in tuitions:
        if tuition.discount_id == discount.id or not _overrides_existing(discount, tuition):
            skipped += 1
            continue
        applied_ids.append(tuition.id)
        if preview:
            continue
        previous_status = tuition.status
        tuition.discount_id = discount.id
        tuition.discount_amount = amount
        if recalculate_tuition_status(tuition) != previous_status:
            status_changed += 1

    if preview:
        db.rollback()
    else:
        db.commit()
    result = DiscountApplicationResult(
        discount_id=discount_id,
        preview=preview,
        matched_tuitions=len(tuitions),
        applied_tuitions=len(applied_ids),
        skipped_tuitions=skipped,
        status_changed=status_changed,
        total_discount=to_money(amount * len(applied_ids)),
        tuition_ids=applied_ids,
    )
    logger.info(
        "discount_previewed" if preview else "discount_applied",
        discount_id=discount_id,
        matched_tuitions=result.matched_tuitions,
        applied_tuitions=result.applied_tuitions,
        skipped_tuitions=result.skipped_tuitions,
        status_changed=result.status_changed,
    )
    return result


def remove_discount(db: Session, *, discount_id: int) -> DiscountRemovalResult:
    get_discount(db, discount_id=discount_id)
    tuitions = list(
        db.execute(
            select(Tuition)
            .where(Tuition.discount_id == discount_id, Tuition.status != TuitionStatus.paid)
            .order_by(Tuition.id)
            .with_for_update()
        )
        .scalars()
        .all()
    )
    status_changed = 0
    for tuition in tuitions:
        previous_status = tuition.status
        tuition.discount_id = None
        tuition.discount_amount = ZERO
        if recalculate_tuition_status(tuition) != previous_status:
            status_changed += 1
    db.commit()
    logger.info("discount_removed", discount_id=discount_id, cleared_tuitions=len(tuitions), status_changed=status_changed)
    return DiscountRemovalResult(discount_id=discount_id, cleared_tuitions=len(tuitions), status_changed=status_changed)


def set_discount_active(db: Session, *, discount_id: int, is_active: bool) -> Discount:
    discount = get_discount(db, discount_id=discount_id)
    discount.is_active = is_active
    db.commit()
    db.refresh(discount)
    logger.info("discount_activation_changed", discount_id=discount_id, is_active=is_active)
    return discount
