from datetime import datetime
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.domain.clock import utcnow
from app.domain.money import to_money
from app.domain.payment_request_status import PaymentRequestStatus
from app.domain.tuition_status import derive_tuition_status
from app.infrastructure.db.models import Payment, PaymentRequest, PaymentRequestTuition, Tuition
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)


def _check_tuition_status_matches_amounts(db: Session) -> list[dict]:
    findings = []
    tuitions = db.execute(select(Tuition).order_by(Tuition.id)).scalars().all()
    for tuition in tuitions:
        expected = derive_tuition_status(
            fee_amount=tuition.fee_amount,
            scholarship_amount=tuition.scholarship_amount,
            discount_amount=tuition.discount_amount,
            paid_amount=tuition.paid_amount,
        )
        if expected == tuition.status:
            continue
        findings.append(
            {
                "check_code": "tuition_status_mismatch",
                "severity": "high",
                "entity_type": "tuition",
                "entity_id": tuition.id,
                "message": "Stored tuition status differs from the status derived from its amounts",
                "details_json": {"stored_status": tuition.status.value, "derived_status": expected.value},
            }
        )
    return findings


def _check_paid_amount_vs_payments(db: Session) -> list[dict]:
    payment_totals = (
        select(Payment.tuition_id, func.sum(Payment.amount).label("payments_total"))
        .group_by(Payment.tuition_id)
        .subquery()
    )
    rows = db.execute(
        select(
            Tuition.id,
            Tuition.paid_amount,
            func.coalesce(payment_totals.c.payments_total, Decimal("0.00")).label("payments_total"),
        )
        .outerjoin(payment_totals, payment_totals.c.tuition_id == Tuition.id)
        .order_by(Tuition.id)
    ).all()
    return [
        {
            "check_code": "tuition_paid_amount_mismatch",
            "severity": "high",
            "entity_type": "tuition",
            "entity_id": row.id,
            "message": "Tuition paid amount does not match the sum of its payments",
            "details_json": {"paid_amount": str(to_money(row.paid_amount)), "payments_total": str(to_money(row.payments_total))},
        }
        for row in rows
        if to_money(row.paid_amount) != to_money(row.payments_total)
    ]


def _check_duplicate_pending_totals(db: Session, *, as_of: datetime) -> list[dict]:
    rows = db.execute(
        select(PaymentRequest.total_amount, func.count(PaymentRequest.id).label("requests"))
        .where(PaymentRequest.status == PaymentRequestStatus.pending, PaymentRequest.expires_at > as_of)
        .group_by(PaymentRequest.total_amount)
        .having(func.count(PaymentRequest.id) > 1)
        .order_by(PaymentRequest.total_amount)
    ).all()
    return [
        {
            "check_code": "duplicate_pending_total_amount",
            "severity": "high",
            "entity_type": "payment_request",
            "entity_id": None,
            "message": "More than one pending payment request shares the same transfer amount",
            "details_json": {"total_amount": str(to_money(row.total_amount)), "requests": row.requests},
        }
        for row in rows
    ]


def _check_request_lines_vs_base_amount(db: Session) -> list[dict]:
    rows = db.execute(
        select(
            PaymentRequest.id,
            PaymentRequest.base_amount,
            func.coalesce(func.sum(PaymentRequestTuition.amount), Decimal("0.00")).label("lines_total"),
        )
        .outerjoin(PaymentRequestTuition, PaymentRequestTuition.payment_request_id == PaymentRequest.id)
        .group_by(PaymentRequest.id, PaymentRequest.base_amount)
        .order_by(PaymentRequest.id)
    ).all()
    return [
        {
            "check_code": "payment_request_lines_mismatch",
            "severity": "medium",
            "entity_type": "payment_request",
            "entity_id": row.id,
            "message": "Payment request base amount does not match the sum of its tuition lines",
            "details_json": {"base_amount": str(to_money(row.base_amount)), "lines_total": str(to_money(row.lines_total))},
        }
        for row in rows
        if to_money(row.base_amount) != to_money(row.lines_total)
    ]


def run_all_ledger_checks(db: Session, *, as_of: datetime | None = None) -> list[dict]:
    as_of = as_of or utcnow()
    findings: list[dict] = []
    findings.extend(_check_tuition_status_matches_amounts(db))
    findings.extend(_check_paid_amount_vs_payments(db))
    findings.extend(_check_duplicate_pending_totals(db, as_of=as_of))
    findings.extend(_check_request_lines_vs_base_amount(db))
    if findings:
        logger.warning("ledger_checks_found_issues", findings=len(findings))
    return findings
