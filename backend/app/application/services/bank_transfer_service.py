from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.application.errors import ApplicationError, ConflictError, ValidationError
from app.application.services.payment_request_service import VerificationResult, verify_payment_request
from app.domain.clock import utcnow
from app.domain.money import ZERO, to_money
from app.domain.payment_request_status import PaymentRequestStatus
from app.infrastructure.db.models import BankTransfer, PaymentRequest
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class BankTransferResult:
    transfer: BankTransfer
    is_duplicate: bool
    verification: VerificationResult | None


def find_matching_payment_request(db: Session, *, amount: Decimal, now: datetime | None = None) -> PaymentRequest | None:
    """Oldest pending, unexpired request whose unique total equals the transferred amount."""
    current = now or utcnow()
    return db.execute(
        select(PaymentRequest)
        .where(
            PaymentRequest.total_amount == to_money(amount),
            PaymentRequest.status == PaymentRequestStatus.pending,
            PaymentRequest.expires_at > current,
        )
        .order_by(PaymentRequest.created_at, PaymentRequest.id)
        .limit(1)
    ).scalar_one_or_none()


def _get_by_reference(db: Session, *, reference: str) -> BankTransfer | None:
    return db.execute(select(BankTransfer).where(BankTransfer.reference == reference)).scalar_one_or_none()


def _match_transfer(
    db: Session,
    *,
    transfer: BankTransfer,
    now: datetime,
) -> VerificationResult | None:
    match = find_matching_payment_request(db, amount=transfer.amount, now=now)
    if match is None:
        logger.warning("bank_transfer_unmatched", bank_transfer_id=transfer.id, amount=str(transfer.amount))
        return None

    try:
        verification = verify_payment_request(
            db,
            payment_request_id=match.id,
            bank_account_id=transfer.bank_account_id,
            now=now,
        )
    except ApplicationError as exc:
        db.rollback()
        logger.warning(
            "bank_transfer_verification_failed",
            bank_transfer_id=transfer.id,
            payment_request_id=match.id,
            error=str(exc),
        )
        raise
    transfer.matched_payment_request_id = verification.payment_request.id
    transfer.is_matched = True
    db.commit()
    logger.info(
        "bank_transfer_matched",
        bank_transfer_id=transfer.id,
        payment_request_id=verification.payment_request.id,
    )
    return verification


def record_bank_transfer(
    db: Session,
    *,
    amount: Decimal,
    received_at: datetime,
    reference: str | None = None,
    sender_name: str | None = None,
    sender_account: str | None = None,
    bank_account_id: int | None = None,
    now: datetime | None = None,
) -> BankTransferResult:
    """
    Log an inbound transfer and settle the pending request carrying exactly its amount.

    A replayed reference whose earlier attempt stayed unmatched is matched again, so a
    failed verification can be retried by resending the same notification.
    """
    amount = to_money(amount)
    if amount <= ZERO:
        raise ValidationError("Transfer amount must be greater than zero")
    current = now or utcnow()

    if reference is not None:
        existing = _get_by_reference(db, reference=reference)
        if existing is not None:
            logger.info("bank_transfer_replayed", bank_transfer_id=existing.id, reference=reference)
            if existing.is_matched:
                return BankTransferResult(transfer=existing, is_duplicate=True, verification=None)
            if bank_account_id is not None and existing.bank_account_id != bank_account_id:
                existing.bank_account_id = bank_account_id
                db.commit()
            verification = _match_transfer(db, transfer=existing, now=current)
            return BankTransferResult(transfer=existing, is_duplicate=True, verification=verification)

    transfer = BankTransfer(
        reference=reference,
        amount=amount,
        received_at=received_at,
        sender_name=sender_name,
        sender_account=sender_account,
        bank_account_id=bank_account_id,
        is_matched=False,
    )
    db.add(transfer)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        winner = _get_by_reference(db, reference=reference) if reference is not None else None
        if winner is None:
            raise ConflictError("Bank transfer could not be recorded")
        return BankTransferResult(transfer=winner, is_duplicate=True, verification=None)
    logger.info("bank_transfer_recorded", bank_transfer_id=transfer.id, amount=str(amount), reference=reference)

    verification = _match_transfer(db, transfer=transfer, now=current)
    return BankTransferResult(transfer=transfer, is_duplicate=False, verification=verification)


def list_bank_transfers_query(*, is_matched: bool | None = None):
    query = select(BankTransfer).order_by(BankTransfer.received_at.desc(), BankTransfer.id.desc())
    if is_matched is not None:
        query = query.where(BankTransfer.is_matched == is_matched)
    return query


def serialize_bank_transfer(transfer: BankTransfer) -> dict:
    return {
        "id": transfer.id,
        "reference": transfer.reference,
        "amount": transfer.amount,
        "received_at": transfer.received_at,
        "sender_name": transfer.sender_name,
        "sender_account": transfer.sender_account,
        "bank_account_id": transfer.bank_account_id,
        "matched_payment_request_id": transfer.matched_payment_request_id,
        "is_matched": transfer.is_matched,
        "created_at": transfer.created_at,
    }
