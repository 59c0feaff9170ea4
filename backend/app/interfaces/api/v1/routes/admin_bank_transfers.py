from fastapi import APIRouter, Depends, status
from sqlalchemy import String, cast
from sqlalchemy.orm import Session

from app.application.services.bank_transfer_service import (
    list_bank_transfers_query,
    record_bank_transfer,
    serialize_bank_transfer,
)
from app.application.services.pagination_service import paginate_scalars
from app.application.services.payment_request_service import serialize_admin_payment_request
from app.infrastructure.db.models import BankTransfer, Employee
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import require_admin
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.bank_transfer import (
    BankTransferCreate,
    BankTransferListResponse,
    BankTransferRecordResponse,
)
from app.interfaces.api.v1.schemas.pagination import PaginationParams

router = APIRouter(prefix="/admin/bank-transfers", tags=["admin-bank-transfers"])


@router.post(
    "",
    response_model=BankTransferRecordResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record inbound bank transfer",
    description=(
        "Log a transfer observed on a school account and settle the oldest pending request with exactly "
        "that amount. A repeated `reference` returns the stored transfer without settling again."
    ),
    responses={
        400: {"description": "Validation error"},
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
    },
)
def record_bank_transfer_endpoint(
    payload: BankTransferCreate,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = record_bank_transfer(
        db,
        amount=payload.amount,
        received_at=payload.received_at,
        reference=payload.reference,
        sender_name=payload.sender_name,
        sender_account=payload.sender_account,
        bank_account_id=payload.bank_account_id,
    )
    verification = result.verification
    return {
        "transfer": serialize_bank_transfer(result.transfer),
        "is_duplicate": result.is_duplicate,
        "payment_request": (
            serialize_admin_payment_request(verification.payment_request) if verification is not None else None
        ),
        "payment_ids": verification.payment_ids if verification is not None else [],
        "unallocated_amount": verification.unallocated_amount if verification is not None else None,
    }


@router.get(
    "",
    response_model=BankTransferListResponse,
    summary="List bank transfers",
    description="Inbound transfers, newest first. `search` matches reference, sender and amount.",
    responses={401: {"description": "Unauthorized"}, 403: {"description": "Admin role required"}},
)
def list_bank_transfers_endpoint(
    is_matched: bool | None = None,
    pagination: PaginationParams = Depends(get_pagination_params),
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    items, meta = paginate_scalars(
        db,
        list_bank_transfers_query(is_matched=is_matched),
        pagination,
        search_columns=[BankTransfer.reference, BankTransfer.sender_name, cast(BankTransfer.amount, String)],
    )
    return {"items": [serialize_bank_transfer(item) for item in items], "pagination": meta}
