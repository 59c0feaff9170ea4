from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.interfaces.api.v1.schemas.pagination import PaginationMeta
from app.interfaces.api.v1.schemas.payment_request import AdminPaymentRequestResponse


class BankTransferCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    received_at: datetime
    reference: str | None = Field(default=None, max_length=255)
    sender_name: str | None = Field(default=None, max_length=255)
    sender_account: str | None = Field(default=None, max_length=100)
    bank_account_id: int | None = None


class BankTransferResponse(BaseModel):
    id: int
    reference: str | None = None
    amount: Decimal
    received_at: datetime
    sender_name: str | None = None
    sender_account: str | None = None
    bank_account_id: int | None = None
    matched_payment_request_id: int | None = None
    is_matched: bool
    created_at: datetime


class BankTransferRecordResponse(BaseModel):
    transfer: BankTransferResponse
    is_duplicate: bool
    payment_request: AdminPaymentRequestResponse | None = None
    payment_ids: list[int] = Field(default_factory=list)
    unallocated_amount: Decimal | None = None


class BankTransferListResponse(BaseModel):
    items: list[BankTransferResponse]
    pagination: PaginationMeta
