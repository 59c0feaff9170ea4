from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from app.domain.payment_request_status import PaymentRequestStatus
from app.domain.tuition_status import TuitionStatus
from app.interfaces.api.v1.schemas.pagination import PaginationMeta


class PaymentRequestCreate(BaseModel):
    tuition_ids: list[int] = Field(min_length=1)


class PaymentRequestTuitionRef(BaseModel):
    id: int
    period: str
    year: int
    amount: Decimal
    status: TuitionStatus
    class_name: str
    academic_year: str


class BankAccountRef(BaseModel):
    id: int
    bank_name: str
    account_number: str
    account_name: str


class PaymentRequestResponse(BaseModel):
    id: int
    status: PaymentRequestStatus
    base_amount: Decimal
    unique_code: int
    total_amount: Decimal
    expires_at: datetime
    display_minutes: int
    verified_at: datetime | None = None
    created_at: datetime
    bank_account: BankAccountRef | None = None
    tuitions: list[PaymentRequestTuitionRef]


class PaymentRequestListResponse(BaseModel):
    items: list[PaymentRequestResponse]
    pagination: PaginationMeta


class PaymentRequestStudentRef(BaseModel):
    id: int
    nis: str
    name: str


class AdminPaymentRequestResponse(PaymentRequestResponse):
    backend_expires_at: datetime
    stored_status: PaymentRequestStatus
    verified_by_employee_id: int | None = None
    student: PaymentRequestStudentRef


class AdminPaymentRequestListResponse(BaseModel):
    items: list[AdminPaymentRequestResponse]
    pagination: PaginationMeta


class PaymentRequestVerify(BaseModel):
    bank_account_id: int | None = None
    notes: str | None = Field(default=None, max_length=500)


class PaymentRequestVerificationResponse(BaseModel):
    payment_request: AdminPaymentRequestResponse
    payment_ids: list[int]
    unallocated_amount: Decimal


class CancelPaymentRequestResponse(BaseModel):
    id: int
    status: PaymentRequestStatus
    message: str
