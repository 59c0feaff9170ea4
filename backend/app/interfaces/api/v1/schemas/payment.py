from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from app.domain.payment_method import PaymentMethod
from app.domain.tuition_status import TuitionStatus
from app.interfaces.api.v1.schemas.pagination import PaginationMeta


class PaymentCreate(BaseModel):
    tuition_id: int
    amount: Decimal = Field(gt=0)
    notes: str | None = Field(default=None, max_length=500)


class PaymentTuitionRef(BaseModel):
    id: int
    period: str
    year: int
    status: TuitionStatus
    paid_amount: Decimal


class PaymentStudentRef(BaseModel):
    id: int
    nis: str
    name: str


class PaymentEmployeeRef(BaseModel):
    id: int
    name: str


class PaymentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tuition_id: int
    employee_id: int | None = None
    payment_request_id: int | None = None
    amount: Decimal
    method: PaymentMethod
    paid_at: datetime
    notes: str | None = None
    created_at: datetime
    tuition: PaymentTuitionRef
    student: PaymentStudentRef
    employee: PaymentEmployeeRef | None = None


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]
    pagination: PaginationMeta


class PaymentResultResponse(BaseModel):
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


class PaymentReversalResponse(BaseModel):
    tuition_id: int
    previous_status: TuitionStatus
    new_status: TuitionStatus
    new_paid_amount: Decimal
