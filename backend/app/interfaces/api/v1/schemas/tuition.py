from datetime import date
from decimal import Decimal

from pydantic import BaseModel

from app.domain.tuition_status import TuitionStatus
from app.interfaces.api.v1.schemas.pagination import PaginationMeta


class TuitionResponse(BaseModel):
    id: int
    student_id: int
    class_academic_id: int
    class_name: str
    academic_year: str
    period: str
    year: int
    fee_amount: Decimal
    scholarship_amount: Decimal
    discount_amount: Decimal
    discount_id: int | None = None
    effective_fee_amount: Decimal
    paid_amount: Decimal
    outstanding_amount: Decimal
    status: TuitionStatus
    due_date: date


class TuitionListResponse(BaseModel):
    items: list[TuitionResponse]
    pagination: PaginationMeta


class UnpaidTuitionListResponse(BaseModel):
    items: list[TuitionResponse]
    total_outstanding: Decimal


class ScholarshipSyncRequest(BaseModel):
    student_id: int | None = None
    class_academic_id: int | None = None


class ScholarshipSyncResponse(BaseModel):
    total_tuitions: int
    updated: int
    status_changed: int
    skipped_paid_tuitions: int


class ScholarshipSyncTaskResponse(BaseModel):
    task_id: str
    status: str
    message: str
