from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class ScholarshipCreate(BaseModel):
    student_id: int
    class_academic_id: int
    nominal: Decimal
    monthly_fee: Decimal | None = Field(default=None, gt=0)


class ScholarshipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    student_id: int
    class_academic_id: int
    nominal: Decimal
    is_full_scholarship: bool
    created_by_employee_id: int | None = None
    created_at: datetime


class ScholarshipCreateResponse(BaseModel):
    scholarship: ScholarshipResponse
    tuitions_auto_settled: int
    auto_payment_ids: list[int]
    tuitions_updated: int


class ScholarshipListResponse(BaseModel):
    items: list[ScholarshipResponse]
