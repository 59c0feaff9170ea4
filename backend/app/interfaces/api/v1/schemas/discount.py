from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class DiscountCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = Field(default=None, max_length=500)
    academic_year_id: int
    class_academic_id: int | None = None
    discount_amount: Decimal
    target_periods: list[str]


class DiscountResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None = None
    academic_year_id: int
    class_academic_id: int | None = None
    discount_amount: Decimal
    target_periods: list[str]
    is_active: bool
    created_at: datetime


class DiscountListResponse(BaseModel):
    items: list[DiscountResponse]


class DiscountApplicationResponse(BaseModel):
    discount_id: int
    preview: bool
    matched_tuitions: int
    applied_tuitions: int
    skipped_tuitions: int
    status_changed: int
    total_discount: Decimal
    tuition_ids: list[int]


class DiscountRemovalResponse(BaseModel):
    discount_id: int
    cleared_tuitions: int
    status_changed: int
