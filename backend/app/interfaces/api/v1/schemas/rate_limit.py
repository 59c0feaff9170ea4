from datetime import datetime

from pydantic import BaseModel

from app.domain.rate_limits import RateLimitAction
from app.domain.record_status import RecordStatus
from app.interfaces.api.v1.schemas.pagination import PaginationMeta


class RateLimitRecordResponse(BaseModel):
    id: int
    key: str
    action: str
    identifier: str
    count: int
    window_start: datetime
    expires_at: datetime
    status: RecordStatus


class RateLimitRecordListResponse(BaseModel):
    items: list[RateLimitRecordResponse]
    pagination: PaginationMeta


class RateLimitReset(BaseModel):
    action: RateLimitAction
    identifier: str


class RateLimitResetResponse(BaseModel):
    action: RateLimitAction
    identifier: str
    reset_records: int
