from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.application.services.pagination_service import paginate_scalars
from app.application.services.rate_limit_service import (
    list_rate_limit_records_query,
    reset_rate_limit,
    serialize_rate_limit_record,
)
from app.domain.rate_limits import RateLimitAction
from app.infrastructure.db.models import Employee, RateLimitRecord
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import require_admin
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.pagination import PaginationParams
from app.interfaces.api.v1.schemas.rate_limit import (
    RateLimitRecordListResponse,
    RateLimitReset,
    RateLimitResetResponse,
)

router = APIRouter(prefix="/admin/rate-limits", tags=["admin-rate-limits"])


@router.get(
    "",
    response_model=RateLimitRecordListResponse,
    summary="List rate limit records",
    description="Persisted rate limit windows. `search` matches the identifier.",
    responses={401: {"description": "Unauthorized"}, 403: {"description": "Admin role required"}},
)
def list_rate_limits(
    action: RateLimitAction | None = None,
    identifier: str | None = None,
    pagination: PaginationParams = Depends(get_pagination_params),
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    items, meta = paginate_scalars(
        db,
        list_rate_limit_records_query(action=action.value if action is not None else None, identifier=identifier),
        pagination,
        search_columns=[RateLimitRecord.identifier],
    )
    return {"items": [serialize_rate_limit_record(item) for item in items], "pagination": meta}


@router.post(
    "/reset",
    response_model=RateLimitResetResponse,
    summary="Reset a rate limit",
    description="Deactivate the current window for one action and identifier so the next attempt starts fresh.",
    responses={401: {"description": "Unauthorized"}, 403: {"description": "Admin role required"}},
)
def reset_rate_limit_endpoint(
    payload: RateLimitReset,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    reset = reset_rate_limit(db, action=payload.action, identifier=payload.identifier)
    return {"action": payload.action, "identifier": payload.identifier, "reset_records": reset}
