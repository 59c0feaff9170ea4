from fastapi import Query

from app.interfaces.api.v1.schemas.pagination import PaginationParams

MAX_PAGE_SIZE = 100


def _normalize_search(search: str | None) -> str | None:
    if search is None:
        return None
    return search.strip() or None


def get_pagination_params(
    offset: int = Query(default=0, ge=0, description="Rows to skip"),
    limit: int = Query(default=20, ge=1, le=MAX_PAGE_SIZE, description="Page size"),
    search: str | None = Query(default=None, max_length=100, description="Case-insensitive substring filter"),
) -> PaginationParams:
    return PaginationParams(offset=offset, limit=limit, search=_normalize_search(search))
