from pydantic import BaseModel, Field


class PaginationParams(BaseModel):
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=20, ge=1)
    search: str | None = None


class PaginationMeta(BaseModel):
    """Offset pagination metadata returned next to every list of tuitions, payments, requests or transfers."""

    offset: int
    limit: int
    total: int
    filtered_total: int
    current_page: int
    total_pages: int
    filtered_total_pages: int
    has_prev: bool
    has_next: bool
