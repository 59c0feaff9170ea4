from sqlalchemy import select

from app.application.services.pagination_service import build_pagination_meta, paginate_scalars
from app.infrastructure.db.models import Student
from app.interfaces.api.v1.schemas.pagination import PaginationParams
from tests.helpers.factories import create_student


def test_paginate_scalars_returns_totals_without_search(db_session):
    """
    Validate paginate_scalars count metadata without search.

    1. Seed three students.
    2. Paginate with offset zero and limit two.
    3. Validate the first page size follows the limit.
    4. Validate total and filtered_total are identical.
    """
    for nis in ("P-001", "P-002", "P-003"):
        create_student(db_session, nis=nis, password=None)
    items, meta = paginate_scalars(
        db_session,
        select(Student).order_by(Student.id),
        PaginationParams(offset=0, limit=2),
        search_columns=[Student.name, Student.nis],
    )
    assert len(items) == 2
    assert meta.total == 3
    assert meta.filtered_total == 3
    assert meta.has_next is True
    assert meta.has_prev is False


def test_paginate_scalars_applies_search_to_configured_columns(db_session):
    """
    Validate search across the configured columns.

    1. Seed one matching and one non-matching student.
    2. Paginate with a case-insensitive search term.
    3. Validate only the matching student is returned.
    4. Validate filtered_total reflects the subset.
    """
    create_student(db_session, nis="P-010", name="Needle Putra", password=None)
    create_student(db_session, nis="P-011", name="Other Putri", password=None)
    items, meta = paginate_scalars(
        db_session,
        select(Student).order_by(Student.id),
        PaginationParams(offset=0, limit=10, search="needle"),
        search_columns=[Student.name, Student.nis],
    )
    assert [item.nis for item in items] == ["P-010"]
    assert meta.total == 2
    assert meta.filtered_total == 1


def test_build_pagination_meta_for_middle_and_empty_pages():
    """
    Validate navigation flags and page numbers.

    1. Build metadata for the second page of three.
    2. Build metadata for an empty result.
    3. Read page counters and navigation flags.
    4. Validate middle page flags and zeroed empty counters.
    """
    middle = build_pagination_meta(offset=10, limit=10, total=25, filtered_total=25)
    assert middle.current_page == 2
    assert middle.total_pages == 3
    assert middle.has_next is True
    assert middle.has_prev is True

    empty = build_pagination_meta(offset=0, limit=10, total=0, filtered_total=0)
    assert empty.current_page == 0
    assert empty.total_pages == 0
    assert empty.has_next is False
