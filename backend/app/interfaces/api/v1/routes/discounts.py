from dataclasses import asdict

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.application.services.discount_service import (
    apply_discount,
    create_discount,
    get_discount,
    list_discounts,
    remove_discount,
    set_discount_active,
)
from app.infrastructure.db.models import Employee
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import get_current_employee, require_admin
from app.interfaces.api.v1.schemas.discount import (
    DiscountApplicationResponse,
    DiscountCreate,
    DiscountListResponse,
    DiscountRemovalResponse,
    DiscountResponse,
)

router = APIRouter(prefix="/discounts", tags=["discounts"])


@router.post(
    "",
    response_model=DiscountResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create discount",
    description=(
        "Create a discount for an academic year, optionally scoped to one class. "
        "`target_periods` accepts month names, `Q1`..`Q4` and `SEM1`/`SEM2`."
    ),
    responses={
        400: {"description": "Validation error"},
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        404: {"description": "Academic year or class not found"},
    },
)
def create_discount_endpoint(
    payload: DiscountCreate,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return create_discount(db, payload=payload)


@router.get(
    "",
    response_model=DiscountListResponse,
    summary="List discounts",
    responses={401: {"description": "Unauthorized"}},
)
def list_discounts_endpoint(
    academic_year_id: int | None = None,
    is_active: bool | None = None,
    _: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return {"items": list_discounts(db, academic_year_id=academic_year_id, is_active=is_active)}


@router.get(
    "/{discount_id}",
    response_model=DiscountResponse,
    summary="Get discount detail",
    responses={401: {"description": "Unauthorized"}, 404: {"description": "Discount not found"}},
)
def get_discount_endpoint(
    discount_id: int,
    _: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return get_discount(db, discount_id=discount_id)


@router.get(
    "/{discount_id}/preview",
    response_model=DiscountApplicationResponse,
    summary="Preview discount application",
    description="Compute which tuitions the discount would change without writing anything.",
    responses={
        400: {"description": "Discount is not active"},
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        404: {"description": "Discount not found"},
    },
)
def preview_discount_endpoint(
    discount_id: int,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return asdict(apply_discount(db, discount_id=discount_id, preview=True))


@router.post(
    "/{discount_id}/apply",
    response_model=DiscountApplicationResponse,
    summary="Apply discount",
    description=(
        "Apply the discount to matching unpaid and partial tuitions. A class-specific discount is never "
        "replaced by a school-wide one, and an existing discount is only replaced by a larger amount."
    ),
    responses={
        400: {"description": "Discount is not active"},
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        404: {"description": "Discount not found"},
    },
)
def apply_discount_endpoint(
    discount_id: int,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return asdict(apply_discount(db, discount_id=discount_id))


@router.post(
    "/{discount_id}/remove",
    response_model=DiscountRemovalResponse,
    summary="Remove discount from tuitions",
    description="Clear the discount from every unpaid and partial tuition carrying it.",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        404: {"description": "Discount not found"},
    },
)
def remove_discount_endpoint(
    discount_id: int,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return asdict(remove_discount(db, discount_id=discount_id))


@router.post(
    "/{discount_id}/deactivate",
    response_model=DiscountResponse,
    summary="Deactivate discount",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        404: {"description": "Discount not found"},
    },
)
def deactivate_discount_endpoint(
    discount_id: int,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return set_discount_active(db, discount_id=discount_id, is_active=False)
