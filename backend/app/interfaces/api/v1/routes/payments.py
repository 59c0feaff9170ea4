from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from app.application.services.pagination_service import paginate_scalars
from app.application.services.payment_service import (
    PaymentFilters,
    build_payments_query,
    get_payment,
    process_payment,
    reverse_payment,
    serialize_payment_response,
    serialize_payment_result,
)
from app.domain.payment_method import PaymentMethod
from app.infrastructure.db.models import Employee, Payment
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import get_current_employee, require_admin
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.pagination import PaginationParams
from app.interfaces.api.v1.schemas.payment import (
    PaymentCreate,
    PaymentListResponse,
    PaymentResponse,
    PaymentResultResponse,
    PaymentReversalResponse,
)

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post(
    "",
    response_model=PaymentResultResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record cash payment",
    description="Record a counter payment against one tuition and return the resulting tuition state.",
    responses={
        400: {"description": "Invalid amount or tuition already paid"},
        401: {"description": "Unauthorized"},
        404: {"description": "Tuition not found"},
    },
)
def create_payment(
    payload: PaymentCreate,
    current_employee: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    result = process_payment(
        db,
        tuition_id=payload.tuition_id,
        amount=payload.amount,
        employee_id=current_employee.id,
        notes=payload.notes,
    )
    return serialize_payment_result(result)


@router.get(
    "",
    response_model=PaymentListResponse,
    summary="List payments",
    description="Filter payments by student, tuition, class, method and paid date range. `search` matches notes.",
    responses={401: {"description": "Unauthorized"}},
)
def list_payments(
    student_id: int | None = None,
    tuition_id: int | None = None,
    class_academic_id: int | None = None,
    method: PaymentMethod | None = None,
    paid_from: date | None = None,
    paid_to: date | None = None,
    pagination: PaginationParams = Depends(get_pagination_params),
    _: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    filters = PaymentFilters(
        student_id=student_id,
        tuition_id=tuition_id,
        class_academic_id=class_academic_id,
        method=method,
        paid_from=paid_from,
        paid_to=paid_to,
    )
    items, meta = paginate_scalars(db, build_payments_query(filters), pagination, search_columns=[Payment.notes])
    return {"items": [serialize_payment_response(item) for item in items], "pagination": meta}


@router.get(
    "/{payment_id}",
    response_model=PaymentResponse,
    summary="Get payment detail",
    responses={401: {"description": "Unauthorized"}, 404: {"description": "Payment not found"}},
)
def get_payment_detail(
    payment_id: int,
    _: Employee = Depends(get_current_employee),
    db: Session = Depends(get_db),
):
    return serialize_payment_response(get_payment(db, payment_id=payment_id))


@router.delete(
    "/{payment_id}",
    response_model=PaymentReversalResponse,
    summary="Reverse payment",
    description="Delete a payment and roll its amount back from the tuition. Admin only.",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        404: {"description": "Payment not found"},
    },
)
def delete_payment(
    payment_id: int,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = reverse_payment(db, payment_id=payment_id)
    return {
        "tuition_id": result.tuition_id,
        "previous_status": result.previous_status,
        "new_status": result.new_status,
        "new_paid_amount": result.new_paid_amount,
    }
