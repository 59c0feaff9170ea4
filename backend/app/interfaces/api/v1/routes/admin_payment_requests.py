from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.application.services.pagination_service import paginate_scalars
from app.application.services.payment_request_service import (
    get_payment_request,
    list_payment_requests_query,
    serialize_admin_payment_request,
    verify_payment_request,
)
from app.domain.payment_request_status import PaymentRequestStatus
from app.infrastructure.db.models import Employee
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import require_admin
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.pagination import PaginationParams
from app.interfaces.api.v1.schemas.payment_request import (
    AdminPaymentRequestListResponse,
    AdminPaymentRequestResponse,
    PaymentRequestVerificationResponse,
    PaymentRequestVerify,
)

router = APIRouter(prefix="/admin/payment-requests", tags=["admin-payment-requests"])


@router.get(
    "",
    response_model=AdminPaymentRequestListResponse,
    summary="List payment requests",
    description="All payment requests, newest first, with backend deadlines visible.",
    responses={401: {"description": "Unauthorized"}, 403: {"description": "Admin role required"}},
)
def list_admin_payment_requests(
    student_id: int | None = None,
    status_filter: PaymentRequestStatus | None = Query(default=None, alias="status"),
    pagination: PaginationParams = Depends(get_pagination_params),
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    items, meta = paginate_scalars(
        db,
        list_payment_requests_query(student_id=student_id, status=status_filter),
        pagination,
    )
    return {"items": [serialize_admin_payment_request(item) for item in items], "pagination": meta}


@router.get(
    "/{payment_request_id}",
    response_model=AdminPaymentRequestResponse,
    summary="Get payment request detail",
    responses={
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        404: {"description": "Payment request not found"},
    },
)
def get_admin_payment_request(
    payment_request_id: int,
    _: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return serialize_admin_payment_request(get_payment_request(db, payment_request_id=payment_request_id))


@router.post(
    "/{payment_request_id}/verify",
    response_model=PaymentRequestVerificationResponse,
    summary="Verify payment request manually",
    description=(
        "Settle a pending request after confirming the transfer out of band. "
        "The backend deadline applies, not the shorter deadline shown to the student."
    ),
    responses={
        400: {"description": "Request is not pending or has expired"},
        401: {"description": "Unauthorized"},
        403: {"description": "Admin role required"},
        404: {"description": "Payment request or bank account not found"},
    },
)
def verify_admin_payment_request(
    payment_request_id: int,
    payload: PaymentRequestVerify,
    current_employee: Employee = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = verify_payment_request(
        db,
        payment_request_id=payment_request_id,
        bank_account_id=payload.bank_account_id,
        verified_by_employee_id=current_employee.id,
        notes=payload.notes,
    )
    return {
        "payment_request": serialize_admin_payment_request(result.payment_request),
        "payment_ids": result.payment_ids,
        "unallocated_amount": result.unallocated_amount,
    }
