from fastapi import APIRouter, Depends, Header, Query, Response, status
from sqlalchemy.orm import Session

from app.application.services.pagination_service import paginate_scalars
from app.application.services.payment_lock_service import payment_request_creation_lock
from app.application.services.payment_request_service import (
    cancel_payment_request,
    get_active_payment_request,
    get_payment_request_for_student,
    list_payment_requests_query,
    serialize_student_payment_request,
    submit_payment_request,
)
from app.application.services.rate_limit_service import enforce_rate_limit
from app.domain.payment_request_status import PaymentRequestStatus
from app.domain.rate_limits import RateLimitAction
from app.infrastructure.db.models import Student
from app.infrastructure.db.session import get_db
from app.interfaces.api.v1.dependencies.auth import get_current_student
from app.interfaces.api.v1.dependencies.pagination import get_pagination_params
from app.interfaces.api.v1.schemas.pagination import PaginationParams
from app.interfaces.api.v1.schemas.payment_request import (
    CancelPaymentRequestResponse,
    PaymentRequestCreate,
    PaymentRequestListResponse,
    PaymentRequestResponse,
)

router = APIRouter(prefix="/student/payment-requests", tags=["student-payment-requests"])


@router.post(
    "",
    response_model=PaymentRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create payment request",
    description=(
        "Bundle unpaid tuitions into one bank transfer with a unique amount. "
        "Send `X-Idempotency-Key` to make retries safe; a replay returns the original payload with 200. "
        "Rate limited per student and guarded by a short Redis lock."
    ),
    responses={
        200: {"description": "Replay of an earlier request with the same idempotency key"},
        400: {"description": "Validation error"},
        401: {"description": "Unauthorized"},
        409: {"description": "Concurrent submission"},
        429: {"description": "Too many requests"},
        503: {"description": "No unique amount available, retry shortly"},
    },
)
def create_student_payment_request(
    payload: PaymentRequestCreate,
    response: Response,
    idempotency_key: str | None = Header(default=None, alias="X-Idempotency-Key"),
    current_student: Student = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    enforce_rate_limit(db, action=RateLimitAction.payment_request, identifier=current_student.nis)
    with payment_request_creation_lock(student_id=current_student.id):
        outcome = submit_payment_request(
            db,
            student=current_student,
            tuition_ids=payload.tuition_ids,
            idempotency_key=idempotency_key,
        )
    if outcome.is_duplicate:
        response.status_code = status.HTTP_200_OK
    return outcome.result


@router.get(
    "",
    response_model=PaymentRequestListResponse,
    summary="List own payment requests",
    responses={401: {"description": "Unauthorized"}},
)
def list_student_payment_requests(
    status_filter: PaymentRequestStatus | None = Query(default=None, alias="status"),
    current_student: Student = Depends(get_current_student),
    pagination: PaginationParams = Depends(get_pagination_params),
    db: Session = Depends(get_db),
):
    items, meta = paginate_scalars(
        db,
        list_payment_requests_query(student_id=current_student.id, status=status_filter),
        pagination,
    )
    return {"items": [serialize_student_payment_request(item) for item in items], "pagination": meta}


@router.get(
    "/active",
    response_model=PaymentRequestResponse | None,
    summary="Get active payment request",
    description="Return the pending, unexpired payment request of the caller, or null.",
    responses={401: {"description": "Unauthorized"}},
)
def get_student_active_payment_request(
    current_student: Student = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    request = get_active_payment_request(db, student_id=current_student.id)
    return serialize_student_payment_request(request) if request is not None else None


@router.get(
    "/{payment_request_id}",
    response_model=PaymentRequestResponse,
    summary="Get payment request detail",
    responses={401: {"description": "Unauthorized"}, 404: {"description": "Payment request not found"}},
)
def get_student_payment_request(
    payment_request_id: int,
    current_student: Student = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    request = get_payment_request_for_student(
        db,
        payment_request_id=payment_request_id,
        student_id=current_student.id,
    )
    return serialize_student_payment_request(request)


@router.post(
    "/{payment_request_id}/cancel",
    response_model=CancelPaymentRequestResponse,
    summary="Cancel payment request",
    description="Cancel a pending payment request owned by the caller. Rate limited per student.",
    responses={
        400: {"description": "Request is not pending"},
        401: {"description": "Unauthorized"},
        404: {"description": "Payment request not found"},
        429: {"description": "Too many requests"},
    },
)
def cancel_student_payment_request(
    payment_request_id: int,
    current_student: Student = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    enforce_rate_limit(db, action=RateLimitAction.cancel_payment, identifier=current_student.nis)
    request = cancel_payment_request(db, payment_request_id=payment_request_id, student_id=current_student.id)
    return {"id": request.id, "status": request.status, "message": "Payment request cancelled"}
