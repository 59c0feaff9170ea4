from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.application.errors import (
    CapacityError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    RateLimitError,
    ValidationError,
)
from app.config import settings
from app.domain.clock import utcnow
from app.infrastructure.logging import clear_log_context, configure_logging, get_logger
from app.interfaces.api.v1.router import api_router

logger = get_logger(__name__)

OPENAPI_DESCRIPTION = """
Tuition payment portal API: tuition ledgers, bank transfer payment requests with unique amounts,
scholarships, discounts and reconciliation.

How to call this API:
- Employees authenticate at `POST /api/v1/auth/token`; students at `POST /api/v1/student-auth/login`.
- Use `Authorization: Bearer <access_token>` in protected endpoints.
- Send `X-Idempotency-Key` when creating payment requests so retries do not create duplicates.
"""

OPENAPI_TAGS = [
    {"name": "health", "description": "Service health and connectivity checks."},
    {"name": "auth", "description": "Employee authentication and token revocation."},
    {"name": "student-auth", "description": "Student portal login, logout and password change."},
    {"name": "student-payment-requests", "description": "Student bank transfer payment requests."},
    {"name": "student-tuitions", "description": "Student view of outstanding tuitions."},
    {"name": "tuitions", "description": "Tuition reads and scholarship re-sync."},
    {"name": "payments", "description": "Counter payments, reversals and payment reads."},
    {"name": "scholarships", "description": "Scholarship grants with automatic settlement."},
    {"name": "discounts", "description": "Period discounts with preview, apply and removal."},
    {"name": "admin-payment-requests", "description": "Payment request oversight and manual verification."},
    {"name": "admin-bank-transfers", "description": "Inbound bank transfer log and matching."},
    {"name": "admin-rate-limits", "description": "Persisted rate limit windows."},
]


@asynccontextmanager
async def lifespan(_: FastAPI):
    configure_logging()
    logger.info("app_startup", app_name=settings.app_name, version=settings.app_version)
    yield
    logger.info("app_shutdown", app_name=settings.app_name)


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description=OPENAPI_DESCRIPTION,
    openapi_tags=OPENAPI_TAGS,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url, "http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def reset_log_context(request: Request, call_next):
    clear_log_context()
    return await call_next(request)


@app.get("/")
def root():
    return {"message": f"{settings.app_name} is running"}


@app.exception_handler(NotFoundError)
async def handle_not_found(_: Request, exc: NotFoundError):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(ConflictError)
async def handle_conflict(_: Request, exc: ConflictError):
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


@app.exception_handler(ForbiddenError)
async def handle_forbidden(_: Request, exc: ForbiddenError):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
async def handle_validation(_: Request, exc: ValidationError):
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


@app.exception_handler(CapacityError)
async def handle_capacity(_: Request, exc: CapacityError):
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})


@app.exception_handler(RateLimitError)
async def handle_rate_limit(_: Request, exc: RateLimitError):
    result = exc.result
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": str(exc)},
        headers={
            "Retry-After": str(result.retry_after_seconds(utcnow())),
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": str(result.remaining),
            "X-RateLimit-Reset": str(int(result.reset.timestamp())),
        },
    )


@app.exception_handler(Exception)
async def handle_unexpected(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path, method=request.method)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"detail": "Internal server error"})


app.include_router(api_router)
