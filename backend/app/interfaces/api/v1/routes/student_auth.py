from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.application.services.rate_limit_service import enforce_rate_limit
from app.application.services.security_service import (
    TOKEN_KIND_STUDENT,
    TokenClaims,
    authenticate_student,
    change_student_password,
    create_access_token,
    revoke_token,
)
from app.domain.rate_limits import RateLimitAction
from app.infrastructure.db.models import Student
from app.infrastructure.db.session import get_db
from app.infrastructure.logging import get_logger
from app.interfaces.api.v1.dependencies.auth import get_current_student, get_token_claims
from app.interfaces.api.v1.schemas.auth import (
    ChangePasswordRequest,
    MessageResponse,
    StudentLoginRequest,
    TokenResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/student-auth", tags=["student-auth"])


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Student portal login",
    description="Authenticate a student with NIS and password. Attempts are rate limited per NIS.",
    responses={401: {"description": "Invalid credentials"}, 429: {"description": "Too many login attempts"}},
)
def student_login(payload: StudentLoginRequest, db: Session = Depends(get_db)):
    enforce_rate_limit(db, action=RateLimitAction.login, identifier=payload.nis)
    student = authenticate_student(db=db, nis=payload.nis, password=payload.password)
    if student is None:
        logger.warning("student_login_failed", nis=payload.nis)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    logger.info("student_logged_in", student_id=student.id)
    return TokenResponse(access_token=create_access_token(student.id, TOKEN_KIND_STUDENT))


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Student portal logout",
    responses={401: {"description": "Unauthorized"}},
)
def student_logout(claims: TokenClaims = Depends(get_token_claims), _: Student = Depends(get_current_student)):
    revoke_token(claims)
    return MessageResponse(message="Logged out")


@router.post(
    "/change-password",
    response_model=MessageResponse,
    summary="Change student password",
    description="Change the portal password after confirming the current one. Rate limited per student.",
    responses={
        400: {"description": "Password validation error"},
        401: {"description": "Unauthorized"},
        429: {"description": "Too many attempts"},
    },
)
def student_change_password(
    payload: ChangePasswordRequest,
    current_student: Student = Depends(get_current_student),
    db: Session = Depends(get_db),
):
    enforce_rate_limit(db, action=RateLimitAction.change_password, identifier=current_student.nis)
    change_student_password(
        db,
        student=current_student,
        current_password=payload.current_password,
        new_password=payload.new_password,
    )
    return MessageResponse(message="Password changed")
