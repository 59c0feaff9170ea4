from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from app.application.services.rate_limit_service import enforce_rate_limit
from app.application.services.security_service import (
    TOKEN_KIND_EMPLOYEE,
    TokenClaims,
    authenticate_employee,
    create_access_token,
    revoke_token,
)
from app.domain.rate_limits import RateLimitAction
from app.infrastructure.db.session import get_db
from app.infrastructure.logging import get_logger
from app.interfaces.api.v1.dependencies.auth import get_token_claims
from app.interfaces.api.v1.schemas.auth import MessageResponse, TokenResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/token",
    response_model=TokenResponse,
    summary="Issue employee access token",
    description=(
        "Authenticate an employee with email/password form data and return a bearer token. "
        "Attempts are rate limited per email."
    ),
    responses={401: {"description": "Invalid credentials"}, 429: {"description": "Too many login attempts"}},
)
def issue_token(form_data: OAuth2PasswordRequestForm = Depends(), db: Session = Depends(get_db)):
    enforce_rate_limit(db, action=RateLimitAction.login, identifier=form_data.username.lower())
    employee = authenticate_employee(db=db, email=form_data.username, password=form_data.password)
    if employee is None:
        logger.warning("employee_login_failed", email=form_data.username)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")
    logger.info("employee_logged_in", employee_id=employee.id)
    return TokenResponse(access_token=create_access_token(employee.id, TOKEN_KIND_EMPLOYEE))


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Revoke current token",
    description="Revoke the bearer token used for this call until it would have expired.",
    responses={401: {"description": "Unauthorized"}},
)
def logout(claims: TokenClaims = Depends(get_token_claims)):
    revoke_token(claims)
    return MessageResponse(message="Logged out")
