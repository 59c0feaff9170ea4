import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, cast

from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.application.errors import ValidationError
from app.config import settings
from app.infrastructure.cache.cache_service import has_flag, set_flag
from app.infrastructure.db.models import Employee, Student
from app.infrastructure.logging import get_logger

logger = get_logger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

TOKEN_KIND_EMPLOYEE = "employee"
TOKEN_KIND_STUDENT = "student"


@dataclass(frozen=True)
class TokenClaims:
    subject_id: int
    kind: str
    jti: str
    expires_at: datetime


def hash_password(password: str) -> str:
    return cast(str, pwd_context.hash(password))


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return cast(bool, pwd_context.verify(plain_password, hashed_password))


def create_access_token(subject_id: int, kind: str, expires_minutes: int | None = None) -> str:
    lifetime = expires_minutes if expires_minutes is not None else settings.jwt_access_token_expire_minutes
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=lifetime)
    payload = {"sub": str(subject_id), "kind": kind, "jti": uuid.uuid4().hex, "exp": expires_at}
    return cast(str, jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm))


def decode_access_token(token: str) -> TokenClaims | None:
    try:
        payload = cast(dict[str, Any], jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]))
        subject = payload.get("sub")
        kind = payload.get("kind")
        jti = payload.get("jti")
        if not subject or kind not in (TOKEN_KIND_EMPLOYEE, TOKEN_KIND_STUDENT) or not jti:
            return None
        return TokenClaims(
            subject_id=int(subject),
            kind=str(kind),
            jti=str(jti),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        )
    except (JWTError, KeyError, ValueError):
        return None


def revoked_token_key(jti: str) -> str:
    return f"revoked_token:{jti}"


def revoke_token(claims: TokenClaims) -> None:
    remaining = int((claims.expires_at - datetime.now(timezone.utc)).total_seconds())
    set_flag(revoked_token_key(claims.jti), remaining)
    logger.info("access_token_revoked", subject_id=claims.subject_id, kind=claims.kind)


def is_token_revoked(jti: str) -> bool:
    # Unknown revocation state is treated as revoked.
    return has_flag(revoked_token_key(jti), default=True)


def authenticate_employee(db: Session, email: str, password: str) -> Employee | None:
    employee = db.execute(
        select(Employee).where(Employee.email == email, Employee.deleted_at.is_(None))
    ).scalar_one_or_none()
    if employee is None:
        return None
    if not employee.is_active:
        return None
    if not verify_password(password, employee.hashed_password):
        return None
    return employee


def authenticate_student(db: Session, nis: str, password: str) -> Student | None:
    student = db.execute(
        select(Student).where(Student.nis == nis, Student.deleted_at.is_(None))
    ).scalar_one_or_none()
    if student is None or not student.is_active or student.hashed_password is None:
        return None
    if not verify_password(password, student.hashed_password):
        return None
    return student


def change_student_password(db: Session, *, student: Student, current_password: str, new_password: str) -> None:
    if student.hashed_password is None or not verify_password(current_password, student.hashed_password):
        raise ValidationError("Current password is incorrect")
    if len(new_password) < 8:
        raise ValidationError("New password must be at least 8 characters")
    if current_password == new_password:
        raise ValidationError("New password must differ from the current password")
    student.hashed_password = hash_password(new_password)
    db.commit()
    logger.info("student_password_changed", student_id=student.id)
