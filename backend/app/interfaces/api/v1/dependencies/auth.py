from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from app.application.services.security_service import (
    TOKEN_KIND_EMPLOYEE,
    TOKEN_KIND_STUDENT,
    TokenClaims,
    decode_access_token,
    is_token_revoked,
)
from app.domain.roles import EmployeeRole
from app.infrastructure.db.models import Employee, Student
from app.infrastructure.db.session import get_db
from app.infrastructure.logging import bind_log_context

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


def get_token_claims(token: str = Depends(oauth2_scheme)) -> TokenClaims:
    claims = decode_access_token(token)
    if claims is None or is_token_revoked(claims.jti):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication token")
    return claims


def get_current_employee(claims: TokenClaims = Depends(get_token_claims), db: Session = Depends(get_db)) -> Employee:
    if claims.kind != TOKEN_KIND_EMPLOYEE:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication token")
    employee = db.get(Employee, claims.subject_id)
    if employee is None or not employee.is_active or employee.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Employee not found or inactive")
    bind_log_context(employee_id=employee.id)
    return employee


def require_admin(current_employee: Employee = Depends(get_current_employee)) -> Employee:
    if current_employee.role != EmployeeRole.admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin role required")
    return current_employee


def get_current_student(claims: TokenClaims = Depends(get_token_claims), db: Session = Depends(get_db)) -> Student:
    if claims.kind != TOKEN_KIND_STUDENT:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication token")
    student = db.get(Student, claims.subject_id)
    if student is None or not student.is_active or student.deleted_at is not None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Student not found or inactive")
    bind_log_context(student_id=student.id)
    return student
