from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.domain.money import ZERO
from app.domain.payment_method import PaymentMethod
from app.domain.payment_request_status import PaymentRequestStatus
from app.domain.record_status import RecordStatus
from app.domain.roles import EmployeeRole
from app.domain.tuition_status import TuitionStatus
from app.infrastructure.db.session import Base

MONEY = Numeric(14, 2)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class SoftDeleteMixin:
    deleted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, default=None, index=True
    )


class Employee(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    hashed_password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[EmployeeRole] = mapped_column(Enum(EmployeeRole, name="employee_role"), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    payments: Mapped[list["Payment"]] = relationship("Payment", back_populates="employee")


class Student(SoftDeleteMixin, TimestampMixin, Base):
    __tablename__ = "students"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    nis: Mapped[str] = mapped_column(String(50), unique=True, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    parent_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    parent_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    hashed_password: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_payment_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    tuitions: Mapped[list["Tuition"]] = relationship("Tuition", back_populates="student")
    scholarships: Mapped[list["Scholarship"]] = relationship(
        "Scholarship",
        back_populates="student",
        cascade="all, delete-orphan",
    )
    payment_requests: Mapped[list["PaymentRequest"]] = relationship("PaymentRequest", back_populates="student")


class AcademicYear(TimestampMixin, Base):
    __tablename__ = "academic_years"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    year: Mapped[str] = mapped_column(String(20), unique=True, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    classes: Mapped[list["ClassAcademic"]] = relationship("ClassAcademic", back_populates="academic_year")


class ClassAcademic(TimestampMixin, Base):
    __tablename__ = "class_academics"
    __table_args__ = (UniqueConstraint("academic_year_id", "class_name", name="uq_class_academic_year_name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    academic_year_id: Mapped[int] = mapped_column(
        ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False, index=True
    )
    class_name: Mapped[str] = mapped_column(String(100), nullable=False)
    grade: Mapped[int] = mapped_column(Integer, nullable=False)
    monthly_fee: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    academic_year: Mapped[AcademicYear] = relationship("AcademicYear", back_populates="classes")
    tuitions: Mapped[list["Tuition"]] = relationship("Tuition", back_populates="class_academic")


class Discount(TimestampMixin, Base):
    __tablename__ = "discounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(String(500), nullable=True)
    academic_year_id: Mapped[int] = mapped_column(
        ForeignKey("academic_years.id", ondelete="CASCADE"), nullable=False, index=True
    )
    class_academic_id: Mapped[int | None] = mapped_column(
        ForeignKey("class_academics.id", ondelete="CASCADE"), nullable=True, index=True
    )
    discount_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    target_periods: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    academic_year: Mapped[AcademicYear] = relationship("AcademicYear")
    class_academic: Mapped[ClassAcademic | None] = relationship("ClassAcademic")


class Tuition(TimestampMixin, Base):
    __tablename__ = "tuitions"
    __table_args__ = (
        UniqueConstraint("class_academic_id", "student_id", "period", "year", name="uq_tuition_student_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    class_academic_id: Mapped[int] = mapped_column(
        ForeignKey("class_academics.id", ondelete="RESTRICT"), nullable=False, index=True
    )
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="RESTRICT"), nullable=False, index=True)
    period: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    fee_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    scholarship_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    discount_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    discount_id: Mapped[int | None] = mapped_column(
        ForeignKey("discounts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    paid_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=ZERO)
    status: Mapped[TuitionStatus] = mapped_column(
        Enum(TuitionStatus, name="tuition_status"),
        nullable=False,
        default=TuitionStatus.unpaid,
        index=True,
    )
    due_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    class_academic: Mapped[ClassAcademic] = relationship("ClassAcademic", back_populates="tuitions")
    student: Mapped[Student] = relationship("Student", back_populates="tuitions")
    discount: Mapped[Discount | None] = relationship("Discount")
    payments: Mapped[list["Payment"]] = relationship("Payment", back_populates="tuition")


class BankAccount(TimestampMixin, Base):
    __tablename__ = "bank_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    bank_name: Mapped[str] = mapped_column(String(100), nullable=False)
    bank_code: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    account_number: Mapped[str] = mapped_column(String(50), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class PaymentRequest(TimestampMixin, Base):
    __tablename__ = "payment_requests"
    __table_args__ = (
        Index(
            "uq_payment_requests_pending_total_amount",
            "total_amount",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    idempotency_key: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    base_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    unique_code: Mapped[int] = mapped_column(Integer, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, index=True)
    status: Mapped[PaymentRequestStatus] = mapped_column(
        Enum(PaymentRequestStatus, name="payment_request_status"),
        nullable=False,
        default=PaymentRequestStatus.pending,
        index=True,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    bank_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("bank_accounts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    verified_by_employee_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )

    student: Mapped[Student] = relationship("Student", back_populates="payment_requests")
    bank_account: Mapped[BankAccount | None] = relationship("BankAccount")
    items: Mapped[list["PaymentRequestTuition"]] = relationship(
        "PaymentRequestTuition",
        back_populates="payment_request",
        cascade="all, delete-orphan",
        order_by="PaymentRequestTuition.id",
    )


class PaymentRequestTuition(TimestampMixin, Base):
    __tablename__ = "payment_request_tuitions"
    __table_args__ = (UniqueConstraint("payment_request_id", "tuition_id", name="uq_payment_request_tuition"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    payment_request_id: Mapped[int] = mapped_column(
        ForeignKey("payment_requests.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tuition_id: Mapped[int] = mapped_column(ForeignKey("tuitions.id", ondelete="RESTRICT"), nullable=False, index=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)

    payment_request: Mapped[PaymentRequest] = relationship("PaymentRequest", back_populates="items")
    tuition: Mapped[Tuition] = relationship("Tuition")


class Payment(TimestampMixin, Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    tuition_id: Mapped[int] = mapped_column(ForeignKey("tuitions.id", ondelete="RESTRICT"), nullable=False, index=True)
    employee_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"), nullable=True, index=True
    )
    payment_request_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_requests.id", ondelete="SET NULL"), nullable=True, index=True
    )
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    method: Mapped[PaymentMethod] = mapped_column(
        Enum(PaymentMethod, name="payment_method"), nullable=False, index=True
    )
    paid_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    notes: Mapped[str | None] = mapped_column(String(500), nullable=True)

    tuition: Mapped[Tuition] = relationship("Tuition", back_populates="payments")
    employee: Mapped[Employee | None] = relationship("Employee", back_populates="payments")


class Scholarship(TimestampMixin, Base):
    __tablename__ = "scholarships"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    student_id: Mapped[int] = mapped_column(ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True)
    class_academic_id: Mapped[int] = mapped_column(
        ForeignKey("class_academics.id", ondelete="CASCADE"), nullable=False, index=True
    )
    nominal: Mapped[Decimal] = mapped_column(MONEY, nullable=False)
    is_full_scholarship: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_by_employee_id: Mapped[int | None] = mapped_column(
        ForeignKey("employees.id", ondelete="SET NULL"), nullable=True
    )

    student: Mapped[Student] = relationship("Student", back_populates="scholarships")
    class_academic: Mapped[ClassAcademic] = relationship("ClassAcademic")


class BankTransfer(TimestampMixin, Base):
    __tablename__ = "bank_transfers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    reference: Mapped[str | None] = mapped_column(String(255), unique=True, nullable=True)
    amount: Mapped[Decimal] = mapped_column(MONEY, nullable=False, index=True)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    sender_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    sender_account: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_account_id: Mapped[int | None] = mapped_column(
        ForeignKey("bank_accounts.id", ondelete="SET NULL"), nullable=True, index=True
    )
    matched_payment_request_id: Mapped[int | None] = mapped_column(
        ForeignKey("payment_requests.id", ondelete="SET NULL"), nullable=True, index=True
    )
    is_matched: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)


class RateLimitRecord(TimestampMixin, Base):
    __tablename__ = "rate_limit_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    identifier: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    window_start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[RecordStatus] = mapped_column(
        Enum(RecordStatus, name="rate_limit_record_status"), nullable=False, default=RecordStatus.active, index=True
    )


class IdempotencyRecord(TimestampMixin, Base):
    __tablename__ = "idempotency_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, index=True)
    key: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    response: Mapped[str] = mapped_column(Text, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    status: Mapped[RecordStatus] = mapped_column(
        Enum(RecordStatus, name="idempotency_record_status"), nullable=False, default=RecordStatus.active, index=True
    )
