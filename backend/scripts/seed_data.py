from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.application.services.payment_service import process_payment
from app.application.services.scholarship_service import create_scholarship
from app.application.services.security_service import hash_password
from app.domain.money import ZERO
from app.domain.periods import Month
from app.domain.roles import EmployeeRole
from app.domain.tuition_status import TuitionStatus
from app.infrastructure.db.models import AcademicYear, BankAccount, ClassAcademic, Employee, Student, Tuition
from app.infrastructure.db.session import SessionLocal
from app.interfaces.api.v1.schemas.scholarship import ScholarshipCreate

ACADEMIC_YEAR = "2025/2026"
ACADEMIC_YEAR_START = date(2025, 7, 1)
DUE_DAY = 10


def create_employee_if_missing(db: Session, email: str, password: str, name: str, role: EmployeeRole) -> Employee:
    existing = db.execute(select(Employee).where(Employee.email == email)).scalar_one_or_none()
    if existing is not None:
        return existing

    employee = Employee(email=email, name=name, hashed_password=hash_password(password), role=role, is_active=True)
    db.add(employee)
    db.flush()
    return employee


def create_academic_year_if_missing(db: Session, year: str, start_date: date) -> AcademicYear:
    academic_year = db.execute(select(AcademicYear).where(AcademicYear.year == year)).scalar_one_or_none()
    if academic_year is not None:
        return academic_year

    academic_year = AcademicYear(
        year=year,
        start_date=start_date,
        end_date=date(start_date.year + 1, 6, 30),
        is_active=True,
    )
    db.add(academic_year)
    db.flush()
    return academic_year


def create_class_if_missing(
    db: Session,
    academic_year_id: int,
    class_name: str,
    grade: int,
    monthly_fee: Decimal,
) -> ClassAcademic:
    class_academic = db.execute(
        select(ClassAcademic).where(
            ClassAcademic.academic_year_id == academic_year_id,
            ClassAcademic.class_name == class_name,
        )
    ).scalar_one_or_none()
    if class_academic is not None:
        return class_academic

    class_academic = ClassAcademic(
        academic_year_id=academic_year_id,
        class_name=class_name,
        grade=grade,
        monthly_fee=monthly_fee,
    )
    db.add(class_academic)
    db.flush()
    return class_academic


def create_student_if_missing(db: Session, nis: str, name: str, password: str) -> Student:
    student = db.execute(select(Student).where(Student.nis == nis)).scalar_one_or_none()
    if student is not None:
        return student
    student = Student(
        nis=nis,
        name=name,
        parent_name=f"Parent of {name}",
        parent_phone="081200000000",
        hashed_password=hash_password(password),
        is_active=True,
    )
    db.add(student)
    db.flush()
    return student


def create_bank_account_if_missing(db: Session, bank_code: str, account_number: str, bank_name: str) -> BankAccount:
    bank_account = db.execute(
        select(BankAccount).where(BankAccount.bank_code == bank_code, BankAccount.account_number == account_number)
    ).scalar_one_or_none()
    if bank_account is not None:
        return bank_account
    bank_account = BankAccount(
        bank_name=bank_name,
        bank_code=bank_code,
        account_number=account_number,
        account_name="School Foundation",
        is_active=True,
    )
    db.add(bank_account)
    db.flush()
    return bank_account


def month_due_date(start_date: date, month_index: int) -> date:
    month = start_date.month - 1 + month_index
    return date(start_date.year + month // 12, month % 12 + 1, DUE_DAY)


def seed_tuitions_for_student(db: Session, student: Student, class_academic: ClassAcademic, start_date: date) -> list[Tuition]:
    tuitions: list[Tuition] = []
    for index, month in enumerate(Month):
        due_date = month_due_date(start_date, index)
        tuition = db.execute(
            select(Tuition).where(
                Tuition.student_id == student.id,
                Tuition.class_academic_id == class_academic.id,
                Tuition.period == month.value,
                Tuition.year == due_date.year,
            )
        ).scalar_one_or_none()
        if tuition is None:
            tuition = Tuition(
                student_id=student.id,
                class_academic_id=class_academic.id,
                period=month.value,
                year=due_date.year,
                fee_amount=class_academic.monthly_fee,
                scholarship_amount=ZERO,
                discount_amount=ZERO,
                paid_amount=ZERO,
                status=TuitionStatus.unpaid,
                due_date=due_date,
            )
            db.add(tuition)
        tuitions.append(tuition)
    db.flush()
    return tuitions


def main() -> None:
    db = SessionLocal()
    try:
        admin = create_employee_if_missing(
            db=db,
            email="admin@example.com",
            password="admin123",
            name="Admin User",
            role=EmployeeRole.admin,
        )
        cashier = create_employee_if_missing(
            db=db,
            email="cashier@example.com",
            password="cashier123",
            name="Cashier User",
            role=EmployeeRole.cashier,
        )
        academic_year = create_academic_year_if_missing(db=db, year=ACADEMIC_YEAR, start_date=ACADEMIC_YEAR_START)
        class_7a = create_class_if_missing(
            db=db,
            academic_year_id=academic_year.id,
            class_name="7A",
            grade=7,
            monthly_fee=Decimal("500000.00"),
        )
        class_8a = create_class_if_missing(
            db=db,
            academic_year_id=academic_year.id,
            class_name="8A",
            grade=8,
            monthly_fee=Decimal("550000.00"),
        )
        create_bank_account_if_missing(db=db, bank_code="BCA", account_number="1234567890", bank_name="Bank Central Asia")
        create_bank_account_if_missing(db=db, bank_code="BNI", account_number="0987654321", bank_name="Bank Negara Indonesia")

        ana = create_student_if_missing(db=db, nis="2025001", name="Ana Putri", password="student123")
        budi = create_student_if_missing(db=db, nis="2025002", name="Budi Santoso", password="student123")
        citra = create_student_if_missing(db=db, nis="2025003", name="Citra Lestari", password="student123")

        ana_tuitions = seed_tuitions_for_student(db=db, student=ana, class_academic=class_7a, start_date=ACADEMIC_YEAR_START)
        seed_tuitions_for_student(db=db, student=budi, class_academic=class_7a, start_date=ACADEMIC_YEAR_START)
        seed_tuitions_for_student(db=db, student=citra, class_academic=class_8a, start_date=ACADEMIC_YEAR_START)
        db.commit()

        # One settled month and one partial month so the portal shows every tuition state.
        if ana_tuitions[0].status == TuitionStatus.unpaid:
            process_payment(
                db,
                tuition_id=ana_tuitions[0].id,
                amount=ana_tuitions[0].fee_amount,
                employee_id=cashier.id,
                notes="Seeded counter payment",
            )
        if ana_tuitions[1].status == TuitionStatus.unpaid:
            process_payment(
                db,
                tuition_id=ana_tuitions[1].id,
                amount=ana_tuitions[1].fee_amount - Decimal("200000.00"),
                employee_id=cashier.id,
                notes="Seeded partial payment",
            )
        if not citra.scholarships:
            create_scholarship(
                db,
                payload=ScholarshipCreate(
                    student_id=citra.id,
                    class_academic_id=class_8a.id,
                    nominal=Decimal("150000.00"),
                ),
                employee_id=admin.id,
            )
        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    main()
