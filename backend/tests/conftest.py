import os
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest
from alembic import command
from alembic.config import Config
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, text
from sqlalchemy.orm import sessionmaker

from app.config import settings
from app.domain.roles import EmployeeRole
from app.infrastructure.db.session import Base, get_db
from app.main import app
from tests.helpers.factories import (
    create_academic_year,
    create_bank_account,
    create_class_academic,
    create_employee,
    create_student,
    create_tuition,
)

BACKEND_DIR = Path(__file__).resolve().parents[1]


class FakeRedisClient:
    """In-memory stand-in for the few Redis commands used by locks and token revocation."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}

    def ping(self) -> bool:
        return True

    def get(self, key: str) -> str | None:
        return self.store.get(key)

    def set(self, key: str, value: str, nx: bool = False, ex: int | None = None) -> bool | None:
        if nx and key in self.store:
            return None
        self.store[key] = value
        return True

    def setex(self, key: str, ttl_seconds: int, value: str) -> bool:
        self.store[key] = value
        return True

    def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if key in self.store)

    def delete(self, *keys: str) -> int:
        return sum(1 for key in keys if self.store.pop(key, None) is not None)

    def eval(self, _script: str, _numkeys: int, key: str, token: str) -> int:
        # Only the compare-and-delete lock release script is ever evaluated.
        if self.store.get(key) == token:
            del self.store[key]
            return 1
        return 0


def run_migrations(database_url: str) -> None:
    os.environ["DATABASE_URL"] = database_url
    settings.database_url = database_url
    alembic_config = Config(str(BACKEND_DIR / "alembic.ini"))
    alembic_config.set_main_option("script_location", str(BACKEND_DIR / "alembic"))
    alembic_config.set_main_option("sqlalchemy.url", database_url)
    alembic_config.attributes["configure_logger"] = False
    command.upgrade(alembic_config, "head")


@pytest.fixture(scope="session")
def database_url(tmp_path_factory):
    if os.environ.get("TEST_USE_POSTGRES") == "1":
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer("postgres:16-alpine") as postgres:
            yield postgres.get_connection_url().replace("postgresql://", "postgresql+psycopg2://", 1)
        return
    yield f"sqlite:///{tmp_path_factory.mktemp('db') / 'tuition_portal_test.db'}"


@pytest.fixture(scope="session")
def engine(database_url):
    if database_url.startswith("sqlite"):
        engine = create_engine(database_url, future=True, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(database_url, future=True)
        with engine.begin() as connection:
            connection.execute(text("DROP SCHEMA public CASCADE"))
            connection.execute(text("CREATE SCHEMA public"))
    run_migrations(database_url=database_url)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture(autouse=True)
def clean_database(engine):
    with engine.begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedisClient()
    monkeypatch.setattr("app.infrastructure.cache.redis_client._client_for", lambda _url: fake)
    return fake


@pytest.fixture
def db_session(engine):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = testing_session_local()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(db_session):
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def school_data(db_session):
    """
    One academic year with one class, two staff members and one student owing three months.

    Tuitions: JULY (due 2025-07-10), AUGUST (due 2025-08-10), SEPTEMBER (due 2025-09-10),
    each with a 500000.00 fee.
    """
    admin = create_employee(db_session, email="admin@school.test", password="admin123", role=EmployeeRole.admin)
    cashier = create_employee(db_session, email="cashier@school.test", password="cashier123", role=EmployeeRole.cashier)
    academic_year = create_academic_year(db_session, year="2025/2026")
    class_academic = create_class_academic(db_session, academic_year_id=academic_year.id, class_name="7A")
    student = create_student(db_session, nis="S-0001", name="Ana Putri", password="student123")
    bank_account = create_bank_account(db_session)
    tuitions = [
        create_tuition(
            db_session,
            student_id=student.id,
            class_academic_id=class_academic.id,
            period=period,
            year=2025,
            fee_amount=Decimal("500000.00"),
            due_date=due_date,
        )
        for period, due_date in (
            ("JULY", date(2025, 7, 10)),
            ("AUGUST", date(2025, 8, 10)),
            ("SEPTEMBER", date(2025, 9, 10)),
        )
    ]
    return {
        "admin": admin,
        "cashier": cashier,
        "academic_year": academic_year,
        "class_academic": class_academic,
        "student": student,
        "bank_account": bank_account,
        "tuitions": tuitions,
    }
