from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy.orm import sessionmaker

from app.application.services.maintenance_service import (
    purge_inactive_records,
    run_deactivate_idempotency_records,
    run_deactivate_rate_limits,
    run_expire_payment_requests,
)
from app.domain.payment_request_status import PaymentRequestStatus
from app.domain.record_status import RecordStatus
from app.infrastructure.db.models import PaymentRequest
from app.infrastructure.tasks import maintenance_tasks
from tests.helpers.factories import (
    create_idempotency_record,
    create_payment_request_row,
    create_rate_limit_record,
    get_entity_by_id,
    list_idempotency_records,
    list_rate_limit_records,
)

NOW = datetime(2025, 7, 15, 9, 0, tzinfo=timezone.utc)


def test_run_expire_payment_requests_reports_count(db_session, school_data):
    """
    Validate the expiry job wrapper.

    1. Stage one overdue pending request.
    2. Run the expiry job at NOW.
    3. Read the job summary and the request.
    4. Validate one request was expired.
    """
    request = create_payment_request_row(
        db_session,
        student_id=school_data["student"].id,
        total_amount=Decimal("500010.00"),
        expires_at=NOW - timedelta(seconds=30),
    )
    assert run_expire_payment_requests(db_session, now=NOW) == {"expired_payment_requests": 1}
    assert get_entity_by_id(db_session, PaymentRequest, request.id).status == PaymentRequestStatus.expired


def test_run_deactivation_jobs_report_counts(db_session):
    """
    Validate the rate limit and idempotency deactivation job wrappers.

    1. Store one elapsed rate limit window and one expired idempotency record.
    2. Run both deactivation jobs at NOW.
    3. Read the job summaries.
    4. Validate each job deactivated one record.
    """
    create_rate_limit_record(db_session, action="login", identifier="S-1", window_start=NOW - timedelta(minutes=3))
    create_idempotency_record(db_session, key="k-1", response="{}", expires_at=NOW - timedelta(hours=1))
    assert run_deactivate_rate_limits(db_session, now=NOW) == {"deactivated_rate_limits": 1}
    assert run_deactivate_idempotency_records(db_session, now=NOW) == {"deactivated_idempotency_records": 1}


def test_purge_inactive_records_respects_retention(db_session):
    """
    Validate the weekly purge of inactive records.

    1. Store inactive records older and newer than thirty days plus one old active record.
    2. Purge with a thirty day retention at NOW.
    3. Read the remaining records.
    4. Validate only old inactive records were deleted.
    """
    old = NOW - timedelta(days=45)
    recent = NOW - timedelta(days=3)
    create_rate_limit_record(db_session, action="login", identifier="old", window_start=old, status=RecordStatus.inactive)
    create_rate_limit_record(db_session, action="login", identifier="recent", window_start=recent, status=RecordStatus.inactive)
    create_rate_limit_record(db_session, action="login", identifier="active", window_start=old)
    create_idempotency_record(db_session, key="old", response="{}", expires_at=old, status=RecordStatus.inactive)
    create_idempotency_record(db_session, key="recent", response="{}", expires_at=recent, status=RecordStatus.inactive)

    result = purge_inactive_records(db_session, now=NOW, retention_days=30)
    assert result.rate_limit_records == 1
    assert result.idempotency_records == 1
    assert sorted(record.identifier for record in list_rate_limit_records(db_session)) == ["active", "recent"]
    assert [record.key for record in list_idempotency_records(db_session)] == ["recent"]


def test_purge_task_uses_its_own_session(monkeypatch, engine):
    """
    Validate the scheduled purge task wiring.

    1. Point the task session factory at the test engine.
    2. Run the purge task body synchronously.
    3. Read the returned summary.
    4. Validate both counters are reported.
    """
    monkeypatch.setattr(maintenance_tasks, "SessionLocal", sessionmaker(bind=engine, autoflush=False))
    summary = maintenance_tasks.purge_inactive_records_task.run()
    assert summary == {"rate_limit_records": 0, "idempotency_records": 0}
