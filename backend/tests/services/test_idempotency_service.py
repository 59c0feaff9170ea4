from datetime import datetime, timedelta, timezone

from app.application.services.idempotency_service import (
    deactivate_expired_idempotency_records,
    generate_idempotency_key,
    get_active_idempotency_record,
    with_idempotency,
)
from app.domain.record_status import RecordStatus
from tests.helpers.factories import create_idempotency_record, list_idempotency_records

NOW = datetime(2025, 7, 15, 9, 0, tzinfo=timezone.utc)


def test_generate_idempotency_key_is_stable_within_a_minute():
    """
    Validate deterministic key generation.

    1. Generate keys for the same actor, action and payload within one minute.
    2. Generate a key for the next minute bucket.
    3. Generate a key for a different payload.
    4. Validate only identical inputs in the same bucket share a key.
    """
    payload = {"tuition_ids": [1, 2]}
    first = generate_idempotency_key("S-0001", "CREATE_PAYMENT_REQUEST", payload, now=NOW)
    same_minute = generate_idempotency_key("S-0001", "CREATE_PAYMENT_REQUEST", payload, now=NOW + timedelta(seconds=59))
    next_minute = generate_idempotency_key("S-0001", "CREATE_PAYMENT_REQUEST", payload, now=NOW + timedelta(seconds=60))
    other_payload = generate_idempotency_key("S-0001", "CREATE_PAYMENT_REQUEST", {"tuition_ids": [1]}, now=NOW)
    assert first == same_minute
    assert first != next_minute
    assert first != other_payload
    assert len(first) == 64


def test_with_idempotency_runs_action_once(db_session):
    """
    Validate at-most-once execution per active key.

    1. Call with_idempotency twice with the same key and a counting action.
    2. Read both results and the duplicate flags.
    3. Count action invocations.
    4. Validate the stored payload is returned both times.
    """
    calls = []

    def action():
        calls.append(1)
        return {"id": len(calls), "amount": "1500123.00"}

    first = with_idempotency(db_session, key="op-1", action=action, now=NOW)
    second = with_idempotency(db_session, key="op-1", action=action, now=NOW + timedelta(minutes=1))
    assert len(calls) == 1
    assert first.is_duplicate is False
    assert second.is_duplicate is True
    assert first.result == second.result == {"id": 1, "amount": "1500123.00"}


def test_with_idempotency_reruns_after_record_expired(db_session):
    """
    Validate an expired record no longer short-circuits.

    1. Store a record for key "op-2" that expired an hour ago.
    2. Call with_idempotency for the same key.
    3. Read the result and stored record.
    4. Validate the action ran and the record was refreshed in place.
    """
    create_idempotency_record(db_session, key="op-2", response='{"old":true}', expires_at=NOW - timedelta(hours=1))
    result = with_idempotency(db_session, key="op-2", action=lambda: {"new": True}, now=NOW, ttl_hours=2)
    assert result.is_duplicate is False
    assert result.result == {"new": True}
    records = list_idempotency_records(db_session)
    assert len(records) == 1
    assert records[0].response == '{"new":true}'
    assert get_active_idempotency_record(db_session, key="op-2", now=NOW + timedelta(hours=1)) is not None


def test_deactivate_expired_idempotency_records(db_session):
    """
    Validate the idempotency cleanup sweep.

    1. Store one expired and one live record.
    2. Run the deactivation sweep at NOW.
    3. Read both records.
    4. Validate only the expired record became inactive.
    """
    create_idempotency_record(db_session, key="old", response="{}", expires_at=NOW - timedelta(minutes=1))
    create_idempotency_record(db_session, key="live", response="{}", expires_at=NOW + timedelta(hours=1))
    assert deactivate_expired_idempotency_records(db_session, now=NOW) == 1
    statuses = {record.key: record.status for record in list_idempotency_records(db_session)}
    assert statuses == {"old": RecordStatus.inactive, "live": RecordStatus.active}
