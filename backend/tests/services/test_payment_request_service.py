from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from app.application.errors import ConflictError, NotFoundError, ValidationError
from app.application.services import unique_amount_service
from app.application.services.payment_request_service import (
    PENDING_TOTAL_INSERT_ATTEMPTS,
    cancel_payment_request,
    create_payment_request,
    expire_pending_payment_requests,
    get_active_payment_request,
    get_payment_request,
    get_payment_request_for_student,
    list_unpaid_tuitions,
    serialize_admin_payment_request,
    serialize_student_payment_request,
    submit_payment_request,
    verify_payment_request,
)
from app.application.services.payment_service import process_payment
from app.domain.clock import as_utc
from app.domain.payment_method import PaymentMethod
from app.domain.payment_request_status import PaymentRequestStatus
from app.domain.tuition_status import TuitionStatus
from app.infrastructure.db.models import PaymentRequest, Student, Tuition
from tests.helpers.factories import (
    create_payment_request_row,
    create_student,
    get_entity_by_id,
    list_idempotency_records,
    list_payment_requests_for_student,
    list_payments_for_request,
)

NOW = datetime(2025, 7, 15, 9, 0, tzinfo=timezone.utc)


def _create(db_session, school_data, *, tuition_ids=None, key="key-1", now=NOW, code=123):
    return create_payment_request(
        db_session,
        student_id=school_data["student"].id,
        tuition_ids=tuition_ids or [tuition.id for tuition in school_data["tuitions"]],
        idempotency_key=key,
        now=now,
        rng=lambda: code,
    )


def test_create_payment_request_bundles_outstanding_amounts(db_session, school_data):
    """
    Validate a new payment request for three unpaid tuitions.

    1. Create a request for all three 500000.00 tuitions with code 123.
    2. Read the stored request and its lines.
    3. Validate base, unique code, total and backend deadline.
    4. Validate lines follow due-date order with each outstanding amount.
    """
    request = _create(db_session, school_data)
    assert request.status == PaymentRequestStatus.pending
    assert request.base_amount == Decimal("1500000.00")
    assert request.unique_code == 123
    assert request.total_amount == Decimal("1500123.00")
    assert as_utc(request.expires_at) == NOW + timedelta(minutes=10)
    assert [item.tuition.period for item in request.items] == ["JULY", "AUGUST", "SEPTEMBER"]
    assert {item.amount for item in request.items} == {Decimal("500000.00")}


def test_create_payment_request_uses_remaining_amount_of_partial_tuition(db_session, school_data):
    """
    Validate partially paid tuitions contribute only what is still owed.

    1. Pay 200000.00 on the July tuition at the counter.
    2. Create a request for the July tuition only.
    3. Read the request line amount.
    4. Validate the base equals the 300000.00 outstanding.
    """
    july = school_data["tuitions"][0]
    process_payment(db_session, tuition_id=july.id, amount=Decimal("200000"), employee_id=None)
    request = _create(db_session, school_data, tuition_ids=[july.id])
    assert request.base_amount == Decimal("300000.00")
    assert request.items[0].amount == Decimal("300000.00")


def test_create_payment_request_reuses_request_for_same_key(db_session, school_data):
    """
    Validate the idempotency key column short-circuits a repeated create.

    1. Create a request with key "key-1".
    2. Create again with the same key and a different code.
    3. Compare both returned requests.
    4. Validate only one request exists for the student.
    """
    first = _create(db_session, school_data)
    second = _create(db_session, school_data, code=456)
    assert second.id == first.id
    assert second.unique_code == 123
    assert len(list_payment_requests_for_student(db_session, student_id=school_data["student"].id)) == 1


def test_create_payment_request_rejects_key_owned_by_another_student(db_session, school_data):
    """
    Validate an idempotency key cannot be replayed by a different student.

    1. Create a request for the seeded student with key "shared".
    2. Seed a second student.
    3. Create a request for the second student with the same key.
    4. Validate a ConflictError is raised.
    """
    _create(db_session, school_data, key="shared")
    other = create_student(db_session, nis="S-0002")
    with pytest.raises(ConflictError) as exc:
        create_payment_request(
            db_session,
            student_id=other.id,
            tuition_ids=[school_data["tuitions"][0].id],
            idempotency_key="shared",
            now=NOW,
            rng=lambda: 5,
        )
    assert str(exc.value) == "Idempotency key was already used"


def test_create_payment_request_rejects_when_active_request_exists(db_session, school_data):
    """
    Validate one active request per student.

    1. Create a request for the July tuition.
    2. Create another request for the August tuition with a new key.
    3. Capture the raised error.
    4. Validate the in-progress message.
    """
    july, august, _ = school_data["tuitions"]
    _create(db_session, school_data, tuition_ids=[july.id])
    with pytest.raises(ValidationError) as exc:
        _create(db_session, school_data, tuition_ids=[august.id], key="key-2", code=456)
    assert str(exc.value) == "You still have a payment in progress. Complete or cancel it first."


def test_create_payment_request_rejects_double_booked_tuition(db_session, school_data):
    """
    Validate a tuition cannot sit in two pending requests.

    1. Stage a pending request of another student that includes the July tuition.
    2. Create a request for the July tuition for the owning student.
    3. Capture the raised error.
    4. Validate the double booking message.
    """
    july = school_data["tuitions"][0]
    other = create_student(db_session, nis="S-0099")
    create_payment_request_row(
        db_session,
        student_id=other.id,
        total_amount=Decimal("500777.00"),
        expires_at=NOW + timedelta(minutes=10),
        tuition_lines=[(july.id, Decimal("500000.00"))],
    )
    with pytest.raises(ValidationError) as exc:
        _create(db_session, school_data, tuition_ids=[july.id])
    assert str(exc.value) == "Some tuitions are already part of another pending payment request"


def test_create_payment_request_rejects_paid_missing_or_empty_selection(db_session, school_data):
    """
    Validate tuition selection guards.

    1. Settle the July tuition at the counter.
    2. Create a request for July and for an unknown id.
    3. Create a request with an empty selection.
    4. Validate each selection is rejected with its message.
    """
    july = school_data["tuitions"][0]
    process_payment(db_session, tuition_id=july.id, amount=Decimal("500000"), employee_id=None)
    with pytest.raises(ValidationError) as paid_exc:
        _create(db_session, school_data, tuition_ids=[july.id])
    assert str(paid_exc.value) == "Some tuitions were not found or are already paid"
    with pytest.raises(ValidationError) as missing_exc:
        _create(db_session, school_data, tuition_ids=[987654], key="key-2")
    assert str(missing_exc.value) == "Some tuitions were not found or are already paid"
    with pytest.raises(ValidationError) as empty_exc:
        create_payment_request(
            db_session,
            student_id=school_data["student"].id,
            tuition_ids=[],
            idempotency_key="key-3",
            now=NOW,
        )
    assert str(empty_exc.value) == "Select at least one tuition"


def test_create_payment_request_sweeps_stale_pending_requests_first(db_session, school_data):
    """
    Validate an overdue pending request does not block a new one.

    1. Create a request at NOW.
    2. Create a second request eleven minutes later with a new key and the same code.
    3. Read both requests back.
    4. Validate the first is expired and the second is pending with the reused total.
    """
    first = _create(db_session, school_data)
    second = _create(db_session, school_data, key="key-2", now=NOW + timedelta(minutes=11))
    assert second.total_amount == first.total_amount
    assert get_entity_by_id(db_session, PaymentRequest, first.id).status == PaymentRequestStatus.expired
    assert get_entity_by_id(db_session, PaymentRequest, second.id).status == PaymentRequestStatus.pending


def _stale_pending_check(monkeypatch, *, stale_checks: int):
    """Let the allocator's pre-check miss a competing pending total a fixed number of times."""
    is_pending = unique_amount_service.is_total_amount_pending
    remaining = [stale_checks]

    def pre_check(db, *, total_amount, now):
        if remaining[0] > 0:
            remaining[0] -= 1
            return False
        return is_pending(db, total_amount=total_amount, now=now)

    monkeypatch.setattr(unique_amount_service, "is_total_amount_pending", pre_check)


def test_create_payment_request_redraws_when_pending_total_index_rejects_insert(monkeypatch, db_session, school_data):
    """
    Validate a total claimed between pre-check and insert triggers a new draw.

    1. Stage another student's pending request at 1500123.00.
    2. Make the first pre-check miss it and draw code 123 then 456.
    3. Create a request for all three tuitions.
    4. Validate the stored request carries 1500456.00 and the competing row is untouched.
    """
    other = create_student(db_session, nis="S-0410")
    competing = create_payment_request_row(
        db_session,
        student_id=other.id,
        total_amount=Decimal("1500123.00"),
        expires_at=NOW + timedelta(minutes=10),
    )
    _stale_pending_check(monkeypatch, stale_checks=1)
    codes = iter([123, 456])
    request = create_payment_request(
        db_session,
        student_id=school_data["student"].id,
        tuition_ids=[tuition.id for tuition in school_data["tuitions"]],
        idempotency_key="collision-key",
        now=NOW,
        rng=lambda: next(codes),
    )
    assert request.unique_code == 456
    assert request.total_amount == Decimal("1500456.00")
    assert len(request.items) == 3
    assert [row.id for row in list_payment_requests_for_student(db_session, student_id=school_data["student"].id)] == [
        request.id
    ]
    stored_competing = get_entity_by_id(db_session, PaymentRequest, competing.id)
    assert stored_competing.status == PaymentRequestStatus.pending
    assert stored_competing.student_id == other.id


def test_create_payment_request_gives_up_after_repeated_total_collisions(monkeypatch, db_session, school_data):
    """
    Validate the insert retries are bounded.

    1. Stage another student's pending request at 1500123.00.
    2. Make every pre-check miss it while code 123 is always drawn.
    3. Create a request for all three tuitions.
    4. Validate a ConflictError is raised and nothing is stored for the student.
    """
    other = create_student(db_session, nis="S-0411")
    create_payment_request_row(
        db_session,
        student_id=other.id,
        total_amount=Decimal("1500123.00"),
        expires_at=NOW + timedelta(minutes=10),
    )
    _stale_pending_check(monkeypatch, stale_checks=PENDING_TOTAL_INSERT_ATTEMPTS)
    with pytest.raises(ConflictError) as exc:
        _create(db_session, school_data, key="always-colliding")
    assert str(exc.value) == "Another payment request claimed the same amount, please retry"
    assert list_payment_requests_for_student(db_session, student_id=school_data["student"].id) == []


def test_cancel_payment_request_only_once(db_session, school_data):
    """
    Validate cancellation of a pending request.

    1. Create a request and cancel it.
    2. Validate the stored status is cancelled and no active request remains.
    3. Cancel the same request again.
    4. Validate the second cancellation is rejected.
    """
    request = _create(db_session, school_data)
    cancelled = cancel_payment_request(
        db_session,
        payment_request_id=request.id,
        student_id=school_data["student"].id,
        now=NOW,
    )
    assert cancelled.status == PaymentRequestStatus.cancelled
    assert get_active_payment_request(db_session, student_id=school_data["student"].id, now=NOW) is None
    with pytest.raises(ValidationError) as exc:
        cancel_payment_request(
            db_session,
            payment_request_id=request.id,
            student_id=school_data["student"].id,
            now=NOW,
        )
    assert str(exc.value) == "Only pending payment requests can be cancelled"


def test_get_payment_request_for_student_hides_other_students_requests(db_session, school_data):
    """
    Validate request ownership on student reads.

    1. Create a request for the seeded student.
    2. Seed a second student.
    3. Read the request as the second student.
    4. Validate NotFoundError is raised.
    """
    request = _create(db_session, school_data)
    other = create_student(db_session, nis="S-0100")
    with pytest.raises(NotFoundError) as exc:
        get_payment_request_for_student(db_session, payment_request_id=request.id, student_id=other.id, now=NOW)
    assert str(exc.value) == "Payment request not found"


def test_read_after_backend_deadline_expires_request(db_session, school_data):
    """
    Validate lazy expiry on read.

    1. Create a request at NOW.
    2. Read it back ten minutes later, exactly at the backend deadline.
    3. Read the stored row.
    4. Validate the request is expired in storage.
    """
    request = _create(db_session, school_data)
    loaded = get_payment_request(db_session, payment_request_id=request.id, now=NOW + timedelta(minutes=10))
    assert loaded.status == PaymentRequestStatus.expired
    assert get_entity_by_id(db_session, PaymentRequest, request.id).status == PaymentRequestStatus.expired


def test_expire_pending_payment_requests_sweeps_only_overdue_rows(db_session, school_data):
    """
    Validate the scheduled expiry sweep.

    1. Stage one overdue and one live pending request for two students.
    2. Run the sweep at NOW.
    3. Read back both requests.
    4. Validate only the overdue one was expired.
    """
    other = create_student(db_session, nis="S-0200")
    overdue = create_payment_request_row(
        db_session,
        student_id=school_data["student"].id,
        total_amount=Decimal("500001.00"),
        expires_at=NOW - timedelta(minutes=1),
    )
    live = create_payment_request_row(
        db_session,
        student_id=other.id,
        total_amount=Decimal("500002.00"),
        expires_at=NOW + timedelta(minutes=5),
    )
    assert expire_pending_payment_requests(db_session, now=NOW) == 1
    assert get_entity_by_id(db_session, PaymentRequest, overdue.id).status == PaymentRequestStatus.expired
    assert get_entity_by_id(db_session, PaymentRequest, live.id).status == PaymentRequestStatus.pending


def test_verify_payment_request_settles_every_line(db_session, school_data):
    """
    Validate verification inside the backend window.

    1. Create a request for all three tuitions.
    2. Verify it seven minutes later against the school bank account.
    3. Read payments, tuitions and the student.
    4. Validate every tuition is paid by bank transfer and the student payment time is set.
    """
    request = _create(db_session, school_data)
    verified_at = NOW + timedelta(minutes=7)
    result = verify_payment_request(
        db_session,
        payment_request_id=request.id,
        bank_account_id=school_data["bank_account"].id,
        now=verified_at,
    )
    assert result.payment_request.status == PaymentRequestStatus.verified
    assert result.unallocated_amount == Decimal("0.00")
    assert len(result.payment_ids) == 3

    payments = list_payments_for_request(db_session, payment_request_id=request.id)
    assert {payment.method for payment in payments} == {PaymentMethod.bank_transfer}
    assert payments[0].notes == f"Bank transfer verified. Request #{request.id}"
    for tuition in school_data["tuitions"]:
        assert get_entity_by_id(db_session, Tuition, tuition.id).status == TuitionStatus.paid
    student = get_entity_by_id(db_session, Student, school_data["student"].id)
    assert as_utc(student.last_payment_at) == verified_at


def test_verify_payment_request_reports_unallocated_amount_for_settled_tuition(db_session, school_data):
    """
    Validate verification when a bundled tuition was settled elsewhere.

    1. Create a request for all three tuitions.
    2. Settle the July tuition at the counter before the transfer is verified.
    3. Verify the request manually as the admin.
    4. Validate July is skipped and its line amount is reported as unallocated.
    """
    request = _create(db_session, school_data)
    july = school_data["tuitions"][0]
    process_payment(db_session, tuition_id=july.id, amount=Decimal("500000"), employee_id=None)
    result = verify_payment_request(
        db_session,
        payment_request_id=request.id,
        verified_by_employee_id=school_data["admin"].id,
        now=NOW + timedelta(minutes=2),
    )
    assert len(result.payment_ids) == 2
    assert result.unallocated_amount == Decimal("500000.00")
    assert result.payment_request.verified_by_employee_id == school_data["admin"].id
    payments = list_payments_for_request(db_session, payment_request_id=request.id)
    assert payments[0].notes == f"Bank transfer manually verified. Request #{request.id}"


def test_verify_payment_request_rejects_expired_and_repeated_verification(db_session, school_data):
    """
    Validate verification state guards.

    1. Create a request for July and verify it after its backend deadline.
    2. Validate the expired message and stored expired status.
    3. Create a later request for August and verify it twice within its window.
    4. Validate the already-verified message on the second call.
    """
    july, august, _ = school_data["tuitions"]
    late = _create(db_session, school_data, tuition_ids=[july.id])
    with pytest.raises(ValidationError) as expired_exc:
        verify_payment_request(db_session, payment_request_id=late.id, now=NOW + timedelta(minutes=10, seconds=1))
    assert str(expired_exc.value) == "Payment request has expired"
    assert get_entity_by_id(db_session, PaymentRequest, late.id).status == PaymentRequestStatus.expired

    later = NOW + timedelta(minutes=20)
    on_time = _create(db_session, school_data, tuition_ids=[august.id], key="key-2", now=later, code=9)
    verify_payment_request(db_session, payment_request_id=on_time.id, now=later + timedelta(minutes=1))
    with pytest.raises(ValidationError) as repeat_exc:
        verify_payment_request(db_session, payment_request_id=on_time.id, now=later + timedelta(minutes=2))
    assert str(repeat_exc.value) == "Payment request is already verified"


def test_verify_payment_request_rejects_unknown_bank_account(db_session, school_data):
    """
    Validate the bank account reference on verification.

    1. Create a request for all tuitions.
    2. Verify it against a bank account id that does not exist.
    3. Capture the raised error.
    4. Validate NotFoundError message.
    """
    request = _create(db_session, school_data)
    with pytest.raises(NotFoundError) as exc:
        verify_payment_request(db_session, payment_request_id=request.id, bank_account_id=55555, now=NOW)
    assert str(exc.value) == "Bank account not found"


def test_submit_payment_request_replays_stored_payload(db_session, school_data):
    """
    Validate idempotent submission with an explicit key.

    1. Submit a request with key "retry-key".
    2. Submit again with the same key and selection.
    3. Compare both results and the duplicate flags.
    4. Validate a single request and a single idempotency record exist.
    """
    student = school_data["student"]
    tuition_ids = [tuition.id for tuition in school_data["tuitions"]]
    first = submit_payment_request(
        db_session,
        student=student,
        tuition_ids=tuition_ids,
        idempotency_key="retry-key",
        now=NOW,
        rng=lambda: 123,
    )
    second = submit_payment_request(
        db_session,
        student=student,
        tuition_ids=tuition_ids,
        idempotency_key="retry-key",
        now=NOW + timedelta(seconds=5),
        rng=lambda: 456,
    )
    assert first.is_duplicate is False
    assert second.is_duplicate is True
    assert second.result == first.result
    assert first.result["total_amount"] == "1500123.00"
    assert len(list_payment_requests_for_student(db_session, student_id=student.id)) == 1
    assert len(list_idempotency_records(db_session)) == 1


def test_submit_payment_request_derives_key_without_header(db_session, school_data):
    """
    Validate the generated key for submissions without an explicit key.

    1. Submit a request without a key.
    2. Submit the same selection in a different order within the same minute.
    3. Compare the results.
    4. Validate the second submission is a replay of the first.
    """
    student = school_data["student"]
    ids = [tuition.id for tuition in school_data["tuitions"]]
    first = submit_payment_request(db_session, student=student, tuition_ids=ids, now=NOW, rng=lambda: 77)
    second = submit_payment_request(
        db_session,
        student=student,
        tuition_ids=list(reversed(ids)),
        now=NOW + timedelta(seconds=30),
        rng=lambda: 78,
    )
    assert second.is_duplicate is True
    assert second.result["id"] == first.result["id"]


def test_serializers_expose_display_deadline_to_students_only(db_session, school_data):
    """
    Validate the student and admin views of one request.

    1. Create a request at NOW.
    2. Serialize it for the student and for the admin.
    3. Compare the deadlines exposed by each view.
    4. Validate students see the five minute deadline and admins also see the backend one.
    """
    request = _create(db_session, school_data)
    student_view = serialize_student_payment_request(request, now=NOW)
    admin_view = serialize_admin_payment_request(request, now=NOW)
    assert student_view["expires_at"] == NOW + timedelta(minutes=5)
    assert student_view["display_minutes"] == 5
    assert "backend_expires_at" not in student_view
    assert admin_view["backend_expires_at"] == NOW + timedelta(minutes=10)
    assert admin_view["student"]["nis"] == "S-0001"


def test_student_view_reports_expired_before_sweep(db_session, school_data):
    """
    Validate the effective status of an overdue request that was never swept.

    1. Create a request at NOW.
    2. Serialize it eleven minutes later without any sweep.
    3. Read the stored row.
    4. Validate the view says expired while storage still says pending.
    """
    request = _create(db_session, school_data)
    view = serialize_student_payment_request(request, now=NOW + timedelta(minutes=11))
    assert view["status"] == PaymentRequestStatus.expired
    assert get_entity_by_id(db_session, PaymentRequest, request.id).status == PaymentRequestStatus.pending


def test_list_unpaid_tuitions_excludes_paid(db_session, school_data):
    """
    Validate the unpaid tuition listing.

    1. Settle the July tuition and partially pay August.
    2. List unpaid tuitions of the student.
    3. Read the returned periods.
    4. Validate July is excluded and partial August is kept.
    """
    july, august, _ = school_data["tuitions"]
    process_payment(db_session, tuition_id=july.id, amount=Decimal("500000"), employee_id=None)
    process_payment(db_session, tuition_id=august.id, amount=Decimal("100000"), employee_id=None)
    unpaid = list_unpaid_tuitions(db_session, student_id=school_data["student"].id)
    assert [tuition.period for tuition in unpaid] == ["AUGUST", "SEPTEMBER"]
