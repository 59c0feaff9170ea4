from decimal import Decimal

from app.domain.tuition_status import TuitionStatus
from app.infrastructure.db.models import Tuition
from tests.helpers.auth import employee_header
from tests.helpers.factories import get_entity_by_id


def test_full_scholarship_auto_settles_unpaid_tuitions(client, db_session, school_data):
    """
    Validate a full scholarship through the API.

    1. Grant a nominal equal to the monthly fee.
    2. Read the creation counters.
    3. Load the seeded tuitions.
    4. Validate every tuition is settled by a system payment.
    """
    response = client.post(
        "/api/v1/scholarships",
        json={
            "student_id": school_data["student"].id,
            "class_academic_id": school_data["class_academic"].id,
            "nominal": "500000",
        },
        headers=employee_header(school_data["admin"].id),
    )
    assert response.status_code == 201
    body = response.json()
    assert body["scholarship"]["is_full_scholarship"] is True
    assert body["tuitions_auto_settled"] == 3
    assert len(body["auto_payment_ids"]) == 3
    for tuition in school_data["tuitions"]:
        assert get_entity_by_id(db_session, Tuition, tuition.id).status == TuitionStatus.paid


def test_partial_scholarship_list_and_revoke(client, db_session, school_data):
    """
    Validate a partial scholarship lifecycle.

    1. Grant a partial nominal as admin.
    2. List scholarships as a cashier.
    3. Revoke the scholarship.
    4. Validate tuition amounts follow each step.
    """
    admin_headers = employee_header(school_data["admin"].id)
    created = client.post(
        "/api/v1/scholarships",
        json={
            "student_id": school_data["student"].id,
            "class_academic_id": school_data["class_academic"].id,
            "nominal": "100000",
        },
        headers=admin_headers,
    ).json()
    assert created["scholarship"]["is_full_scholarship"] is False
    assert created["tuitions_auto_settled"] == 0
    assert created["tuitions_updated"] == 3
    july = get_entity_by_id(db_session, Tuition, school_data["tuitions"][0].id)
    assert july.scholarship_amount == Decimal("100000.00")

    listed = client.get("/api/v1/scholarships", headers=employee_header(school_data["cashier"].id)).json()
    assert [item["id"] for item in listed["items"]] == [created["scholarship"]["id"]]

    revoked = client.delete(f"/api/v1/scholarships/{created['scholarship']['id']}", headers=admin_headers)
    assert revoked.status_code == 200
    assert revoked.json()["updated"] == 3
    assert get_entity_by_id(db_session, Tuition, july.id).scholarship_amount == Decimal("0.00")


def test_scholarship_validation(client, school_data):
    """
    Validate scholarship grant errors.

    1. Grant a zero nominal.
    2. Grant for a missing student.
    3. Grant as a cashier.
    4. Validate 400, 404 and 403 responses.
    """
    admin_headers = employee_header(school_data["admin"].id)
    base = {"student_id": school_data["student"].id, "class_academic_id": school_data["class_academic"].id}
    zero = client.post("/api/v1/scholarships", json={**base, "nominal": "0"}, headers=admin_headers)
    assert zero.status_code == 400
    assert zero.json()["detail"] == "Scholarship nominal must be greater than zero"

    missing = client.post(
        "/api/v1/scholarships",
        json={**base, "student_id": 999999, "nominal": "1000"},
        headers=admin_headers,
    )
    assert missing.status_code == 404

    cashier = client.post(
        "/api/v1/scholarships",
        json={**base, "nominal": "1000"},
        headers=employee_header(school_data["cashier"].id),
    )
    assert cashier.status_code == 403
