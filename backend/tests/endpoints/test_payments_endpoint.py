from decimal import Decimal

from app.domain.tuition_status import TuitionStatus
from app.infrastructure.db.models import Tuition
from tests.helpers.auth import employee_header
from tests.helpers.factories import get_entity_by_id


def test_cashier_records_partial_then_full_payment(client, db_session, school_data):
    """
    Validate counter payments move the tuition status.

    1. Record a partial cash payment as a cashier.
    2. Record the remainder.
    3. Load the tuition.
    4. Validate statuses move from unpaid to partial to paid.
    """
    headers = employee_header(school_data["cashier"].id)
    tuition = school_data["tuitions"][0]

    first = client.post("/api/v1/payments", json={"tuition_id": tuition.id, "amount": "200000"}, headers=headers)
    assert first.status_code == 201
    assert first.json()["previous_status"] == "unpaid"
    assert first.json()["new_status"] == "partial"
    assert Decimal(first.json()["remaining_amount"]) == Decimal("300000")

    second = client.post(
        "/api/v1/payments",
        json={"tuition_id": tuition.id, "amount": "300000", "notes": "Remainder at counter"},
        headers=headers,
    )
    assert second.status_code == 201
    assert second.json()["new_status"] == "paid"
    assert get_entity_by_id(db_session, Tuition, tuition.id).status == TuitionStatus.paid

    rejected = client.post("/api/v1/payments", json={"tuition_id": tuition.id, "amount": "1"}, headers=headers)
    assert rejected.status_code == 400
    assert rejected.json()["detail"] == "Tuition is already fully paid"


def test_payment_validation_errors(client, school_data):
    """
    Validate payment input checks.

    1. Post a non-positive amount.
    2. Post a payment for a missing tuition.
    3. Read both responses.
    4. Validate 422 and 404.
    """
    headers = employee_header(school_data["cashier"].id)
    tuition_id = school_data["tuitions"][0].id
    assert client.post("/api/v1/payments", json={"tuition_id": tuition_id, "amount": "0"}, headers=headers).status_code == 422
    missing = client.post("/api/v1/payments", json={"tuition_id": 999999, "amount": "10"}, headers=headers)
    assert missing.status_code == 404
    assert missing.json()["detail"] == "Tuition not found"


def test_list_get_and_reverse_payment(client, db_session, school_data):
    """
    Validate payment reads and admin reversal.

    1. Record a full payment as a cashier.
    2. List and read it back.
    3. Try the reversal as a cashier and then as an admin.
    4. Validate only the admin reversal succeeds and the tuition reopens.
    """
    cashier_headers = employee_header(school_data["cashier"].id)
    tuition = school_data["tuitions"][1]
    created = client.post(
        "/api/v1/payments",
        json={"tuition_id": tuition.id, "amount": "500000"},
        headers=cashier_headers,
    ).json()
    payment_id = created["payment_id"]

    listed = client.get("/api/v1/payments", params={"student_id": school_data["student"].id}, headers=cashier_headers)
    assert [item["id"] for item in listed.json()["items"]] == [payment_id]

    detail = client.get(f"/api/v1/payments/{payment_id}", headers=cashier_headers).json()
    assert detail["method"] == "cash"
    assert detail["tuition"]["period"] == "AUGUST"
    assert detail["student"]["nis"] == "S-0001"
    assert detail["employee"]["id"] == school_data["cashier"].id

    assert client.delete(f"/api/v1/payments/{payment_id}", headers=cashier_headers).status_code == 403
    reversed_payment = client.delete(f"/api/v1/payments/{payment_id}", headers=employee_header(school_data["admin"].id))
    assert reversed_payment.status_code == 200
    assert reversed_payment.json()["previous_status"] == "paid"
    assert reversed_payment.json()["new_status"] == "unpaid"
    assert get_entity_by_id(db_session, Tuition, tuition.id).status == TuitionStatus.unpaid
    assert client.get(f"/api/v1/payments/{payment_id}", headers=cashier_headers).status_code == 404
