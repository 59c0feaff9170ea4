def test_ping_endpoint_reports_service_status(client):
    """
    Validate the public health endpoint payload.

    1. Call the public ping endpoint without authentication.
    2. Parse the response payload returned by the backend.
    3. Validate the greeting and version values.
    4. Validate DB and Redis connectivity flags are true.
    """
    response = client.get("/api/v1/ping")
    assert response.status_code == 200

    payload = response.json()
    assert payload["message"] == "Hello from Tuition Portal API"
    assert payload["version"] == "0.1.0"
    assert payload["db_connected"] is True
    assert payload["redis_connected"] is True


def test_root_endpoint_reports_running(client):
    """
    Validate the root endpoint greeting.

    1. Call the root path without authentication.
    2. Receive a successful response.
    3. Parse the message field.
    4. Validate it names the running application.
    """
    response = client.get("/")
    assert response.status_code == 200
    assert response.json() == {"message": "Tuition Portal API is running"}
