from fastapi import status


def test_root_returns_ok(client):
    response = client.get("/")
    assert response.status_code == status.HTTP_200_OK
    payload = response.json()
    assert payload["status"] == "ok"
    assert payload["service"] == "Poly Spark Payments API"


def test_health_returns_ok(client):
    response = client.get("/health")
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"status": "ok"}


def test_unknown_route_uses_error_envelope(client):
    response = client.get("/api/does-not-exist")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["success"] is False


def test_payment_routes_document_error_envelope(client):
    schema = client.get("/openapi.json").json()

    assert "ErrorResponse" in schema["components"]["schemas"]
    verify_responses = schema["paths"]["/api/payments/verify/{order_id}"]["post"]["responses"]
    assert verify_responses["409"]["content"]["application/json"]["schema"]["$ref"].endswith("/ErrorResponse")
    assert "403" in verify_responses
