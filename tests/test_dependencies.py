from datetime import timedelta

from fastapi import status
from fastapi.security import HTTPAuthorizationCredentials

from app.dependencies import get_caller, get_current_user_optional, get_reconciliation_service
from app.services.reconciliation import ReconciliationService
from conftest import create_token


def test_get_current_user_success(client, test_user, db):
    """Valid access token resolves to the user."""
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials=create_token(test_user.id))

    user = get_current_user_optional(credentials, db)
    assert user is not None
    assert user.id == test_user.id
    assert user.email == test_user.email


def test_get_current_user_no_token(client):
    response = client.get("/api/payments/history")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    body = response.json()
    assert body["success"] is False
    assert "authenticated" in body["message"].lower()


def test_get_current_user_invalid_token(client):
    response = client.get(
        "/api/payments/history",
        headers={"Authorization": "Bearer invalid_token_here"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_get_current_user_expired_token(client, test_user):
    expired_token = create_token(test_user.id, expires_delta=timedelta(hours=-1))

    response = client.get(
        "/api/payments/history",
        headers={"Authorization": f"Bearer {expired_token}"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_get_current_user_rejects_refresh_token_type(client, test_user):
    token = create_token(test_user.id, token_type="refresh")

    response = client.get(
        "/api/payments/history",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_get_current_user_nonexistent_user(client, db):
    token = create_token(99999)

    response = client.get(
        "/api/payments/history",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_get_current_user_optional_none(client, db):
    assert get_current_user_optional(None, db) is None


def test_get_current_user_optional_invalid_token(client, db):
    credentials = HTTPAuthorizationCredentials(scheme="Bearer", credentials="invalid_token")
    assert get_current_user_optional(credentials, db) is None


def test_get_caller_carries_role(admin_user, test_user):
    admin = get_caller(admin_user)
    customer = get_caller(test_user)

    assert admin.id == admin_user.id
    assert admin.is_admin is True
    assert customer.is_admin is False


def test_reconciliation_service_shares_request_session(db):
    service = get_reconciliation_service(db)

    assert isinstance(service, ReconciliationService)
    assert service.orders.db is db
    assert service.ledger.db is db
