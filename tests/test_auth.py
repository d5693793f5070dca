"""
Tests for bearer-token authentication.

Runs against the real get_current_user dependency; only the database
session is overridden.
"""

from datetime import timedelta

import pytest
from fastapi.testclient import TestClient

from spacebroker.auth import create_access_token, decode_access_token
from spacebroker.database import get_db
from spacebroker.main import app


@pytest.fixture
def token_client(db_session):
    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestAccessTokens:
    def test_token_carries_user_id_as_subject(self, make_user):
        user = make_user("owner")

        payload = decode_access_token(create_access_token(user))

        assert payload["sub"] == str(user.id)
        assert payload["role"] == "owner"

    def test_valid_token_resolves_caller(self, token_client, make_user):
        user = make_user("requester")

        response = token_client.get("/users/me", headers=_bearer(create_access_token(user)))

        assert response.status_code == 200
        assert response.json()["email"] == user.email

    def test_expired_token_is_rejected(self, token_client, make_user):
        user = make_user("requester")
        token = create_access_token(user, expires_delta=timedelta(minutes=-5))

        response = token_client.get("/users/me", headers=_bearer(token))

        assert response.status_code == 401

    def test_inactive_user_is_rejected(self, token_client, make_user):
        user = make_user("requester", is_active=False)

        response = token_client.get("/users/me", headers=_bearer(create_access_token(user)))

        assert response.status_code == 401

    def test_missing_header_is_401(self, token_client):
        response = token_client.get("/users/me")

        assert response.status_code in (401, 403)
