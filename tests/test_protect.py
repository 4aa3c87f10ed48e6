"""Tests for the access guard, attached to incomes/expenses when REQUIRE_AUTH is on."""

from datetime import datetime, timedelta, timezone

import jwt
import pytest
from fastapi.testclient import TestClient

from auth import INVALID_TOKEN, NOT_LOGGED_IN, USER_GONE, create_access_token, decode_access_token
from database import User
from main import create_app
from tests.conftest import TEST_SECRET, make_settings


@pytest.fixture
def settings():
    return make_settings(require_auth=True)


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


class TestGuardWiring:

    def test_routes_are_public_by_default(self):
        app = create_app(make_settings())
        with TestClient(app) as client:
            assert client.get("/api/v1/incomes").status_code == 200
            assert client.get("/api/v1/expenses").status_code == 200

    def test_missing_token(self, client):
        res = client.get("/api/v1/incomes")
        assert res.status_code == 401
        assert res.json() == {"status": "fail", "message": NOT_LOGGED_IN}

    def test_non_bearer_scheme(self, client, registered):
        res = client.get(
            "/api/v1/expenses", headers={"Authorization": f"Basic {registered['token']}"}
        )
        assert res.status_code == 401
        assert res.json()["message"] == NOT_LOGGED_IN

    def test_lowercase_bearer_scheme_is_rejected(self, client, registered):
        res = client.get(
            "/api/v1/incomes", headers={"Authorization": f"bearer {registered['token']}"}
        )
        assert res.status_code == 401
        assert res.json()["message"] == NOT_LOGGED_IN

    def test_bearer_without_token(self, client):
        res = client.get("/api/v1/incomes", headers={"Authorization": "Bearer "})
        assert res.status_code == 401
        assert res.json()["message"] == NOT_LOGGED_IN

    def test_valid_token(self, client, registered):
        res = client.get("/api/v1/incomes", headers=bearer(registered["token"]))
        assert res.status_code == 200

    def test_create_with_valid_token(self, client, registered):
        res = client.post(
            "/api/v1/expenses",
            json={
                "userId": registered["data"]["user"]["id"],
                "amount": 10,
                "category": "Food",
                "date": "2023-10-01T00:00:00.000Z",
            },
            headers=bearer(registered["token"]),
        )
        assert res.status_code == 201


class TestTokenVerification:

    def test_garbage_token(self, client):
        res = client.get("/api/v1/incomes", headers=bearer("not.a.token"))
        assert res.status_code == 401
        assert res.json()["message"] == INVALID_TOKEN

    def test_token_signed_with_other_secret(self, client, registered):
        token = create_access_token(
            registered["data"]["user"]["id"], make_settings(jwt_secret="other")
        )
        res = client.get("/api/v1/incomes", headers=bearer(token))
        assert res.status_code == 401
        assert res.json()["message"] == INVALID_TOKEN

    def test_expired_token(self, client, registered):
        past = datetime.now(timezone.utc) - timedelta(days=1)
        token = jwt.encode(
            {"id": registered["data"]["user"]["id"], "iat": past, "exp": past},
            TEST_SECRET,
            algorithm="HS256",
        )
        res = client.get("/api/v1/incomes", headers=bearer(token))
        assert res.status_code == 401
        assert res.json()["message"] == INVALID_TOKEN

    def test_token_without_id_claim(self, client):
        token = jwt.encode(
            {"exp": datetime.now(timezone.utc) + timedelta(hours=1)},
            TEST_SECRET,
            algorithm="HS256",
        )
        res = client.get("/api/v1/incomes", headers=bearer(token))
        assert res.json()["message"] == INVALID_TOKEN

    def test_token_for_deleted_user(self, client, registered, db_session):
        db_session.query(User).delete()
        db_session.commit()

        res = client.get("/api/v1/incomes", headers=bearer(registered["token"]))
        assert res.status_code == 401
        assert res.json()["message"] == USER_GONE

    def test_decode_access_token(self, settings):
        token = create_access_token(7, settings)
        assert decode_access_token(token, settings) == 7
