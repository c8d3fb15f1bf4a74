"""ACCESS tokens from the codec are accepted by flask-jwt-extended guards."""

from __future__ import annotations

from datetime import timedelta

import pytest
from freezegun import freeze_time
from sessionauth.services._shared.ports import TokenKind
from tests.factories.user import UserFactory


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_service(app):
    return app.extensions["session_service"]


def _bearer(value: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {value}"}


def test_access_token_passes_jwt_required(client, app_service):
    user = UserFactory(email="guard@example.com")
    pair = app_service.generate_auth_tokens(user)

    resp = client.get("/_test/whoami", headers=_bearer(pair.access.value))

    assert resp.status_code == 200
    assert resp.get_json() == {"sub": str(user.id), "email": "guard@example.com"}


def test_refresh_token_is_rejected_by_access_guard(client, app_service):
    pair = app_service.generate_auth_tokens(UserFactory())

    resp = client.get("/_test/whoami", headers=_bearer(pair.refresh.value))

    assert resp.status_code == 401
    assert resp.get_json()["detail"] == "Please authenticate"


def test_missing_token_is_problem_json(client):
    resp = client.get("/_test/whoami")

    assert resp.status_code == 401
    assert resp.mimetype == "application/problem+json"


def test_expired_access_token(client, app_service):
    user = UserFactory()

    with freeze_time("2026-01-01 00:00:00") as frozen:
        token = app_service.codec.issue(user.id, TokenKind.ACCESS, timedelta(minutes=1))
        frozen.tick(timedelta(minutes=2))

        resp = client.get("/_test/whoami", headers=_bearer(token.value))

    assert resp.status_code == 401
