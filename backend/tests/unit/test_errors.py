"""Error translation and RFC 7807 responses for session flow failures."""

from __future__ import annotations

import pytest
from flask import Flask
from sessionauth.core import errors as api_errors
from sessionauth.services._shared.base import BaseService
from sessionauth.services._shared.errors import (
    FailureCause,
    Forbidden,
    NotFound,
    NotFoundError,
    ResetFailed,
    ServiceError,
    Unauthenticated,
    Unauthorized,
    VerificationUnavailable,
)


@pytest.mark.parametrize(
    ("exc", "status", "message"),
    [
        (Unauthorized(cause=FailureCause.BAD_PASSWORD), 401, "Incorrect email or password"),
        (Forbidden(cause=FailureCause.NOT_VERIFIED), 403, "Account not verified!"),
        (NotFound(cause=FailureCause.TOKEN_ABSENT), 404, "Not found"),
        (Unauthenticated(cause=FailureCause.TOKEN_EXPIRED), 401, "Please authenticate"),
        (ResetFailed(cause=FailureCause.TOKEN_ABSENT), 401, "Password reset failed"),
        (VerificationUnavailable(cause=FailureCause.PROVIDER_FAILURE), 400, "Something went wrong!"),
    ],
)
def test_translate_session_errors(exc, status, message):
    translated = BaseService().translate_exceptions(exc)

    assert isinstance(translated, api_errors.APIError)
    assert translated.status_code == status
    assert translated.message == message
    assert exc.cause.value not in translated.message


def test_translate_other_errors():
    service = BaseService()

    assert isinstance(service.translate_exceptions(NotFoundError("User", 1)), api_errors.NotFound)
    assert service.translate_exceptions(ServiceError("bad")).status_code == 400
    boom = RuntimeError("boom")
    assert service.translate_exceptions(boom) is boom


def test_session_error_repr_keeps_cause_out_of_str():
    exc = Unauthenticated(cause=FailureCause.TOKEN_WRONG_KIND)

    assert str(exc) == "Please authenticate"
    assert "token_wrong_kind" in repr(exc)


@pytest.fixture
def client(app: Flask):
    return app.test_client()


def test_session_error_handler_returns_problem_json(client):
    resp = client.get("/_test/expired", headers={"X-Request-ID": "req-123"})

    assert resp.status_code == 401
    assert resp.mimetype == "application/problem+json"
    body = resp.get_json()
    assert body["detail"] == "Please authenticate"
    assert body["code"] == "unauthenticated"
    assert body["request_id"] == "req-123"
    assert "token_expired" not in resp.get_data(as_text=True)
