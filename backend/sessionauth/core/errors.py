"""Centralized JSON (RFC 7807) error handling for host blueprints."""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any, cast
from uuid import uuid4

from flask import Flask, Response, g, jsonify, request
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from sessionauth.services._shared.errors import ErrorKind, ServiceError, SessionError

log = logging.getLogger(__name__)


def _ensure_request_id() -> str:
    """Get or generate a request-scoped correlation identifier."""
    if hasattr(g, "request_id"):
        return cast(str, g.request_id)

    hdr = request.headers.get("X-Request-Id") or request.headers.get("X-Correlation-Id")
    req_id = hdr or str(uuid4())
    g.request_id = req_id
    return req_id


def _as_problem(
    *,
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Build an RFC 7807 Problem Details dict.

    :param status: HTTP status code.
    :param code: Stable machine-consumable error code.
    :param message: Human-readable error summary (safe for clients).
    :param details: Optional safe, structured details.
    :returns: Problem+JSON dictionary.
    """
    problem = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
    }
    if details:
        problem["details"] = details
    problem["request_id"] = _ensure_request_id()
    return problem


def _problem_response(problem: dict[str, Any], status: int) -> tuple[Response, int]:
    resp = jsonify(problem)
    resp.mimetype = "application/problem+json"
    return resp, status


class APIError(Exception):
    """
    A JSON-serializable API error.

    :param message: Human-readable description presented to clients.
    :param status_code: HTTP status code. Defaults to ``400``.
    :param code: Machine-readable identifier. Defaults to ``"bad_request"``.
    :param details: Optional structured payload.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}

    def to_problem(self) -> dict[str, Any]:
        return _as_problem(
            status=self.status_code,
            code=self.code,
            message=self.message,
            details=self.details or None,
        )


class NotFound(APIError):
    """404 when resources are missing."""

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message, status_code=HTTPStatus.NOT_FOUND, code="not_found")


class Unauthorized(APIError):
    """401 when authentication fails."""

    def __init__(self, message: str = "Unauthorized", code: str = "unauthorized") -> None:
        super().__init__(message, status_code=HTTPStatus.UNAUTHORIZED, code=code)


class Forbidden(APIError):
    """403 when the account may not proceed."""

    def __init__(self, message: str = "Forbidden") -> None:
        super().__init__(message, status_code=HTTPStatus.FORBIDDEN, code="forbidden")


# Flow error kind -> (HTTP status, problem code)
KIND_STATUS: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.UNAUTHORIZED: (HTTPStatus.UNAUTHORIZED, "unauthorized"),
    ErrorKind.FORBIDDEN: (HTTPStatus.FORBIDDEN, "forbidden"),
    ErrorKind.NOT_FOUND: (HTTPStatus.NOT_FOUND, "not_found"),
    ErrorKind.UNAUTHENTICATED: (HTTPStatus.UNAUTHORIZED, "unauthenticated"),
    ErrorKind.RESET_FAILED: (HTTPStatus.UNAUTHORIZED, "reset_failed"),
    ErrorKind.VERIFICATION_UNAVAILABLE: (HTTPStatus.BAD_REQUEST, "verification_unavailable"),
}


def from_session_error(exc: SessionError) -> APIError:
    """Map a flow error to its API error. Only the generic message crosses over."""
    status, code = KIND_STATUS[exc.kind]
    return APIError(exc.message, status_code=status, code=code)


def init_app(app: Flask) -> None:
    """
    Attach JSON error handlers to the Flask app.

    Notes
    -----
    - Guarantees RFC 7807 responses for all handled errors.
    - Session flow errors are logged with their internal cause, but the
      response only carries the generic message.
    - Emits 5xx with ``exc_info`` for traceability; 4xx as warnings.
    """

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        problem = err.to_problem()
        level = log.error if err.status_code >= 500 else log.warning
        level(
            "APIError: code=%s status=%s msg=%s request_id=%s",
            err.code,
            err.status_code,
            err.message,
            problem.get("request_id"),
        )
        return _problem_response(problem, err.status_code)

    @app.errorhandler(SessionError)
    def handle_session_error(err: SessionError):
        api_err = from_session_error(err)
        problem = api_err.to_problem()
        log.warning(
            "SessionError: kind=%s request_id=%s",
            err.kind.value,
            problem.get("request_id"),
            extra={"cause": err.cause.value},
        )
        return _problem_response(problem, api_err.status_code)

    @app.errorhandler(ServiceError)
    def handle_service_error(err: ServiceError):
        problem = _as_problem(status=HTTPStatus.BAD_REQUEST, code="bad_request", message=str(err))
        log.warning("ServiceError: request_id=%s", problem.get("request_id"))
        return _problem_response(problem, HTTPStatus.BAD_REQUEST)

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        message = (err.description or HTTPStatus(status).phrase).strip()
        problem = _as_problem(
            status=status, code=HTTPStatus(status).phrase.lower().replace(" ", "_"), message=message
        )
        return _problem_response(problem, status)

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: Any):
        # E.g., transient DB connectivity, deadlocks, etc.
        problem = _as_problem(
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            code="service_unavailable",
            message="Service temporarily unavailable",
        )
        log.error("OperationalError: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem, HTTPStatus.SERVICE_UNAVAILABLE)

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        # Unexpected server-side error; never leak internal details
        problem = _as_problem(
            status=HTTPStatus.INTERNAL_SERVER_ERROR,
            code="internal_server_error",
            message="Unexpected error",
        )
        log.error("Unhandled exception: request_id=%s", problem.get("request_id"), exc_info=True)
        return _problem_response(problem, HTTPStatus.INTERNAL_SERVER_ERROR)

    # ------------------- flask-jwt-extended rejections -------------------
    from sessionauth.core.extensions import jwt

    def _jwt_problem(message: str):
        problem = _as_problem(
            status=HTTPStatus.UNAUTHORIZED, code="unauthenticated", message="Please authenticate"
        )
        log.warning("JWT rejected: %s request_id=%s", message, problem.get("request_id"))
        return _problem_response(problem, HTTPStatus.UNAUTHORIZED)

    @jwt.unauthorized_loader
    def _missing_token(reason: str):
        return _jwt_problem(reason)

    @jwt.invalid_token_loader
    def _invalid_token(reason: str):
        return _jwt_problem(reason)

    @jwt.expired_token_loader
    def _expired_token(_header: dict, _payload: dict):
        return _jwt_problem("token expired")

    @jwt.user_lookup_error_loader
    def _unknown_user(_header: dict, _payload: dict):
        return _jwt_problem("user not found")
