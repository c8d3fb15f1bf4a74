"""
Domain-level exceptions used within the session layer.

These exceptions are **framework-agnostic** and never import Flask, HTTP, or
SQLAlchemy. They are the stable contract between the token codec, the token
store, the verification gateway and the session service.

Security-sensitive flows (login, refresh, password reset, OTP) surface a
single generic :class:`SessionError` per flow. The precise reason travels on
``exc.cause`` (a :class:`FailureCause`) and on ``__cause__`` for logging and
tests, but never in ``str(exc)``.

The translation to HTTP responses (RFC 7807) is handled by
``sessionauth/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - The API layer or BaseService will later translate them to APIError.
    """

    pass


class ErrorKind(str, Enum):
    """Externally visible error kinds produced by the session service."""

    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    UNAUTHENTICATED = "unauthenticated"
    RESET_FAILED = "reset_failed"
    VERIFICATION_UNAVAILABLE = "verification_unavailable"


class FailureCause(str, Enum):
    """Internal-only reason a flow was rejected. Never shown to callers."""

    NO_SUCH_USER = "no_such_user"
    BAD_PASSWORD = "bad_password"
    NOT_VERIFIED = "not_verified"
    TOKEN_ABSENT = "token_absent"
    TOKEN_MALFORMED = "token_malformed"
    TOKEN_EXPIRED = "token_expired"
    TOKEN_WRONG_KIND = "token_wrong_kind"
    TOKEN_ALREADY_USED = "token_already_used"
    SUBJECT_MISSING = "subject_missing"
    PROVIDER_FAILURE = "provider_failure"
    INTERNAL = "internal"


# --------------------------------------------------------------------------- #
# Token codec / store errors (internal, collapsed by the session service)
# --------------------------------------------------------------------------- #


class TokenError(ServiceError):
    """Base class for token decoding and persistence failures."""

    cause: FailureCause = FailureCause.INTERNAL


class MalformedToken(TokenError):
    """The value cannot be decoded or its signature does not verify."""

    cause = FailureCause.TOKEN_MALFORMED


class ExpiredToken(TokenError):
    """The token is past its ``exp`` claim."""

    cause = FailureCause.TOKEN_EXPIRED


class WrongKind(TokenError):
    """
    The token decoded fine but was issued for another purpose.

    :param expected: Kind required by the caller.
    :param actual: Kind carried by the token.
    """

    cause = FailureCause.TOKEN_WRONG_KIND

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"Expected a {expected} token, got {actual}")
        self.expected = expected
        self.actual = actual


class DuplicateToken(TokenError):
    """A token with the same value is already stored."""


class VerificationProviderError(ServiceError):
    """Raised by gateway adapters for any provider-side or transport failure."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


# --------------------------------------------------------------------------- #
# Flow-level errors (the only ones that cross the service boundary)
# --------------------------------------------------------------------------- #


class SessionError(ServiceError):
    """
    Generic, caller-safe flow failure.

    :param message: Public message (safe for clients).
    :param cause: Internal reason, for logs and assertions only.
    """

    kind: ErrorKind = ErrorKind.UNAUTHORIZED
    default_message = "Request failed"

    def __init__(
        self,
        message: str | None = None,
        *,
        cause: FailureCause = FailureCause.INTERNAL,
    ) -> None:
        self.message = message or self.default_message
        self.cause = cause
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(kind={self.kind.value!r}, cause={self.cause.value!r})"


class Unauthorized(SessionError):
    """Bad credentials; identical for unknown identity and wrong password."""

    kind = ErrorKind.UNAUTHORIZED
    default_message = "Incorrect email or password"


class Forbidden(SessionError):
    """Credentials are right but the account is not verified."""

    kind = ErrorKind.FORBIDDEN
    default_message = "Account not verified!"


class NotFound(SessionError):
    """The presented token (or the looked-up user) is not stored."""

    kind = ErrorKind.NOT_FOUND
    default_message = "Not found"


class Unauthenticated(SessionError):
    """Refresh failed for any reason."""

    kind = ErrorKind.UNAUTHENTICATED
    default_message = "Please authenticate"


class ResetFailed(SessionError):
    """Password reset failed for any reason."""

    kind = ErrorKind.RESET_FAILED
    default_message = "Password reset failed"


class VerificationUnavailable(SessionError):
    """The verification provider could not serve the request."""

    kind = ErrorKind.VERIFICATION_UNAVAILABLE
    default_message = "Something went wrong!"


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found (non security-sensitive lookups).

    :param entity: Entity name (e.g., "User").
    :param key: Identifier or search key.
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"
