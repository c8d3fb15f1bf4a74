# sessionauth/services/_shared/base.py
from __future__ import annotations

from dataclasses import dataclass

from sessionauth.core import errors as api_errors
from sessionauth.services._shared.errors import NotFoundError, ServiceError, SessionError


@dataclass(slots=True)
class ServiceContext:
    """
    Carry cross-cutting request-scoped data.

    :param request_id: Correlation id stamped on the service's log records
        when the call does not run inside a Flask request.
    """

    request_id: str | None = None


class BaseService:
    """
    Base class for application services.

    Responsibilities
    ----------------
    * Centralize error translation to the API layer.
    * Keep services thin, orchestration-only, no web/ORM leakage.
    """

    def __init__(self, *, ctx: ServiceContext | None = None) -> None:
        self.ctx = ctx or ServiceContext()

    def log_extra(self, **fields: object) -> dict[str, object]:
        """Return ``fields`` plus the context's request id, for ``extra=``."""
        if self.ctx.request_id is not None:
            fields.setdefault("request_id", self.ctx.request_id)
        return fields

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map domain/service-level errors to API-level (HTTP) errors.

        :param exc: Exception raised within the service.
        :returns: Translated exception ready to be re-raised.
        """
        if isinstance(exc, SessionError):
            # Generic message only; the internal cause stays behind
            return api_errors.from_session_error(exc)

        if isinstance(exc, NotFoundError):
            return api_errors.NotFound(str(exc))

        if isinstance(exc, ServiceError):
            return api_errors.APIError(message=str(exc), status_code=400, code="bad_request")

        # Fallback: return untouched (will bubble up to Flask handler)
        return exc
