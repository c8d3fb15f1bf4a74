from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Protocol


class TokenKind(str, Enum):
    """Purpose of a token. Values are the ``type`` claim carried on the wire."""

    ACCESS = "access"
    REFRESH = "refresh"
    RESET_PASSWORD = "resetPassword"
    VERIFY_EMAIL = "verifyEmail"

    @classmethod
    def from_claim(cls, raw: Any) -> TokenKind | None:
        """Return the kind matching a ``type`` claim, or ``None`` if unknown."""
        for kind in cls:
            if kind.value == raw:
                return kind
        return None


@dataclass(frozen=True, slots=True)
class Token:
    """
    One issued credential.

    :ivar value: Opaque encoded token (unique).
    :ivar subject: User identifier the token was issued for.
    :ivar kind: Token purpose.
    :ivar expires_at: Absolute expiration (UTC).
    :ivar revoked: Blacklist marker; revoked tokens are never active.
    """

    value: str
    subject: str
    kind: TokenKind
    expires_at: datetime
    revoked: bool = False

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


@dataclass(frozen=True, slots=True)
class TokenClaims:
    """Verified claims extracted from a token."""

    subject: str
    kind: TokenKind
    jti: str
    issued_at: datetime
    expires_at: datetime


@dataclass(frozen=True, slots=True)
class TokenSettings:
    """
    Explicit token configuration handed to the codec and the session service.

    :param secret: HMAC signing secret. Rotating it invalidates every token.
    :param algorithm: JWT signing algorithm.
    :param access_expires: ACCESS lifetime.
    :param refresh_expires: REFRESH lifetime.
    :param reset_password_expires: RESET_PASSWORD lifetime.
    :param verify_email_expires: VERIFY_EMAIL lifetime.
    """

    secret: str
    algorithm: str = "HS256"
    access_expires: timedelta = timedelta(minutes=30)
    refresh_expires: timedelta = timedelta(days=30)
    reset_password_expires: timedelta = timedelta(minutes=10)
    verify_email_expires: timedelta = timedelta(minutes=10)

    @classmethod
    def from_mapping(cls, config: Mapping[str, Any]) -> TokenSettings:
        """Build settings from a Flask ``app.config``-like mapping."""
        secret = config.get("JWT_SECRET_KEY")
        if not secret:
            raise RuntimeError("JWT_SECRET_KEY must be configured.")
        return cls(
            secret=str(secret),
            algorithm=str(config.get("JWT_ALGORITHM", "HS256")),
            access_expires=timedelta(minutes=int(config.get("JWT_ACCESS_EXPIRATION_MINUTES", 30))),
            refresh_expires=timedelta(days=int(config.get("JWT_REFRESH_EXPIRATION_DAYS", 30))),
            reset_password_expires=timedelta(
                minutes=int(config.get("JWT_RESET_PASSWORD_EXPIRATION_MINUTES", 10))
            ),
            verify_email_expires=timedelta(
                minutes=int(config.get("JWT_VERIFY_EMAIL_EXPIRATION_MINUTES", 10))
            ),
        )

    def ttl_for(self, kind: TokenKind) -> timedelta:
        """Return the configured lifetime for ``kind``."""
        return {
            TokenKind.ACCESS: self.access_expires,
            TokenKind.REFRESH: self.refresh_expires,
            TokenKind.RESET_PASSWORD: self.reset_password_expires,
            TokenKind.VERIFY_EMAIL: self.verify_email_expires,
        }[kind]


class TokenCodec(Protocol):
    """Port for issuing and parsing signed, expiring tokens. No external state."""

    def issue(self, subject: str | int, kind: TokenKind, ttl: timedelta) -> Token:
        """Issue a new unguessable token expiring ``ttl`` from now."""
        ...

    def parse(self, value: str, expected_kind: TokenKind) -> TokenClaims:
        """
        Decode and verify ``value``.

        :raises MalformedToken: Undecodable value or bad signature.
        :raises ExpiredToken: Past its expiry.
        :raises WrongKind: Issued for another purpose.
        """
        ...
