# sessionauth/services/session/dto.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sessionauth.services._shared.ports import Token

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param identity: Email, username or phone number.
    :type identity: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    identity: str
    password: str


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    """

    refresh_token: str


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout.

    :param refresh_token: Encoded refresh JWT to revoke.
    :type refresh_token: str
    """

    refresh_token: str


@dataclass(frozen=True, slots=True)
class ResetPasswordIn:
    """
    Input DTO for password reset.

    :param token: Encoded reset-password JWT.
    :type token: str
    :param new_password: Raw new password.
    :type new_password: str
    """

    token: str
    new_password: str


@dataclass(frozen=True, slots=True)
class OtpRequestIn:
    phone_number: str


@dataclass(frozen=True, slots=True)
class OtpVerifyIn:
    phone_number: str
    code: str


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPair:
    """
    Access and refresh tokens issued together.

    :param access: Stateless ACCESS token.
    :type access: Token
    :param refresh: REFRESH token, already persisted in the token store.
    :type refresh: Token
    """

    access: Token
    refresh: Token

    def to_dict(self) -> dict[str, Any]:
        """Serialize as ``{"access": {"token", "expires"}, "refresh": {...}}``."""
        return {
            "access": {
                "token": self.access.value,
                "expires": self.access.expires_at.isoformat(),
            },
            "refresh": {
                "token": self.refresh.value,
                "expires": self.refresh.expires_at.isoformat(),
            },
        }
