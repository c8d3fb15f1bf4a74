"""Service layer public API.

Re-exports
----------
- Base primitives (from ``sessionauth.services._shared.base``)
    * :class:`BaseService`
    * :class:`ServiceContext`

- Session service (from ``sessionauth.services.session``)
    * :class:`SessionService`
    * DTOs: :class:`LoginIn`, :class:`LogoutIn`, :class:`RefreshIn`,
      :class:`ResetPasswordIn`, :class:`OtpRequestIn`, :class:`OtpVerifyIn`,
      :class:`TokenPair`
"""

from __future__ import annotations

from ._shared.base import BaseService, ServiceContext
from .session import (
    LoginIn,
    LogoutIn,
    OtpRequestIn,
    OtpVerifyIn,
    RefreshIn,
    ResetPasswordIn,
    SessionService,
    TokenPair,
)

__all__ = [
    "BaseService",
    "ServiceContext",
    "SessionService",
    "LoginIn",
    "LogoutIn",
    "RefreshIn",
    "ResetPasswordIn",
    "OtpRequestIn",
    "OtpVerifyIn",
    "TokenPair",
]
