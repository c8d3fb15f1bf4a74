"""
sessionauth.services._shared.ports
==================================

Collection of *ports* (hexagonal interfaces) that define the contracts the
session service depends on.

Modules
-------
- :mod:`token_codec`:
    Defines :class:`~.TokenCodec` plus the token value types
    (:class:`~.Token`, :class:`~.TokenClaims`, :class:`~.TokenKind`,
    :class:`~.TokenSettings`).

- :mod:`token_store`:
    Defines :class:`~.TokenStore` (atomic consume/rotate) and
    :class:`~.InMemoryTokenStore`.

- :mod:`verification_gateway`:
    Defines :class:`~.VerificationGateway`, the provider result types and
    :class:`~.StubVerificationGateway`.

- :mod:`user_directory`:
    Defines :class:`~.UserDirectory` and :class:`~.InMemoryUserDirectory`.

Design Notes
------------
Concrete adapters (PyJWT, Redis, Twilio Verify, SQLAlchemy) live under
``sessionauth.infra`` and implement these interfaces.
"""

from __future__ import annotations

from .token_codec import (
    Token,
    TokenClaims,
    TokenCodec,
    TokenKind,
    TokenSettings,
)
from .token_store import InMemoryTokenStore, TokenStore
from .user_directory import (
    DirectoryUser,
    InMemoryUser,
    InMemoryUserDirectory,
    UserDirectory,
)
from .verification_gateway import (
    ProviderReceipt,
    ProviderVerificationResult,
    StubVerificationGateway,
    VerificationGateway,
)

__all__ = [
    "Token",
    "TokenClaims",
    "TokenCodec",
    "TokenKind",
    "TokenSettings",
    "TokenStore",
    "InMemoryTokenStore",
    "DirectoryUser",
    "UserDirectory",
    "InMemoryUser",
    "InMemoryUserDirectory",
    "ProviderReceipt",
    "ProviderVerificationResult",
    "VerificationGateway",
    "StubVerificationGateway",
]
