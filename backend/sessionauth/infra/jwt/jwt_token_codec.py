# sessionauth/infra/jwt/jwt_token_codec.py
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, cast
from uuid import uuid4

import jwt

from sessionauth.services._shared.errors import ExpiredToken, MalformedToken, WrongKind
from sessionauth.services._shared.ports import Token, TokenClaims, TokenCodec, TokenKind, TokenSettings

REQUIRED_CLAIMS = ["exp", "iat", "sub", "type", "jti"]


@dataclass(frozen=True, slots=True)
class JWTTokenCodec(TokenCodec):
    """
    HS256 JWT codec built on PyJWT.

    The claim layout (``sub``/``type``/``jti``/``fresh``) matches what
    Flask-JWT-Extended expects, so ACCESS tokens issued here are accepted by
    ``@jwt_required()`` when the app shares ``JWT_SECRET_KEY``.

    :param settings: Explicit signing configuration; no global state is read.
    """

    settings: TokenSettings

    def issue(self, subject: str | int, kind: TokenKind, ttl: timedelta) -> Token:
        if ttl <= timedelta(0):
            raise ValueError("Token ttl must be positive.")

        issued_at = int(datetime.now(UTC).timestamp())
        expires_at = issued_at + math.ceil(ttl.total_seconds())
        claims: dict[str, Any] = {
            "sub": str(subject),
            "type": kind.value,
            # random jti keeps values unique even within the same second
            "jti": uuid4().hex,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": expires_at,
        }
        if kind is TokenKind.ACCESS:
            claims["fresh"] = False

        value = jwt.encode(claims, self.settings.secret, algorithm=self.settings.algorithm)
        return Token(
            value=value,
            subject=str(subject),
            kind=kind,
            expires_at=datetime.fromtimestamp(expires_at, tz=UTC),
        )

    def parse(self, value: str, expected_kind: TokenKind) -> TokenClaims:
        if not isinstance(value, str) or not value:
            raise MalformedToken("Token is empty.")
        try:
            payload = cast(
                dict[str, Any],
                jwt.decode(
                    value,
                    self.settings.secret,
                    algorithms=[self.settings.algorithm],
                    options={"require": REQUIRED_CLAIMS},
                ),
            )
        except jwt.ExpiredSignatureError as exc:
            raise ExpiredToken("Token expired.") from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedToken("Token could not be verified.") from exc

        kind = TokenKind.from_claim(payload.get("type"))
        if kind is None:
            raise MalformedToken("Token carries an unknown type claim.")
        if kind is not expected_kind:
            raise WrongKind(expected_kind.value, kind.value)

        return TokenClaims(
            subject=str(payload["sub"]),
            kind=kind,
            jti=str(payload["jti"]),
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=UTC),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=UTC),
        )
