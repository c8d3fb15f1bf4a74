from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Protocol

from sessionauth.services._shared.errors import DuplicateToken

from .token_codec import Token, TokenKind


class TokenStore(Protocol):
    """
    Stateful store for issued tokens.

    ``consume`` and ``rotate`` MUST be atomic: of two concurrent calls on the
    same token value, at most one observes the token as active.
    """

    def save(self, token: Token) -> None:
        """
        Persist a newly issued token.

        :raises DuplicateToken: If a token with the same value is already stored.
        """

    def find_active(self, value: str, kind: TokenKind) -> Token | None:
        """
        Return the token if stored, of ``kind``, not revoked and not expired.

        Expired and absent tokens are indistinguishable (both ``None``).
        """

    def invalidate(self, value: str) -> None:
        """Delete a token. Idempotent: unknown values are a no-op."""

    def invalidate_all_of_kind_for_subject(self, subject: str, kind: TokenKind) -> int:
        """
        Delete every ``kind`` token belonging to ``subject``.

        :returns: Number of records removed.
        """

    def consume(
        self, value: str, kind: TokenKind, *, sweep_subject: bool = False
    ) -> Token | None:
        """
        Atomically check that a token is active and delete it.

        :param sweep_subject: Also delete every other ``kind`` token of the same
            subject in the same atomic step.
        :returns: The consumed token, or ``None`` if it was not active.
        """

    def rotate(self, old_value: str, kind: TokenKind, replacements: Sequence[Token]) -> bool:
        """
        Atomically persist ``replacements`` and delete ``old_value``.

        Nothing is written unless ``old_value`` is active at commit time.

        :returns: ``True`` when the rotation happened.
        """


class InMemoryTokenStore(TokenStore):
    """
    In-memory token store with atomic consume/rotate.

    .. note::
       Uses a threading lock to provide atomicity within one process.
    """

    def __init__(self) -> None:
        self._by_value: dict[str, Token] = {}
        self._by_subject: dict[tuple[str, TokenKind], set[str]] = {}
        self._lock = threading.Lock()

    # ------------------------- helpers -------------------------

    @staticmethod
    def _now() -> datetime:
        return datetime.now(UTC)

    def _is_active(self, token: Token | None, kind: TokenKind) -> bool:
        return (
            token is not None
            and token.kind is kind
            and not token.revoked
            and not token.is_expired(self._now())
        )

    def _put(self, token: Token) -> None:
        self._by_value[token.value] = token
        self._by_subject.setdefault((token.subject, token.kind), set()).add(token.value)

    def _drop(self, value: str) -> bool:
        token = self._by_value.pop(value, None)
        if token is None:
            return False
        index = self._by_subject.get((token.subject, token.kind))
        if index is not None:
            index.discard(value)
            if not index:
                del self._by_subject[(token.subject, token.kind)]
        return True

    def _drop_family(self, subject: str, kind: TokenKind) -> int:
        values = list(self._by_subject.get((subject, kind), ()))
        return sum(1 for value in values if self._drop(value))

    def _sweep_expired(self) -> int:
        now = self._now()
        expired = [v for v, t in self._by_value.items() if t.is_expired(now)]
        for value in expired:
            self._drop(value)
        return len(expired)

    # -------------------------- API ----------------------------

    def save(self, token: Token) -> None:
        """Persist ``token``; tokens already past their expiry are evicted first."""
        with self._lock:
            self._sweep_expired()
            if token.value in self._by_value:
                raise DuplicateToken("Token value already stored.")
            self._put(token)

    def find_active(self, value: str, kind: TokenKind) -> Token | None:
        with self._lock:
            token = self._by_value.get(value)
            return token if self._is_active(token, kind) else None

    def invalidate(self, value: str) -> None:
        with self._lock:
            self._drop(value)

    def invalidate_all_of_kind_for_subject(self, subject: str, kind: TokenKind) -> int:
        with self._lock:
            return self._drop_family(str(subject), kind)

    def consume(
        self, value: str, kind: TokenKind, *, sweep_subject: bool = False
    ) -> Token | None:
        with self._lock:
            token = self._by_value.get(value)
            if token is None or not self._is_active(token, kind):
                return None
            self._drop(value)
            if sweep_subject:
                self._drop_family(token.subject, kind)
            return token

    def rotate(self, old_value: str, kind: TokenKind, replacements: Sequence[Token]) -> bool:
        with self._lock:
            if not self._is_active(self._by_value.get(old_value), kind):
                return False
            if any(new.value in self._by_value for new in replacements):
                raise DuplicateToken("Replacement token value already stored.")
            # new tokens land before the old one disappears
            for new in replacements:
                self._put(new)
            self._drop(old_value)
            return True

    # ------------------------ inspection ------------------------

    def list_subject_tokens(self, subject: str, kind: TokenKind) -> Iterable[Token]:
        """Yield stored ``kind`` tokens of ``subject`` (expired ones included)."""
        with self._lock:
            values = sorted(self._by_subject.get((str(subject), kind), ()))
            tokens = [self._by_value[v] for v in values if v in self._by_value]
        yield from tokens
