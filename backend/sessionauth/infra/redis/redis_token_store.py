# comments in English; reST docstrings
from __future__ import annotations

import hashlib
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

import redis  # type: ignore[import-untyped]

from sessionauth.services._shared.errors import DuplicateToken
from sessionauth.services._shared.ports import Token, TokenKind, TokenStore


def _s(raw: Any, default: str = "") -> str:
    """Normalize a Redis reply (bytes or str) to ``str``."""
    if raw is None:
        return default
    if isinstance(raw, bytes | bytearray):
        return raw.decode()
    return str(raw)


@dataclass(slots=True)
class RedisTokenStore(TokenStore):
    """
    Redis-backed token store.

    Layout
    ------
    - ``tok:{sha256(value)}``: hash with ``subject``, ``kind``, ``expires_at``,
      ``revoked``; the key expires with the token.
    - ``tok:s:{subject}:{kind}``: set of digests, used for bulk invalidation.
      It expires with its longest-lived member; digests whose hash is gone
      are pruned whenever the set is written.

    Raw token values are never written to Redis. Multi-key invariants use
    WATCH/MULTI/EXEC and retry on :class:`redis.WatchError`.

    :param r: A Redis client (already connected).
    """

    r: redis.Redis

    # -------------------- helpers --------------------

    @staticmethod
    def _digest(value: str) -> str:
        return hashlib.sha256(value.encode()).hexdigest()

    @classmethod
    def _k(cls, value: str) -> str:
        return f"tok:{cls._digest(value)}"

    @staticmethod
    def _ks(subject: str, kind: TokenKind) -> str:
        return f"tok:s:{subject}:{kind.value}"

    @staticmethod
    def _to_ts(dt: datetime) -> int:
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        return int(dt.timestamp())

    @staticmethod
    def _now_ts() -> int:
        return int(datetime.now(UTC).timestamp())

    def _record(self, token: Token) -> dict[str, str]:
        return {
            "subject": token.subject,
            "kind": token.kind.value,
            "expires_at": str(self._to_ts(token.expires_at)),
            "revoked": "1" if token.revoked else "0",
        }

    def _hydrate(self, value: str, h: Mapping[Any, Any]) -> Token | None:
        if not h:
            return None
        fields = {_s(k): _s(v) for k, v in h.items()}
        kind = TokenKind.from_claim(fields.get("kind"))
        if kind is None:
            return None
        return Token(
            value=value,
            subject=fields.get("subject", ""),
            kind=kind,
            expires_at=datetime.fromtimestamp(int(fields.get("expires_at", "0")), tz=UTC),
            revoked=fields.get("revoked", "0") == "1",
        )

    def _active(self, token: Token | None, kind: TokenKind) -> bool:
        return (
            token is not None
            and token.kind is kind
            and not token.revoked
            and self._to_ts(token.expires_at) > self._now_ts()
        )

    def _survey(self, p: Any, key_s: str) -> tuple[list[str], int]:
        """
        Inspect the index at ``key_s``.

        :returns: Digests whose token hash is gone, and the latest expiry
            (epoch seconds) among the members still stored, ``0`` if none.
        """
        stale: list[str] = []
        latest = 0
        now = self._now_ts()
        for member in p.smembers(key_s):
            digest = _s(member)
            remaining = int(p.ttl(f"tok:{digest}"))
            if remaining == -2:
                stale.append(digest)
            elif remaining > 0:
                latest = max(latest, now + remaining)
        return stale, latest

    def _stage(self, p: Any, token: Token) -> None:
        key = self._k(token.value)
        p.hset(key, mapping=self._record(token))
        p.expireat(key, self._to_ts(token.expires_at))
        p.sadd(self._ks(token.subject, token.kind), self._digest(token.value))

    def _plan_indexes(self, p: Any, tokens: Sequence[Token]) -> dict[str, tuple[list[str], int]]:
        """Stale digests and new expiry for every index ``tokens`` will join."""
        staged = {self._digest(t.value) for t in tokens}
        plans: dict[str, tuple[list[str], int]] = {}
        for token in tokens:
            key_s = self._ks(token.subject, token.kind)
            stale, latest = plans.get(key_s) or self._survey(p, key_s)
            stale = [d for d in stale if d not in staged]
            plans[key_s] = (stale, max(latest, self._to_ts(token.expires_at)))
        return plans

    @staticmethod
    def _apply_indexes(p: Any, plans: Mapping[str, tuple[list[str], int]]) -> None:
        # runs after the SADDs: EXPIREAT on a missing key is a no-op
        for key_s, (stale, deadline) in plans.items():
            if stale:
                p.srem(key_s, *stale)
            p.expireat(key_s, deadline)

    # -------------------- API ------------------------

    def save(self, token: Token) -> None:
        key = self._k(token.value)
        key_s = self._ks(token.subject, token.kind)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key, key_s)
                    if p.exists(key):
                        p.unwatch()
                        raise DuplicateToken("Token value already stored.")
                    plans = self._plan_indexes(p, [token])
                    p.multi()
                    self._stage(p, token)
                    self._apply_indexes(p, plans)
                    p.execute()
                return
            except redis.WatchError:
                continue

    def find_active(self, value: str, kind: TokenKind) -> Token | None:
        token = self._hydrate(value, self.r.hgetall(self._k(value)))
        return token if self._active(token, kind) else None

    def invalidate(self, value: str) -> None:
        key = self._k(value)
        h = self.r.hgetall(key)
        token = self._hydrate(value, h)
        with self.r.pipeline(transaction=True) as p:
            p.delete(key)
            if token is not None:
                p.srem(self._ks(token.subject, token.kind), self._digest(value))
            p.execute()

    def invalidate_all_of_kind_for_subject(self, subject: str, kind: TokenKind) -> int:
        key_s = self._ks(str(subject), kind)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key_s)
                    digests = [_s(member) for member in p.smembers(key_s)]
                    if not digests:
                        p.unwatch()
                        return 0
                    p.multi()
                    for d in digests:
                        p.delete(f"tok:{d}")
                    # only what was read; a concurrent save aborts the EXEC
                    p.srem(key_s, *digests)
                    out = p.execute()
                # Only count records that still existed (expired keys vanish on their own)
                return sum(int(n) for n in out[: len(digests)])
            except redis.WatchError:
                continue

    def consume(
        self, value: str, kind: TokenKind, *, sweep_subject: bool = False
    ) -> Token | None:
        key = self._k(value)
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(key)
                    token = self._hydrate(value, p.hgetall(key))
                    if token is None or not self._active(token, kind):
                        p.unwatch()
                        return None

                    key_s = self._ks(token.subject, kind)
                    p.watch(key_s)
                    if sweep_subject:
                        siblings, stale = [_s(m) for m in p.smembers(key_s)], []
                    else:
                        siblings, stale = [], self._survey(p, key_s)[0]

                    p.multi()
                    p.delete(key)
                    if sweep_subject:
                        for d in siblings:
                            p.delete(f"tok:{d}")
                        p.delete(key_s)
                    else:
                        p.srem(key_s, self._digest(value), *stale)
                    p.execute()
                return token
            except redis.WatchError:
                # Someone touched the token or its index; re-read and decide again
                continue

    def rotate(self, old_value: str, kind: TokenKind, replacements: Sequence[Token]) -> bool:
        k_old = self._k(old_value)
        k_new = [self._k(t.value) for t in replacements]
        k_idx = {self._ks(t.subject, t.kind) for t in replacements}
        while True:
            try:
                with self.r.pipeline() as p:
                    p.watch(k_old, *k_new, *k_idx)
                    old = self._hydrate(old_value, p.hgetall(k_old))
                    if old is None or not self._active(old, kind):
                        p.unwatch()
                        return False
                    for key in k_new:
                        if p.exists(key):
                            p.unwatch()
                            raise DuplicateToken("Replacement token value already stored.")
                    plans = self._plan_indexes(p, replacements)

                    p.multi()
                    # Persist the replacements first, then drop the old token
                    for new in replacements:
                        self._stage(p, new)
                    p.delete(k_old)
                    p.srem(self._ks(old.subject, kind), self._digest(old_value))
                    self._apply_indexes(p, plans)
                    p.execute()
                return True
            except redis.WatchError:
                continue
