"""
Unit tests for RedisTokenStore using fakeredis.

They use fakeredis.FakeRedis so they run entirely in-memory and exercise the
WATCH/MULTI/EXEC paths of save, consume and rotate.
"""

from __future__ import annotations

import hashlib
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime, timedelta

import fakeredis
import pytest
from sessionauth.infra.redis.redis_token_store import RedisTokenStore
from sessionauth.services._shared.errors import DuplicateToken
from sessionauth.services._shared.ports import Token, TokenKind


def _now() -> datetime:
    """Return a timezone-aware UTC "now"."""
    return datetime.now(UTC)


def _token(
    value: str,
    subject: str = "u1",
    kind: TokenKind = TokenKind.REFRESH,
    seconds: int = 300,
) -> Token:
    return Token(value=value, subject=subject, kind=kind, expires_at=_now() + timedelta(seconds=seconds))


@pytest.fixture
def fake_redis():
    """Provide a fresh FakeRedis instance for each test."""
    r = fakeredis.FakeRedis()
    r.flushall()
    return r


@pytest.fixture
def store(fake_redis):
    return RedisTokenStore(r=fake_redis)


def test_save_and_find_active(store):
    store.save(_token("rt-1"))

    found = store.find_active("rt-1", TokenKind.REFRESH)

    assert found is not None
    assert found.subject == "u1"
    assert found.kind is TokenKind.REFRESH
    assert found.revoked is False
    assert found.expires_at > _now()


def test_raw_value_is_never_stored(store, fake_redis):
    store.save(_token("secret-token-value"))

    digest = hashlib.sha256(b"secret-token-value").hexdigest()
    keys = {k.decode() for k in fake_redis.keys("*")}
    assert f"tok:{digest}" in keys
    assert not any("secret-token-value" in k for k in keys)
    assert fake_redis.ttl(f"tok:{digest}") > 0


def test_save_duplicate_raises(store):
    store.save(_token("rt-1"))

    with pytest.raises(DuplicateToken):
        store.save(_token("rt-1", subject="u2"))


def test_wrong_kind_is_not_active(store):
    store.save(_token("rt-1"))

    assert store.find_active("rt-1", TokenKind.RESET_PASSWORD) is None


def test_expired_token_is_not_active(store):
    store.save(_token("rt-old", seconds=-5))

    assert store.find_active("rt-old", TokenKind.REFRESH) is None


def test_invalidate_is_idempotent(store):
    store.save(_token("rt-1"))

    store.invalidate("rt-1")
    store.invalidate("rt-1")
    store.invalidate("never-saved")

    assert store.find_active("rt-1", TokenKind.REFRESH) is None


def test_invalidate_all_of_kind_for_subject(store):
    store.save(_token("p1", kind=TokenKind.RESET_PASSWORD))
    store.save(_token("p2", kind=TokenKind.RESET_PASSWORD))
    store.save(_token("rt", kind=TokenKind.REFRESH))
    store.save(_token("p3", subject="u2", kind=TokenKind.RESET_PASSWORD))

    removed = store.invalidate_all_of_kind_for_subject("u1", TokenKind.RESET_PASSWORD)

    assert removed == 2
    assert store.find_active("p1", TokenKind.RESET_PASSWORD) is None
    assert store.find_active("rt", TokenKind.REFRESH) is not None
    assert store.find_active("p3", TokenKind.RESET_PASSWORD) is not None
    assert store.invalidate_all_of_kind_for_subject("u1", TokenKind.RESET_PASSWORD) == 0


def test_consume_once(store):
    store.save(_token("rt-1"))

    first = store.consume("rt-1", TokenKind.REFRESH)
    second = store.consume("rt-1", TokenKind.REFRESH)

    assert first is not None and first.subject == "u1"
    assert second is None


def test_consume_with_sweep(store):
    store.save(_token("p1", kind=TokenKind.RESET_PASSWORD))
    store.save(_token("p2", kind=TokenKind.RESET_PASSWORD))
    store.save(_token("rt", kind=TokenKind.REFRESH))

    assert store.consume("p1", TokenKind.RESET_PASSWORD, sweep_subject=True) is not None
    assert store.find_active("p2", TokenKind.RESET_PASSWORD) is None
    assert store.find_active("rt", TokenKind.REFRESH) is not None


def test_rotate_success(store):
    store.save(_token("old"))

    assert store.rotate("old", TokenKind.REFRESH, [_token("new")]) is True
    assert store.find_active("old", TokenKind.REFRESH) is None
    assert store.find_active("new", TokenKind.REFRESH) is not None


def test_rotate_reused_token_fails(store):
    store.save(_token("old"))
    assert store.rotate("old", TokenKind.REFRESH, [_token("n1")]) is True

    assert store.rotate("old", TokenKind.REFRESH, [_token("n2")]) is False
    assert store.find_active("n2", TokenKind.REFRESH) is None


def test_rotate_not_found(store):
    assert store.rotate("missing", TokenKind.REFRESH, [_token("new")]) is False


def test_rotate_collision_keeps_old(store):
    store.save(_token("old"))
    store.save(_token("taken"))

    with pytest.raises(DuplicateToken):
        store.rotate("old", TokenKind.REFRESH, [_token("taken")])

    assert store.find_active("old", TokenKind.REFRESH) is not None


def test_rotated_token_joins_subject_index(store):
    store.save(_token("old"))
    store.rotate("old", TokenKind.REFRESH, [_token("new")])

    assert store.invalidate_all_of_kind_for_subject("u1", TokenKind.REFRESH) == 1
    assert store.find_active("new", TokenKind.REFRESH) is None


def _digest(value: str) -> str:
    return hashlib.sha256(value.encode()).hexdigest()


def _members(r, subject: str = "u1", kind: TokenKind = TokenKind.REFRESH) -> set[str]:
    return {m.decode() for m in r.smembers(f"tok:s:{subject}:{kind.value}")}


# -------------------- subject index lifetime --------------------


def test_index_expires_with_longest_lived_member(store, fake_redis):
    key_s = "tok:s:u1:refresh"

    store.save(_token("short", seconds=300))
    assert 0 < fake_redis.ttl(key_s) <= 300

    store.save(_token("long", seconds=900))
    assert fake_redis.ttl(key_s) > 300

    store.save(_token("shorter", seconds=60))
    assert fake_redis.ttl(key_s) > 300


def test_index_disappears_once_its_tokens_expire(store, fake_redis):
    for i in range(50):
        store.save(_token(f"rt-{i}", seconds=1))

    time.sleep(2.1)

    assert all(store.find_active(f"rt-{i}", TokenKind.REFRESH) is None for i in range(50))
    assert fake_redis.scard("tok:s:u1:refresh") == 0


def test_save_prunes_digests_of_vanished_tokens(store, fake_redis):
    store.save(_token("gone"))
    store.save(_token("kept"))
    fake_redis.delete(f"tok:{_digest('gone')}")

    store.save(_token("new"))

    assert _members(fake_redis) == {_digest("kept"), _digest("new")}


def test_consume_prunes_digests_of_vanished_tokens(store, fake_redis):
    store.save(_token("gone"))
    store.save(_token("live"))
    fake_redis.delete(f"tok:{_digest('gone')}")

    assert store.consume("live", TokenKind.REFRESH) is not None

    assert _members(fake_redis) == set()


def test_rotate_prunes_and_extends_index(store, fake_redis):
    store.save(_token("gone", seconds=60))
    store.save(_token("old", seconds=60))
    fake_redis.delete(f"tok:{_digest('gone')}")

    assert store.rotate("old", TokenKind.REFRESH, [_token("new", seconds=900)]) is True

    assert _members(fake_redis) == {_digest("new")}
    assert fake_redis.ttl("tok:s:u1:refresh") > 60


def test_resaving_an_expired_value_keeps_its_index_entry(store, fake_redis):
    store.save(_token("same"))
    fake_redis.delete(f"tok:{_digest('same')}")

    store.save(_token("same"))

    assert _members(fake_redis) == {_digest("same")}
    assert store.invalidate_all_of_kind_for_subject("u1", TokenKind.REFRESH) == 1


# -------------------- concurrency --------------------

RACERS = 8


def _race(fn, args_list):
    """Run ``fn`` once per args tuple, released together by a barrier."""
    barrier = threading.Barrier(len(args_list))

    def run(args):
        barrier.wait()
        return fn(*args)

    with ThreadPoolExecutor(max_workers=len(args_list)) as pool:
        return list(pool.map(run, args_list))


def test_concurrent_rotate_has_a_single_winner(store, fake_redis):
    store.save(_token("old"))

    results = _race(
        store.rotate,
        [("old", TokenKind.REFRESH, [_token(f"new-{i}")]) for i in range(RACERS)],
    )

    assert results.count(True) == 1
    winner = results.index(True)
    live = [i for i in range(RACERS) if store.find_active(f"new-{i}", TokenKind.REFRESH)]
    assert live == [winner]
    assert _members(fake_redis) == {_digest(f"new-{winner}")}


def test_concurrent_sweeping_consume_on_siblings_yields_one_token(store):
    store.save(_token("p1", kind=TokenKind.RESET_PASSWORD))
    store.save(_token("p2", kind=TokenKind.RESET_PASSWORD))

    results = _race(
        lambda value: store.consume(value, TokenKind.RESET_PASSWORD, sweep_subject=True),
        [("p1",), ("p2",)],
    )

    assert sum(1 for token in results if token is not None) == 1
    assert store.find_active("p1", TokenKind.RESET_PASSWORD) is None
    assert store.find_active("p2", TokenKind.RESET_PASSWORD) is None


def test_concurrent_consume_of_one_token_yields_it_once(store):
    store.save(_token("rt-1"))

    results = _race(
        lambda value: store.consume(value, TokenKind.REFRESH), [("rt-1",)] * RACERS
    )

    assert sum(1 for token in results if token is not None) == 1


def test_saves_racing_bulk_invalidation_stay_indexed(store, fake_redis):
    store.save(_token("existing"))

    def work(i):
        if i == 0:
            return store.invalidate_all_of_kind_for_subject("u1", TokenKind.REFRESH)
        store.save(_token(f"late-{i}"))
        return None

    _race(work, [(i,) for i in range(RACERS)])

    indexed = _members(fake_redis)
    for i in range(1, RACERS):
        if store.find_active(f"late-{i}", TokenKind.REFRESH) is not None:
            assert _digest(f"late-{i}") in indexed
    assert store.find_active("existing", TokenKind.REFRESH) is None
