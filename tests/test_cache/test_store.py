"""Tests for CacheStore."""

from __future__ import annotations

import threading
from types import SimpleNamespace

import pytest

from mxcache.cache import CacheStore
from mxcache.models import FOREVER, ONE_YEAR, CacheLevel, KeyPolicy


@pytest.fixture()
def store(clock) -> CacheStore:
    return CacheStore(clock=clock)


class Counter:
    """Compute function counting its invocations."""

    def __init__(self, *values) -> None:
        self.values = list(values)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        return self.values[min(self.calls, len(self.values)) - 1]


# ---------------------------------------------------------------------------
# read / write
# ---------------------------------------------------------------------------


class TestReadWrite:
    def test_write_returns_value(self, store: CacheStore) -> None:
        assert store.write("k", {"a": 1}) == {"a": 1}

    def test_read_after_write(self, store: CacheStore) -> None:
        store.write("k", "v")
        assert store.read("k") == "v"
        assert store.exists("k")
        assert store.valid("k")

    def test_read_unknown_returns_default(self, store: CacheStore) -> None:
        assert store.read("missing") is None
        assert store.read("missing", default="d") == "d"

    def test_rewrite_replaces_entry(self, store: CacheStore, clock) -> None:
        store.write("k", {"a": 1}, ttl=10)
        clock.advance(5)
        store.write("k", {"b": 2}, ttl=10)
        entry = store.entry("k")
        assert entry.value == {"b": 2}
        assert entry.written_at == clock.now
        assert entry.expires_at == clock.now + 10

    def test_read_returns_expired_value(self, store: CacheStore, clock) -> None:
        store.write("k", "stale", ttl=1)
        clock.advance(2)
        assert not store.valid("k")
        assert store.read("k") == "stale"


class TestTTL:
    def test_explicit_ttl(self, store: CacheStore, clock) -> None:
        store.write("k", "v", ttl=60)
        assert store.entry("k").expires_at == clock.now + 60

    def test_policy_ttl(self, clock) -> None:
        store = CacheStore({"k": KeyPolicy(ttl=5)}, clock=clock)
        store.write("k", "v")
        assert store.entry("k").expires_at == clock.now + 5

    def test_default_ttl_is_one_year(self, store: CacheStore, clock) -> None:
        store.write("k", "v")
        assert store.entry("k").expires_at == clock.now + ONE_YEAR

    def test_forever_never_expires(self, store: CacheStore, clock) -> None:
        store.write("k", "v", ttl=FOREVER)
        assert store.entry("k").expires_at is None
        clock.advance(10 * ONE_YEAR)
        assert store.valid("k")

    def test_valid_until_deadline_then_expired(self, store: CacheStore, clock) -> None:
        store.write("k", "v", ttl=60)
        clock.advance(60)
        assert store.valid("k")
        clock.advance(1)
        assert not store.valid("k")
        assert store.exists("k")


# ---------------------------------------------------------------------------
# fetch_or_compute
# ---------------------------------------------------------------------------


class TestFetchOrCompute:
    def test_miss_computes_and_stores(self, store: CacheStore) -> None:
        compute = Counter(100)
        assert store.fetch_or_compute("k", compute) == 100
        assert compute.calls == 1
        assert store.read("k") == 100

    def test_hits_never_recompute(self, store: CacheStore, clock) -> None:
        compute = Counter(100, 200)
        for _ in range(5):
            assert store.fetch_or_compute("k", compute, ttl=60) == 100
            clock.advance(10)
        assert compute.calls == 1

    def test_recomputes_after_expiry(self, store: CacheStore, clock) -> None:
        compute = Counter(100, 150)
        store.fetch_or_compute("k", compute, ttl=60)
        clock.advance(61)
        assert store.fetch_or_compute("k", compute, ttl=60) == 150
        assert compute.calls == 2
        assert store.read("k") == 150

    def test_compute_error_propagates_and_leaves_store(self, store: CacheStore, clock) -> None:
        store.write("k", "old", ttl=1)
        clock.advance(2)

        def boom():
            raise RuntimeError("network down")

        with pytest.raises(RuntimeError, match="network down"):
            store.fetch_or_compute("k", boom)
        assert store.read("k") == "old"
        assert not store.valid("k")

    def test_compute_error_on_unknown_key_stores_nothing(self, store: CacheStore) -> None:
        def boom():
            raise KeyError("nope")

        with pytest.raises(KeyError):
            store.fetch_or_compute("k", boom)
        assert not store.exists("k")

    def test_falsy_values_are_cached(self, store: CacheStore) -> None:
        compute = Counter(None)
        store.fetch_or_compute("k", compute)
        store.fetch_or_compute("k", compute)
        assert compute.calls == 1

    def test_concurrent_misses_compute_once(self, store: CacheStore) -> None:
        started = threading.Event()
        release = threading.Event()
        calls = []

        def slow():
            calls.append(1)
            started.set()
            release.wait(5)
            return "value"

        results = []
        first = threading.Thread(target=lambda: results.append(store.fetch_or_compute("k", slow)))
        first.start()
        assert started.wait(5)
        second = threading.Thread(target=lambda: results.append(store.fetch_or_compute("k", slow)))
        second.start()
        release.set()
        first.join(5)
        second.join(5)

        assert results == ["value", "value"]
        assert len(calls) == 1

    def test_clear_during_compute_keeps_single_flight(self, store: CacheStore) -> None:
        started = threading.Event()
        release = threading.Event()
        calls = []
        active = []
        overlap = []

        def slow():
            calls.append(1)
            active.append(1)
            overlap.append(len(active))
            started.set()
            release.wait(5)
            active.pop()
            return f"value-{len(calls)}"

        results = []
        first = threading.Thread(target=lambda: results.append(store.fetch_or_compute("k", slow)))
        first.start()
        assert started.wait(5)
        store.clear()
        second = threading.Thread(target=lambda: results.append(store.fetch_or_compute("k", slow)))
        second.start()
        second.join(0.2)
        assert len(calls) == 1
        release.set()
        first.join(5)
        second.join(5)

        assert max(overlap) == 1
        assert sorted(results) == ["value-1", "value-2"]
        assert store.read("k") == "value-2"

    def test_result_computed_across_clear_is_not_stored(self, store: CacheStore) -> None:
        def compute():
            store.clear()
            return "stale"

        assert store.fetch_or_compute("k", compute) == "stale"
        assert "k" not in store

    def test_key_locks_are_released(self, store: CacheStore) -> None:
        for i in range(100):
            store.fetch_or_compute(f"k{i}", lambda: i)
            store.delete(f"k{i}")
        assert len(store._key_locks) == 0


# ---------------------------------------------------------------------------
# Level gating
# ---------------------------------------------------------------------------


class TestLevelGating:
    def _store(self, clock, level: str) -> CacheStore:
        return CacheStore(
            {"secret": KeyPolicy(level=CacheLevel.ALL), "profile:*": KeyPolicy(level="some")},
            context=SimpleNamespace(cache_level=level),
            clock=clock,
        )

    def test_write_below_minimum_is_noop_but_returns_value(self, clock) -> None:
        store = self._store(clock, "some")
        assert store.write("secret", 42) == 42
        assert not store.exists("secret")

    def test_write_at_minimum_persists(self, clock) -> None:
        store = self._store(clock, "some")
        store.write("profile:@a:x", {"name": "A"})
        assert store.exists("profile:@a:x")

    def test_unconfigured_keys_cache_at_level_none(self, clock) -> None:
        store = self._store(clock, "none")
        store.write("other", 1)
        assert store.exists("other")

    def test_explicit_level_overrides_context(self, clock) -> None:
        store = self._store(clock, "some")
        store.write("secret", 42, level="all")
        assert store.exists("secret")

    def test_explicit_level_can_lower(self, clock) -> None:
        store = self._store(clock, "all")
        store.write("secret", 42, level=CacheLevel.NONE)
        assert not store.exists("secret")

    def test_fetch_below_minimum_always_recomputes(self, clock) -> None:
        store = self._store(clock, "some")
        compute = Counter(1, 2, 3)
        assert [store.fetch_or_compute("secret", compute) for _ in range(3)] == [1, 2, 3]
        assert not store.exists("secret")

    def test_context_level_change_takes_effect(self, clock) -> None:
        ctx = SimpleNamespace(cache_level="some")
        store = CacheStore({"secret": KeyPolicy(level="all")}, context=ctx, clock=clock)
        store.write("secret", 1)
        assert not store.exists("secret")
        ctx.cache_level = "all"
        store.write("secret", 1)
        assert store.exists("secret")


class TestPolicyLookup:
    def test_exact_beats_glob(self) -> None:
        store = CacheStore({"a:*": {"level": "some"}, "a:1": {"level": "all"}})
        assert store.policy_for("a:1").level is CacheLevel.ALL
        assert store.policy_for("a:2").level is CacheLevel.SOME

    def test_unconfigured_key(self) -> None:
        assert CacheStore().policy_for("x") is None

    def test_configure_after_creation(self) -> None:
        store = CacheStore()
        store.configure("x", {"ttl": 3})
        assert store.policy_for("x").ttl == 3


# ---------------------------------------------------------------------------
# delete / clear / expire / cleanup
# ---------------------------------------------------------------------------


class TestRemoval:
    def test_delete(self, store: CacheStore) -> None:
        store.write("k", "v")
        assert store.delete("k") is True
        assert not store.exists("k")

    def test_delete_unknown(self, store: CacheStore) -> None:
        assert store.delete("k") is False

    def test_clear(self, store: CacheStore) -> None:
        for key in ("a", "b", "c"):
            store.write(key, key)
        store.clear()
        assert not any(store.exists(key) for key in ("a", "b", "c"))
        assert len(store) == 0

    def test_expire_keeps_key_but_invalidates(self, store: CacheStore) -> None:
        store.write("k", "v", ttl=FOREVER)
        assert store.expire("k") is True
        assert store.exists("k")
        assert not store.valid("k")
        assert store.read("k") == "v"

    def test_expire_unknown(self, store: CacheStore) -> None:
        assert store.expire("k") is False

    def test_expired_key_is_refetched(self, store: CacheStore) -> None:
        compute = Counter("a", "b")
        store.fetch_or_compute("k", compute)
        store.expire("k")
        assert store.fetch_or_compute("k", compute) == "b"


class TestCleanup:
    def test_releases_expired_payloads_only(self, store: CacheStore, clock) -> None:
        store.write("old", "x" * 1000, ttl=1)
        store.write("fresh", "y", ttl=100)
        clock.advance(2)

        assert store.cleanup() == 1
        assert store.exists("old")
        assert not store.valid("old")
        assert store.read("old") is None
        assert store.read("fresh") == "y"

    def test_cleanup_is_idempotent(self, store: CacheStore, clock) -> None:
        store.write("old", "x", ttl=1)
        clock.advance(2)
        store.cleanup()
        assert store.cleanup() == 0


class TestIntrospection:
    def test_keys_len_contains(self, store: CacheStore) -> None:
        store.write("a", 1)
        store.write("b", 2)
        assert sorted(store.keys()) == ["a", "b"]
        assert sorted(store) == ["a", "b"]
        assert len(store) == 2
        assert "a" in store
        assert "z" not in store
