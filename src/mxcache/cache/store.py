"""In-memory, level-gated key/value cache with per-entry expiry.

:class:`CacheStore` maps string keys to :class:`~mxcache.cache.entry.CacheEntry`
records. Each owner object gets its own store; stores are never shared.

Two pieces of configuration shape every write:

* a **policy table** mapping key patterns (exact keys or :mod:`fnmatch`
  globs) to a :class:`~mxcache.models.KeyPolicy` (minimum level and TTL);
* an optional **context** object whose ``cache_level`` attribute is the
  runtime default level, e.g. a :class:`~mxcache.client.Client`.

A write whose effective level is below the key's minimum is silently
dropped, and :meth:`CacheStore.fetch_or_compute` then recomputes on every
call. Nothing in the store raises; errors from a compute function
propagate unchanged and leave the key as it was.

Example::

    store = CacheStore({"balance:*": KeyPolicy(level="some", ttl=60)})
    store.fetch_or_compute("balance:A", lambda: api.balance("A"))
"""

from __future__ import annotations

import fnmatch
import logging
import math
import threading
import time
import weakref
from dataclasses import replace
from typing import Any, Callable, Iterator, Mapping, Optional, TypeVar

from mxcache.cache.entry import CacheEntry
from mxcache.cache.levels import permits, resolve_level
from mxcache.models import ONE_YEAR, CacheLevel, KeyPolicy

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MISSING = object()


class CacheStore:
    """Per-owner cache of :class:`CacheEntry` records.

    Misses in :meth:`fetch_or_compute` are serialised per key: concurrent
    callers missing on the same key wait for the first caller's result
    instead of computing it again. Hits never take the per-key lock.

    Args:
        config: Mapping of key pattern to :class:`KeyPolicy` (or a dict
            accepted by it). Exact keys win over glob patterns; patterns
            are tried in insertion order.
        context: Object whose ``cache_level`` is the default level.
        clock: Time source returning seconds as a float.
        default_ttl: TTL used when neither the call nor the policy sets one.
    """

    def __init__(
        self,
        config: Optional[Mapping[str, KeyPolicy | Mapping[str, Any]]] = None,
        context: Any = None,
        clock: Callable[[], float] = time.time,
        default_ttl: float = ONE_YEAR,
    ) -> None:
        self.context = context
        self._clock = clock
        self._default_ttl = default_ttl
        self._config: dict[str, KeyPolicy] = {}
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self._key_locks: weakref.WeakValueDictionary[str, Any] = weakref.WeakValueDictionary()
        self._generation = 0

        for pattern, policy in (config or {}).items():
            self.configure(pattern, policy)

    # ------------------------------------------------------------------ #
    # Configuration
    # ------------------------------------------------------------------ #

    def configure(self, pattern: str, policy: KeyPolicy | Mapping[str, Any]) -> None:
        """Install *policy* for keys matching *pattern*."""
        if not isinstance(policy, KeyPolicy):
            policy = KeyPolicy.model_validate(policy)
        self._config[pattern] = policy

    def policy_for(self, key: str) -> Optional[KeyPolicy]:
        """Return the policy configured for *key*, or ``None``."""
        policy = self._config.get(key)
        if policy is not None:
            return policy
        for pattern, policy in self._config.items():
            if fnmatch.fnmatchcase(key, pattern):
                return policy
        return None

    def effective_level(self, level: Any = None) -> CacheLevel:
        """Resolve the level an operation runs with (explicit > context > ``ALL``)."""
        return resolve_level(level, self.context)

    def permitted(self, key: str, level: Any = None) -> bool:
        """Return whether caching *key* is allowed at the effective level."""
        policy = self.policy_for(key)
        return permits(self.effective_level(level), policy.level if policy else None)

    # ------------------------------------------------------------------ #
    # Reads
    # ------------------------------------------------------------------ #

    def read(self, key: str, default: Any = None) -> Any:
        """Return the stored value for *key*, expired or not.

        Returns *default* when the key is unknown. Use
        :meth:`fetch_or_compute` when freshness matters.
        """
        entry = self._entries.get(key)
        if entry is None:
            return default
        return entry.value

    def entry(self, key: str) -> Optional[CacheEntry]:
        """Return the raw :class:`CacheEntry` for *key*, if any."""
        return self._entries.get(key)

    def exists(self, key: str) -> bool:
        return key in self._entries

    def valid(self, key: str) -> bool:
        """Return ``True`` if *key* is stored and not yet expired."""
        entry = self._entries.get(key)
        return entry is not None and not entry.is_expired(self._clock())

    def keys(self) -> list[str]:
        return list(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    # ------------------------------------------------------------------ #
    # Writes
    # ------------------------------------------------------------------ #

    def write(
        self,
        key: str,
        value: T,
        ttl: Optional[float] = None,
        level: Any = None,
    ) -> T:
        """Store *value* under *key* and return it.

        The TTL is the explicit *ttl*, else the key policy's TTL, else the
        store default; :data:`~mxcache.models.FOREVER` stores a
        non-expiring entry. When the effective level is below the key's
        minimum nothing is stored, but *value* is still returned.
        """
        policy = self.policy_for(key)
        effective = self.effective_level(level)
        if not permits(effective, policy.level if policy else None):
            logger.debug(
                "Not caching %r: level %s below minimum %s", key, effective, policy.level
            )
            return value

        if ttl is None:
            ttl = policy.ttl if policy is not None and policy.ttl is not None else self._default_ttl

        now = self._clock()
        expires_at = None if math.isinf(ttl) else now + ttl
        with self._lock:
            self._entries[key] = CacheEntry(value, now, expires_at)
        return value

    def fetch_or_compute(
        self,
        key: str,
        compute: Callable[[], T],
        ttl: Optional[float] = None,
        level: Any = None,
    ) -> T:
        """Return the cached value for *key*, computing and storing it on a miss.

        *compute* is called at most once per call, and only when there is
        no valid entry. Below the key's minimum level the store is bypassed
        and *compute* runs every time.

        Raises:
            Exception: Whatever *compute* raises; the key is left untouched.
        """
        if not self.permitted(key, level):
            return compute()

        value = self._fresh(key)
        if value is not _MISSING:
            return value

        with self._key_lock(key):
            value = self._fresh(key)
            if value is not _MISSING:
                return value

            logger.debug("Cache miss for %r", key)
            generation = self._generation
            value = compute()
            with self._lock:
                if generation != self._generation:
                    logger.debug("Store cleared while computing %r; not storing", key)
                    return value
                return self.write(key, value, ttl=ttl, level=level)

    def expire(self, key: str) -> bool:
        """Mark *key* expired without removing it.

        Returns ``False`` if the key is unknown.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return False
            self._entries[key] = replace(entry, expires_at=-math.inf)
        return True

    def delete(self, key: str) -> bool:
        """Remove *key*, returning whether anything was removed."""
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Drop every entry.

        Results of computes still running when the store is cleared are
        returned to their callers but not stored.
        """
        with self._lock:
            self._entries.clear()
            self._generation += 1

    def cleanup(self) -> int:
        """Release the payload of every expired entry.

        Expired keys are kept (``exists`` stays true, ``valid`` stays
        false) with their value replaced by ``None``.

        Returns:
            The number of entries whose payload was released.
        """
        now = self._clock()
        swept = 0
        with self._lock:
            for key, entry in list(self._entries.items()):
                if entry.value is not None and entry.is_expired(now):
                    self._entries[key] = replace(entry, value=None)
                    swept += 1
        if swept:
            logger.debug("Released %d expired cache entries", swept)
        return swept

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _fresh(self, key: str) -> Any:
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return _MISSING
        return entry.value

    def _key_lock(self, key: str) -> Any:
        # Held only while some caller references it, so unused keys drop out.
        with self._lock:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.RLock()
            return lock

    def __repr__(self) -> str:
        return f"<{type(self).__name__} entries={len(self._entries)}>"
