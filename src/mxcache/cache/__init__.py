"""Tiered, level-gated in-memory caching for mxcache.

This package provides:

* :class:`CacheStore` -- a per-owner key/value cache with TTLs, per-key
  policies, and cache-level gating.
* :func:`cached`, :class:`Cacheable`, and :func:`register_cached` -- the
  decorator layer that turns methods into cache-backed operations with
  ``raw``, ``key``, ``has_value`` and ``invalidate`` companions.

The runtime level is read from the owner's ``cache_level`` attribute
(:class:`~mxcache.models.CacheLevel`); see :mod:`mxcache.cache.levels`.
"""

from mxcache.cache.cached import BoundCached, Cacheable, Cached, cached, register_cached
from mxcache.cache.entry import CacheEntry
from mxcache.cache.levels import permits, resolve_level
from mxcache.cache.store import CacheStore

__all__ = [
    "BoundCached",
    "CacheEntry",
    "CacheStore",
    "Cacheable",
    "Cached",
    "cached",
    "permits",
    "register_cached",
    "resolve_level",
]
