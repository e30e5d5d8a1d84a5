"""Cache level resolution.

A cache operation runs with an *effective* level, picked in order from an
explicit call-time override, the ``cache_level`` attribute of the owning
context (typically a :class:`~mxcache.client.Client`), and finally
:attr:`~mxcache.models.CacheLevel.ALL`. The operation is honoured only if
the effective level meets the key's configured minimum.
"""

from __future__ import annotations

from typing import Any, Optional

from mxcache.models import CacheLevel


def context_level(context: Any) -> Optional[CacheLevel]:
    """Return the ``cache_level`` exposed by *context*, or ``None``."""
    if context is None:
        return None
    level = getattr(context, "cache_level", None)
    if level is None:
        return None
    return CacheLevel.parse(level)


def resolve_level(explicit: Any = None, context: Any = None) -> CacheLevel:
    """Compute the effective cache level for one operation."""
    if explicit is not None:
        return CacheLevel.parse(explicit)
    level = context_level(context)
    if level is not None:
        return level
    return CacheLevel.ALL


def permits(effective: CacheLevel, minimum: Optional[CacheLevel]) -> bool:
    """Return whether *effective* satisfies *minimum* (``None`` means ``NONE``)."""
    if minimum is None:
        minimum = CacheLevel.NONE
    return effective >= minimum
