"""The record kept for every cached key."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with its write time and absolute expiry.

    ``expires_at`` is ``None`` only for entries written with an infinite
    TTL; such entries never expire.
    """

    value: Any
    written_at: float
    expires_at: Optional[float] = None

    def is_expired(self, now: float) -> bool:
        """Return ``True`` once *now* is past :attr:`expires_at`."""
        if self.expires_at is None:
            return False
        return now > self.expires_at
