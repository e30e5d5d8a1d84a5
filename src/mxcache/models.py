"""Canonical Pydantic models shared across all mxcache modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Cache models** -- describe how a cached operation or key behaves:
    :class:`CacheLevel`, :class:`KeyPolicy`, and :class:`CachedOperation`.

**Configuration models** -- serialised as JSON in the user's config
directory: :class:`RequestConfig` and :class:`ClientSettings`.
"""

from __future__ import annotations

import enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

ONE_YEAR = 365 * 24 * 60 * 60
"""Default time-to-live, in seconds, for entries without an explicit TTL."""

FOREVER = float("inf")
"""TTL marking an entry that never expires."""


# --- Cache models ---


class CacheLevel(enum.IntEnum):
    """Ordered cache level: ``NONE`` < ``SOME`` < ``ALL``.

    Used both as the minimum level a key or operation requires and as the
    level a runtime currently allows. An operation is cached only when the
    current level meets or exceeds its minimum, so ``ALL`` caches
    everything and ``NONE`` caches only operations that declared ``NONE``.
    """

    NONE = 0
    SOME = 1
    ALL = 2

    @classmethod
    def parse(cls, value: Any) -> CacheLevel:
        """Coerce a member, an int, or a case-insensitive name into a level.

        Raises:
            ValueError: If *value* does not name a level.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls[value.strip().upper()]
            except KeyError:
                raise ValueError(
                    f"Unknown cache level {value!r}, expected one of: none, some, all"
                ) from None
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        raise ValueError(f"Unknown cache level {value!r}")

    def __str__(self) -> str:
        return self.name.lower()


class KeyPolicy(BaseModel):
    """Per-key configuration consulted by :class:`~mxcache.cache.CacheStore`."""

    model_config = ConfigDict(frozen=True)

    level: CacheLevel = CacheLevel.NONE
    ttl: Optional[float] = Field(
        default=None, description="Seconds; None defers to the store default"
    )

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, value: Any) -> CacheLevel:
        return CacheLevel.parse(value)


class CachedOperation(BaseModel):
    """Registration record for one cached operation.

    Created once when a method is decorated with
    :func:`~mxcache.cache.cached` and never mutated afterwards.

    Attributes:
        name: The operation (method) name; also the cache key namespace.
        cache_key: Maps the call arguments to a key string. ``None`` keys
            every call to the bare operation name.
        level: Minimum cache level required for the operation to be cached.
        ttl: Default time-to-live in seconds.
        skip_when: Predicate ``(owner, name, args) -> bool``; when it returns
            true the call bypasses the cache entirely.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    cache_key: Optional[Callable[..., Any]] = None
    level: CacheLevel = CacheLevel.NONE
    ttl: float = ONE_YEAR
    skip_when: Optional[Callable[..., Any]] = None

    @field_validator("level", mode="before")
    @classmethod
    def _parse_level(cls, value: Any) -> CacheLevel:
        return CacheLevel.parse(value)

    def policy(self) -> KeyPolicy:
        """Return the :class:`KeyPolicy` this operation installs in owner stores."""
        return KeyPolicy(level=self.level, ttl=self.ttl)


# --- Configuration models ---


class RequestConfig(BaseModel):
    """HTTP request settings applied to every homeserver call."""

    timeout: float = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")
    max_retries: int = Field(default=3, description="Max retry attempts")


class ClientSettings(BaseModel):
    """Client configuration persisted at ``~/.config/mxcache/config.json``.

    Loaded and saved by :func:`~mxcache.config.load_settings` and
    :func:`~mxcache.config.save_settings`. Environment variables and CLI
    flags override the stored values; see
    :func:`~mxcache.config.resolve_settings`.
    """

    homeserver: Optional[str] = Field(
        default=None, description="Homeserver base URL, e.g. https://matrix.org"
    )
    user_id: Optional[str] = Field(default=None, description="Fully qualified MXID")
    access_token: Optional[str] = None
    cache_level: CacheLevel = Field(
        default=CacheLevel.ALL, description="Cache level: none, some, all"
    )
    state_cache_time: float = Field(
        default=30 * 60, description="Room state TTL in seconds"
    )
    account_data_cache_time: float = Field(
        default=60, description="Account data TTL in seconds"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)

    @field_validator("cache_level", mode="before")
    @classmethod
    def _parse_level(cls, value: Any) -> CacheLevel:
        return CacheLevel.parse(value)

    @field_serializer("cache_level")
    def _dump_level(self, value: CacheLevel) -> str:
        return str(value)
