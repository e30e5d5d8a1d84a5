"""mxcache -- a Matrix client library built around a tiered memoization framework.

The centre of the package is :mod:`mxcache.cache`: a per-owner, in-process
cache whose reads and writes are gated by a coarse *cache level*
(``none`` < ``some`` < ``all``). Methods are made cache-backed with the
:func:`~mxcache.cache.cached` decorator, which gives every wrapped method a
family of accessors (cached call, raw call, key, probe, invalidate).

Typical usage::

    from mxcache import Client

    client = Client.from_settings(settings)
    room = client.ensure_room("!abc:example.org")
    room.state["m.room.name"]        # fetched once, then served from cache
    room.joined_members()            # cached only while cache_level == "all"

Modules:
    app: Typer application and CLI entry point.
    models: Pydantic models and the :class:`~mxcache.models.CacheLevel` enum.
    config: XDG-aware settings persistence and precedence resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    exit_codes: Numeric exit codes following clig.dev conventions.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"

from mxcache.cache import Cacheable, CacheStore, cached, register_cached  # noqa: E402
from mxcache.client import Client, Room  # noqa: E402
from mxcache.models import CacheLevel  # noqa: E402

__all__ = [
    "CacheLevel",
    "CacheStore",
    "Cacheable",
    "Client",
    "Room",
    "cached",
    "register_cached",
]
