"""Caches over remote Matrix data.

:class:`StateEventCache` and :class:`AccountDataCache` read through their
owner's :class:`~mxcache.cache.CacheStore` (fetch on miss) and write
through to the homeserver (remote write, then local write). A missing
remote resource reads as an empty dict.
"""

from mxcache.remote.account_data import AccountDataCache
from mxcache.remote.state_events import StateEventCache

__all__ = ["AccountDataCache", "StateEventCache"]
