"""Client and room objects tying the API to the caches.

:class:`Client` owns the :class:`~mxcache.api.RemoteAPI`, the runtime
``cache_level`` every cache under it obeys, the user's global account
data, and a registry of :class:`Room` objects. Each room carries its own
state and room account-data caches, plus cached operations of its own.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

import httpx

from mxcache.api import MatrixApi, RemoteAPI
from mxcache.cache import Cacheable, CacheStore, cached
from mxcache.exceptions import ConfigError
from mxcache.models import CacheLevel, ClientSettings
from mxcache.remote import AccountDataCache, StateEventCache


class Client:
    """Entry point for talking to one homeserver as one user.

    Args:
        api: Object implementing :class:`~mxcache.api.RemoteAPI`.
        user_id: The user's MXID, needed for account data.
        cache_level: ``"none"``, ``"some"`` or ``"all"`` (or a
            :class:`~mxcache.models.CacheLevel`).
        state_cache_time: TTL in seconds for room state.
        account_data_cache_time: TTL in seconds for account data.
        store_factory: Optional store factory handed to every cache.

    Raises:
        ConfigError: If *cache_level* is not a valid level.
    """

    def __init__(
        self,
        api: RemoteAPI,
        user_id: Optional[str] = None,
        cache_level: Any = CacheLevel.ALL,
        state_cache_time: float = 30 * 60,
        account_data_cache_time: float = 60,
        store_factory: Optional[Callable[..., CacheStore]] = None,
    ) -> None:
        self.api = api
        self.user_id = user_id
        self.cache_level = cache_level
        self.state_cache_time = state_cache_time
        self.account_data_cache_time = account_data_cache_time
        self.store_factory = store_factory
        self._rooms: dict[str, Room] = {}
        self.account_data = AccountDataCache(
            self, cache_time=account_data_cache_time, store_factory=store_factory
        )

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        transport: Optional[httpx.BaseTransport] = None,
        **kwargs: Any,
    ) -> Client:
        """Build a client backed by :class:`~mxcache.api.MatrixApi`."""
        return cls(
            MatrixApi(settings, transport=transport),
            user_id=settings.user_id,
            cache_level=settings.cache_level,
            state_cache_time=settings.state_cache_time,
            account_data_cache_time=settings.account_data_cache_time,
            **kwargs,
        )

    @property
    def cache_level(self) -> CacheLevel:
        return self._cache_level

    @cache_level.setter
    def cache_level(self, value: Any) -> None:
        try:
            self._cache_level = CacheLevel.parse(value)
        except ValueError as exc:
            raise ConfigError(str(exc)) from exc

    @property
    def rooms(self) -> list[Room]:
        return list(self._rooms.values())

    def ensure_room(self, room_id: str) -> Room:
        """Return the :class:`Room` for *room_id*, creating it on first use."""
        room = self._rooms.get(room_id)
        if room is None:
            room = self._rooms[room_id] = Room(self, room_id, store_factory=self.store_factory)
        return room

    def close(self) -> None:
        close = getattr(self.api, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"<Client user={self.user_id} cache_level={self.cache_level}>"


class Room(Cacheable):
    """A room as seen by a :class:`Client`.

    ``name`` and ``topic`` read and write through :attr:`state`;
    :meth:`joined_members` is cached only while the client's level is
    ``all``, since membership changes often.
    """

    def __init__(
        self,
        client: Client,
        room_id: str,
        store_factory: Optional[Callable[..., CacheStore]] = None,
    ) -> None:
        super().__init__(store_factory=store_factory)
        self.client = client
        self.id = room_id
        self.state = StateEventCache(
            self, cache_time=client.state_cache_time, store_factory=store_factory
        )
        self.account_data = AccountDataCache(
            client,
            room=self,
            cache_time=client.account_data_cache_time,
            store_factory=store_factory,
        )

    @property
    def cache_level(self) -> CacheLevel:
        return self.client.cache_level

    @property
    def name(self) -> Optional[str]:
        return self.state["m.room.name"].get("name")

    @name.setter
    def name(self, name: str) -> None:
        self.state["m.room.name"] = {"name": name}

    @property
    def topic(self) -> Optional[str]:
        return self.state["m.room.topic"].get("topic")

    @topic.setter
    def topic(self, topic: str) -> None:
        self.state["m.room.topic"] = {"topic": topic}

    @property
    def tags(self) -> dict[str, Any]:
        return self.account_data["m.tag"].get("tags", {})

    @cached(level=CacheLevel.ALL, ttl=60)
    def joined_members(self) -> dict[str, Any]:
        """Map of joined user IDs to their profile (``display_name``, ``avatar_url``)."""
        data = self.client.api.get("joined_members", {"room_id": self.id})
        return data.get("joined", {})

    def reload(self) -> None:
        """Drop everything cached for this room."""
        self.clear_cache()
        self.state.reload()
        self.account_data.reload()

    def __repr__(self) -> str:
        return f"<Room {self.id}>"
