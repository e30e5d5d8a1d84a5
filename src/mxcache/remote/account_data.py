"""Global and per-room account data cache."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Optional, Union

from mxcache.cache import Cacheable, CacheStore
from mxcache.exceptions import NotFoundError

if TYPE_CHECKING:
    from mxcache.client import Client, Room


class AccountDataCache(Cacheable):
    """Cached account data of the client's user, optionally scoped to a room.

    Args:
        client: The owning :class:`~mxcache.client.Client`.
        room: A :class:`~mxcache.client.Room` or room ID for room account
            data; ``None`` for global account data.
        cache_time: Entry TTL in seconds.
        store_factory: Optional :class:`~mxcache.cache.CacheStore` factory.
    """

    def __init__(
        self,
        client: Client,
        room: Union[Room, str, None] = None,
        cache_time: float = 60,
        store_factory: Optional[Callable[..., CacheStore]] = None,
    ) -> None:
        super().__init__(store_factory=store_factory)
        self.client = client
        self.cache_time = cache_time
        if isinstance(room, str):
            room = client.ensure_room(room)
        self.room = room

    @property
    def cache_level(self) -> Any:
        return self.client.cache_level

    def reload(self) -> None:
        self.cache_store.clear()

    def get(self, event_type: str) -> Any:
        """Return account data of *event_type*, fetching it on a miss."""
        return self.cache_store.fetch_or_compute(
            str(event_type), lambda: self._fetch(str(event_type)), ttl=self.cache_time
        )

    def set(self, event_type: str, content: Any) -> Any:
        resource, params = self._target(str(event_type))
        self.client.api.set(resource, params, content)
        return self.cache_store.write(str(event_type), content, ttl=self.cache_time)

    def delete(self, event_type: str) -> bool:
        """Blank the account data on the homeserver and drop it from the cache."""
        resource, params = self._target(str(event_type))
        self.client.api.set(resource, params, {})
        return self.cache_store.delete(str(event_type))

    def keys(self) -> list[str]:
        return self.cache_store.keys()

    def __getitem__(self, event_type: str) -> Any:
        return self.get(event_type)

    def __setitem__(self, event_type: str, content: Any) -> None:
        self.set(event_type, content)

    def __delitem__(self, event_type: str) -> None:
        self.delete(event_type)

    def __contains__(self, event_type: object) -> bool:
        return self.cache_store.exists(str(event_type))

    def __len__(self) -> int:
        return len(self.cache_store)

    def __repr__(self) -> str:
        scope = self.room.id if self.room is not None else "global"
        return f"<AccountDataCache {scope} entries={len(self)}>"

    def _target(self, event_type: str) -> tuple[str, dict[str, Any]]:
        params: dict[str, Any] = {"user_id": self.client.user_id, "event_type": event_type}
        if self.room is None:
            return "account_data", params
        params["room_id"] = self.room.id
        return "room_account_data", params

    def _fetch(self, event_type: str) -> Any:
        resource, params = self._target(event_type)
        try:
            return self.client.api.get(resource, params)
        except NotFoundError:
            return {}
