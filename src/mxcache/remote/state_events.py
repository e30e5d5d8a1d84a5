"""Room state cache keyed by ``(event_type, state_key)``."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional, Union

from mxcache.cache import Cacheable, CacheStore
from mxcache.exceptions import NotFoundError

if TYPE_CHECKING:
    from mxcache.client import Client, Room

StateKey = Union[str, tuple[str, Optional[str]]]


def _split(item: StateKey) -> tuple[str, Optional[str]]:
    if isinstance(item, tuple):
        event_type, state_key = item
        return str(event_type), state_key
    return str(item), None


class StateEventCache(Cacheable):
    """Cached view of a room's state events.

    Entries live in the store under ``"<type>"`` or ``"<type>|<state_key>"``.
    Reads fetch on miss; writes and deletes go to the homeserver first and
    are then mirrored locally. The room's client supplies the cache level.

    Example::

        room.state["m.room.topic"]                    # {"topic": "..."}
        room.state["m.room.member", "@bob:example"]   # membership event
        room.state["m.room.topic"] = {"topic": "New"}

    Args:
        room: The owning :class:`~mxcache.client.Room`.
        cache_time: Entry TTL in seconds.
        store_factory: Optional :class:`~mxcache.cache.CacheStore` factory.
    """

    def __init__(
        self,
        room: Room,
        cache_time: float = 30 * 60,
        store_factory: Optional[Callable[..., CacheStore]] = None,
    ) -> None:
        super().__init__(store_factory=store_factory)
        self.room = room
        self.cache_time = cache_time

    @property
    def client(self) -> Client:
        return self.room.client

    @property
    def cache_level(self) -> Any:
        return self.client.cache_level

    @staticmethod
    def store_key(event_type: str, state_key: Optional[str] = None) -> str:
        return f"{event_type}|{state_key}" if state_key else event_type

    @staticmethod
    def parse_key(key: str) -> tuple[str, Optional[str]]:
        event_type, _, state_key = key.partition("|")
        return event_type, state_key or None

    def reload(self) -> None:
        """Forget every cached state event."""
        self.cache_store.clear()

    def get(self, event_type: str, state_key: Optional[str] = None) -> Any:
        """Return the content of a state event, fetching it on a miss."""
        return self.cache_store.fetch_or_compute(
            self.store_key(event_type, state_key),
            lambda: self._fetch(event_type, state_key),
            ttl=self.cache_time,
        )

    def set(self, event_type: str, content: Any, state_key: Optional[str] = None) -> Any:
        """Send a state event, then cache its content."""
        self.client.api.set("room_state", self._params(event_type, state_key), content)
        key = self.store_key(event_type, state_key)
        return self.cache_store.write(key, content, ttl=self.cache_time)

    def delete(self, event_type: str, state_key: Optional[str] = None) -> bool:
        """Blank a state event on the homeserver and drop it from the cache."""
        self.client.api.set("room_state", self._params(event_type, state_key), {})
        return self.cache_store.delete(self.store_key(event_type, state_key))

    def expire(self, event_type: str, state_key: Optional[str] = None) -> bool:
        """Force the next read of an event to refetch it."""
        return self.cache_store.expire(self.store_key(event_type, state_key))

    def keys(self) -> list[tuple[str, Optional[str]]]:
        return [self.parse_key(key) for key in self.cache_store.keys()]

    def values(self) -> list[Any]:
        return [self.cache_store.read(key) for key in self.cache_store.keys()]

    def items(self, live: bool = False) -> Iterator[tuple[tuple[str, Optional[str]], Any]]:
        """Yield ``((event_type, state_key), content)`` pairs.

        With *live*, each value goes through :meth:`get` so expired entries
        are refetched; otherwise stored values are returned as they are.
        """
        for key in self.cache_store.keys():
            event_type, state_key = self.parse_key(key)
            value = self.get(event_type, state_key) if live else self.cache_store.read(key)
            yield (event_type, state_key), value

    def __getitem__(self, item: StateKey) -> Any:
        return self.get(*_split(item))

    def __setitem__(self, item: StateKey, content: Any) -> None:
        event_type, state_key = _split(item)
        self.set(event_type, content, state_key)

    def __delitem__(self, item: StateKey) -> None:
        self.delete(*_split(item))

    def __contains__(self, item: object) -> bool:
        if not isinstance(item, (str, tuple)):
            return False
        return self.cache_store.exists(self.store_key(*_split(item)))

    def __iter__(self) -> Iterator[tuple[str, Optional[str]]]:
        return iter(self.keys())

    def __len__(self) -> int:
        return len(self.cache_store)

    def __repr__(self) -> str:
        return f"<StateEventCache room={self.room.id} entries={len(self)}>"

    def _params(self, event_type: str, state_key: Optional[str]) -> dict[str, Any]:
        return {"room_id": self.room.id, "event_type": event_type, "state_key": state_key}

    def _fetch(self, event_type: str, state_key: Optional[str]) -> Any:
        try:
            return self.client.api.get("room_state", self._params(event_type, state_key))
        except NotFoundError:
            return {}
