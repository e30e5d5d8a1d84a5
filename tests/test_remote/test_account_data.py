"""Tests for the global and room account data caches."""

from __future__ import annotations

import pytest

from mxcache.client import Client
from mxcache.exceptions import ServerError
from mxcache.models import CacheLevel
from mxcache.remote import AccountDataCache

ME = "@me:example.org"
ROOM_ID = "!room:example.org"


# ---------------------------------------------------------------------------
# Global account data
# ---------------------------------------------------------------------------


class TestGlobalAccountData:
    def test_fetch_once(self, client: Client, api) -> None:
        api.seed("account_data", {"@bob:x": ["!dm:x"]}, user_id=ME, event_type="m.direct")

        assert client.account_data["m.direct"] == {"@bob:x": ["!dm:x"]}
        assert client.account_data["m.direct"] == {"@bob:x": ["!dm:x"]}
        assert api.count("get", "account_data") == 1

    def test_missing_reads_empty(self, client: Client) -> None:
        assert client.account_data["org.example.unset"] == {}
        assert "org.example.unset" in client.account_data

    def test_refetch_after_cache_time(self, client: Client, api, clock) -> None:
        api.seed("account_data", {"v": 1}, user_id=ME, event_type="org.example")
        client.account_data["org.example"]
        api.seed("account_data", {"v": 2}, user_id=ME, event_type="org.example")

        clock.advance(client.account_data_cache_time + 1)
        assert client.account_data["org.example"] == {"v": 2}

    def test_set_writes_through(self, client: Client, api) -> None:
        client.account_data["org.example"] = {"v": 3}
        assert api.stored("account_data", user_id=ME, event_type="org.example") == {"v": 3}
        assert client.account_data["org.example"] == {"v": 3}
        assert api.count("get") == 0

    def test_delete(self, client: Client, api) -> None:
        client.account_data["org.example"] = {"v": 3}
        del client.account_data["org.example"]
        assert api.stored("account_data", user_id=ME, event_type="org.example") == {}
        assert "org.example" not in client.account_data

    def test_server_error_propagates(self, client: Client, api) -> None:
        api.fail_with = ServerError("HTTP 502", status=502)
        with pytest.raises(ServerError):
            client.account_data.get("m.direct")
        assert len(client.account_data) == 0

    def test_reload(self, client: Client, api) -> None:
        client.account_data["org.example"] = {"v": 1}
        client.account_data.reload()
        assert client.account_data.keys() == []

    def test_repr(self, client: Client) -> None:
        assert "global" in repr(client.account_data)


# ---------------------------------------------------------------------------
# Room account data
# ---------------------------------------------------------------------------


class TestRoomAccountData:
    def test_scoped_to_room(self, client: Client, api) -> None:
        api.seed(
            "room_account_data",
            {"tags": {"m.favourite": {}}},
            user_id=ME,
            room_id=ROOM_ID,
            event_type="m.tag",
        )
        room = client.ensure_room(ROOM_ID)

        assert room.tags == {"m.favourite": {}}
        assert api.calls[-1] == (
            "get",
            "room_account_data",
            {"user_id": ME, "event_type": "m.tag", "room_id": ROOM_ID},
        )

    def test_room_and_global_are_separate(self, client: Client) -> None:
        room = client.ensure_room(ROOM_ID)
        room.account_data["org.example"] = {"scope": "room"}
        client.account_data["org.example"] = {"scope": "global"}

        assert room.account_data["org.example"] == {"scope": "room"}
        assert client.account_data["org.example"] == {"scope": "global"}

    def test_room_id_string_resolves_room(self, client: Client) -> None:
        cache = AccountDataCache(client, room=ROOM_ID)
        assert cache.room is client.ensure_room(ROOM_ID)
        assert ROOM_ID in repr(cache)

    def test_tags_default_empty(self, client: Client) -> None:
        assert client.ensure_room(ROOM_ID).tags == {}

    def test_follows_client_level(self, client: Client) -> None:
        room = client.ensure_room(ROOM_ID)
        client.cache_level = "some"
        assert room.account_data.cache_level is CacheLevel.SOME
