"""Shared test fixtures for mxcache.

Provides a controllable clock for TTL tests, an in-memory stand-in for the
homeserver API, and isolation of the config directory and global output
state between tests.
"""

from __future__ import annotations

import functools
from typing import Any, Mapping, Optional

import pytest

from mxcache.cache import CacheStore
from mxcache.client import Client
from mxcache.exceptions import NotFoundError
from mxcache.output import reset_output


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAPI:
    """In-memory :class:`~mxcache.api.RemoteAPI` recording every call."""

    def __init__(self) -> None:
        self.data: dict[tuple, Any] = {}
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.fail_with: Optional[Exception] = None

    @staticmethod
    def _key(resource: str, params: Mapping[str, Any]) -> tuple:
        return (resource, tuple(sorted((k, v) for k, v in params.items() if v is not None)))

    def seed(self, resource: str, value: Any, **params: Any) -> None:
        self.data[self._key(resource, params)] = value

    def stored(self, resource: str, **params: Any) -> Any:
        return self.data.get(self._key(resource, params))

    def get(self, resource: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        params = dict(params or {})
        self.calls.append(("get", resource, params))
        if self.fail_with is not None:
            raise self.fail_with
        key = self._key(resource, params)
        if key not in self.data:
            raise NotFoundError("HTTP 404 (M_NOT_FOUND)", status=404, errcode="M_NOT_FOUND")
        return self.data[key]

    def set(self, resource: str, params: Mapping[str, Any], value: Any) -> None:
        self.calls.append(("set", resource, dict(params)))
        self.data[self._key(resource, params)] = value

    def count(self, verb: str, resource: Optional[str] = None) -> int:
        return sum(
            1 for v, r, _ in self.calls if v == verb and (resource is None or r == resource)
        )


@pytest.fixture(autouse=True)
def _isolate_environment(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Point the config dir at tmp_path, drop MXCACHE_* vars, reset output."""
    monkeypatch.setattr("mxcache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    for name in ("HOMESERVER", "USER_ID", "ACCESS_TOKEN", "CACHE_LEVEL"):
        monkeypatch.delenv(f"MXCACHE_{name}", raising=False)
    yield
    reset_output()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store_factory(clock: FakeClock):
    """Store factory wired to the fake clock."""
    return functools.partial(CacheStore, clock=clock)


@pytest.fixture
def api() -> FakeAPI:
    return FakeAPI()


@pytest.fixture
def client(api: FakeAPI, store_factory) -> Client:
    return Client(api, user_id="@me:example.org", store_factory=store_factory)
