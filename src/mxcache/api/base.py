"""The contract the caching collaborators expect from a network API."""

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol, runtime_checkable


@runtime_checkable
class RemoteAPI(Protocol):
    """A keyed remote resource store.

    ``get`` raises :class:`~mxcache.exceptions.NotFoundError` when the
    resource does not exist; any other failure is raised as some other
    :class:`~mxcache.exceptions.MxcacheError`.
    """

    def get(self, resource: str, params: Optional[Mapping[str, Any]] = None) -> Any: ...

    def set(self, resource: str, params: Mapping[str, Any], value: Any) -> None: ...
