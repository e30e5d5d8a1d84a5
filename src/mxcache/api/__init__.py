"""Homeserver access for mxcache.

:class:`RemoteAPI` is the minimal ``get``/``set`` contract consumed by the
state and account-data caches; :class:`MatrixApi` implements it over
:mod:`httpx` against the Matrix client-server API, with bearer auth, retry
with exponential backoff, and typed error mapping.
"""

from mxcache.api.base import RemoteAPI
from mxcache.api.matrix import ROUTES, MatrixApi

__all__ = ["MatrixApi", "RemoteAPI", "ROUTES"]
