"""Exception hierarchy for mxcache.

All exceptions inherit from :class:`MxcacheError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`mxcache.exit_codes`.
The CLI entry point in :func:`mxcache.app.main` catches ``MxcacheError``
and exits with the matching code.

Subclass hierarchy::

    MxcacheError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- AuthError           (exit 3)
    +-- NotFoundError       (exit 4)
    +-- ServerError         (exit 5)
    +-- ConnectionError_    (exit 6)
    +-- ConfigError         (exit 1)
        +-- CacheConfigError

The cache layer itself raises only :class:`CacheConfigError`, and only at
registration time. Errors raised by a compute function pass through the
cache untouched.
"""

from __future__ import annotations

from typing import Any, Optional

from mxcache.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_NOT_FOUND,
    EXIT_SERVER_ERROR,
)


class MxcacheError(Exception):
    """Base exception for all mxcache errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(MxcacheError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class RequestError(MxcacheError):
    """Base for errors returned by the homeserver.

    Carries the Matrix ``errcode`` and HTTP status when available.
    """

    def __init__(
        self,
        message: str,
        status: Optional[int] = None,
        errcode: Optional[str] = None,
        data: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.status = status
        self.errcode = errcode
        self.data = data or {}


class AuthError(RequestError):
    """Raised when the homeserver rejects the credentials (HTTP 401/403)."""

    exit_code = EXIT_AUTH_FAILURE


class NotFoundError(RequestError):
    """Raised when the homeserver returns HTTP 404 (resource not found)."""

    exit_code = EXIT_NOT_FOUND


class ServerError(RequestError):
    """Raised for any other HTTP error response from the homeserver."""

    exit_code = EXIT_SERVER_ERROR


class ConnectionError_(MxcacheError):
    """Raised on network-level failures (timeout, DNS resolution, connection refused).

    Named with a trailing underscore to avoid shadowing the built-in
    ``ConnectionError``.
    """

    exit_code = EXIT_CONNECTION_ERROR


class ConfigError(MxcacheError):
    """Raised for configuration problems (invalid settings file, bad cache level)."""

    exit_code = EXIT_GENERIC_FAILURE


class CacheConfigError(ConfigError):
    """Raised when a cached operation is registered with an invalid configuration."""
