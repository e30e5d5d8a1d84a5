"""Synchronous Matrix client-server API access with retry and error mapping.

:class:`MatrixApi` wraps :class:`httpx.Client` and resolves named
*resources* (``room_state``, ``account_data``, ...) to client-server API
paths. It layers on:

- **Auth injection** -- the access token is sent as a bearer token.
- **Retry with backoff** -- retries on 5xx and network errors with
  exponential delay (1 s, 2 s, 4 s, ...).
- **Error mapping** -- Matrix error bodies (``errcode``/``error``) are
  turned into :class:`~mxcache.exceptions.AuthError`,
  :class:`~mxcache.exceptions.NotFoundError` or
  :class:`~mxcache.exceptions.ServerError`.

Example::

    with MatrixApi(settings) as api:
        name = api.get("room_state", {"room_id": room_id, "event_type": "m.room.name"})
"""

from __future__ import annotations

import logging
import string
import time
from typing import Any, Callable, Mapping, Optional
from urllib.parse import quote

import httpx

from mxcache.exceptions import (
    AuthError,
    ConfigError,
    ConnectionError_,
    InvalidUsageError,
    NotFoundError,
    RequestError,
    ServerError,
)
from mxcache.models import ClientSettings

logger = logging.getLogger(__name__)

_PREFIX = "/_matrix/client/v3"

ROUTES: dict[str, str] = {
    "room_state": _PREFIX + "/rooms/{room_id}/state/{event_type}/{state_key}",
    "account_data": _PREFIX + "/user/{user_id}/account_data/{event_type}",
    "room_account_data": _PREFIX + "/user/{user_id}/rooms/{room_id}/account_data/{event_type}",
    "joined_members": _PREFIX + "/rooms/{room_id}/joined_members",
}
"""Resource name to path template. Placeholders are URL-quoted on expansion."""

_DEFAULTS: dict[str, str] = {"state_key": ""}


def resolve_path(resource: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Expand the path template for *resource* with *params*.

    Raises:
        InvalidUsageError: For an unknown resource or a missing parameter.
    """
    template = ROUTES.get(resource)
    if template is None:
        raise InvalidUsageError(f"Unknown resource: {resource}")

    values = {**_DEFAULTS, **{k: v for k, v in (params or {}).items() if v is not None}}
    fields = [f for _, f, _, _ in string.Formatter().parse(template) if f]
    missing = [f for f in fields if f not in values]
    if missing:
        raise InvalidUsageError(
            f"Missing parameter(s) for {resource}: {', '.join(missing)}"
        )
    return template.format(**{f: quote(str(values[f]), safe="") for f in fields})


class MatrixApi:
    """Blocking Matrix API client implementing :class:`~mxcache.api.RemoteAPI`.

    The underlying :class:`httpx.Client` is created on first use and
    released by :meth:`close` (or leaving the ``with`` block).

    Args:
        settings: Homeserver URL, access token and request settings.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`.
        sleep: Delay function used between retries.

    Raises:
        ConfigError: If ``settings.homeserver`` is not set.
    """

    def __init__(
        self,
        settings: ClientSettings,
        transport: Optional[httpx.BaseTransport] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not settings.homeserver:
            raise ConfigError("No homeserver configured")
        self._settings = settings
        self._transport = transport
        self._sleep = sleep
        self._client: Optional[httpx.Client] = None

    # ------------------------------------------------------------------ #
    # Context manager
    # ------------------------------------------------------------------ #

    def __enter__(self) -> MatrixApi:
        self._http()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    # ------------------------------------------------------------------ #
    # RemoteAPI
    # ------------------------------------------------------------------ #

    def get(self, resource: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        """Fetch *resource* and return its decoded JSON body.

        Raises:
            NotFoundError: When the homeserver answers 404.
            AuthError: On 401 / 403.
            ServerError: On other error statuses after retries.
            ConnectionError_: On network errors after retries.
        """
        response = self._request("GET", resolve_path(resource, params))
        if not response.content:
            return {}
        return response.json()

    def set(self, resource: str, params: Mapping[str, Any], value: Any) -> None:
        """Replace *resource* with *value* (HTTP PUT)."""
        self._request("PUT", resolve_path(resource, params), json_body=value)

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _http(self) -> httpx.Client:
        if self._client is None:
            config = self._settings.request
            headers = {"Accept": "application/json"}
            if self._settings.access_token:
                headers["Authorization"] = f"Bearer {self._settings.access_token}"
            self._client = httpx.Client(
                base_url=self._settings.homeserver or "",
                headers=headers,
                timeout=config.timeout,
                verify=config.verify_ssl,
                transport=self._transport,
            )
        return self._client

    def _request(self, method: str, path: str, json_body: Any = None) -> httpx.Response:
        """Send one request with exponential-backoff retry, then map errors."""
        client = self._http()
        max_retries = self._settings.request.max_retries

        for attempt in range(max_retries + 1):
            try:
                if json_body is None:
                    response = client.request(method, path)
                else:
                    response = client.request(method, path, json=json_body)
            except (httpx.ConnectError, httpx.TimeoutException, httpx.NetworkError) as exc:
                if attempt < max_retries:
                    delay = 2 ** attempt
                    logger.debug(
                        "Connection error: %s, retrying in %ss (attempt %d/%d)",
                        exc, delay, attempt + 1, max_retries,
                    )
                    self._sleep(delay)
                    continue
                raise ConnectionError_(
                    f"Connection failed after {max_retries + 1} attempts: {exc}"
                ) from exc

            if response.status_code >= 500 and attempt < max_retries:
                delay = 2 ** attempt
                logger.debug(
                    "Server error %d, retrying in %ss (attempt %d/%d)",
                    response.status_code, delay, attempt + 1, max_retries,
                )
                self._sleep(delay)
                continue

            _raise_for_status(response)
            return response

        raise ServerError("Request failed after all retries")  # pragma: no cover


def _raise_for_status(response: httpx.Response) -> None:
    """Raise a typed exception for error HTTP status codes."""
    status = response.status_code
    if status < 400:
        return

    errcode: Optional[str] = None
    data: dict[str, Any] = {}
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        errcode = body.get("errcode")
        msg = body.get("error") or ""
        data = {k: v for k, v in body.items() if k not in ("errcode", "error")}
    else:
        msg = response.text[:200] if response.text else ""

    prefix = f"HTTP {status}" + (f" ({errcode})" if errcode else "")
    full_msg = f"{prefix}: {msg}" if msg else prefix

    cls: type[RequestError]
    if status in (401, 403):
        cls = AuthError
    elif status == 404:
        cls = NotFoundError
    else:
        cls = ServerError
    raise cls(full_msg, status=status, errcode=errcode, data=data)
