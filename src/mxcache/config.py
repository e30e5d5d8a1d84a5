"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles persistent configuration for mxcache:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.mxcache/`` on macOS and Windows. See :func:`get_config_dir`.
* **Settings file** -- A single :class:`~mxcache.models.ClientSettings`
  JSON file (homeserver, credentials, cache level and TTLs).
* **Precedence resolution** -- :func:`resolve_settings` merges CLI flags,
  ``MXCACHE_*`` environment variables, the settings file and defaults.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) so a crash never leaves a half-written file.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from mxcache.exceptions import ConfigError
from mxcache.models import ClientSettings

_APP_NAME = "mxcache"
_CONFIG_FILENAME = "config.json"

ENV_PREFIX = "MXCACHE_"
"""Prefix of environment variables overriding settings fields."""

_ENV_FIELDS = ("homeserver", "user_id", "access_token", "cache_level")


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports the XDG Base Directory layout (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/mxcache/`` (default ``~/.config/mxcache/``).
    On macOS/Windows: ``~/.mxcache/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def settings_path() -> Path:
    """Path to the settings file."""
    return get_config_dir() / _CONFIG_FILENAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file lives next to *path* so ``os.replace`` is an atomic
    rename on POSIX. On any failure the temp file is removed.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None
        os.replace(tmp_path, path)
        # The file may hold an access token.
        os.chmod(path, 0o600)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Settings file ---


def load_settings(path: Optional[Path] = None) -> ClientSettings:
    """Load settings from *path* (default: the XDG settings file).

    Returns:
        The stored :class:`~mxcache.models.ClientSettings`, or defaults
        when the file does not exist.

    Raises:
        ConfigError: If the file contains invalid JSON or fails validation.
    """
    path = path or settings_path()
    if not path.is_file():
        return ClientSettings()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return ClientSettings.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid settings at {path}: {exc}") from exc


def save_settings(settings: ClientSettings, path: Optional[Path] = None) -> None:
    """Persist *settings* atomically."""
    data = settings.model_dump(mode="json")
    _atomic_write(path or settings_path(), json.dumps(data, indent=2) + "\n")


# --- Precedence resolution ---


def env_overrides() -> dict[str, Any]:
    """Collect settings overrides from ``MXCACHE_*`` environment variables."""
    overrides: dict[str, Any] = {}
    for field in _ENV_FIELDS:
        value = os.environ.get(ENV_PREFIX + field.upper())
        if value:
            overrides[field] = value
    return overrides


def resolve_settings(path: Optional[Path] = None, **cli: Any) -> ClientSettings:
    """Resolve settings with the full precedence chain.

    Precedence (high to low):
        1. Keyword arguments (CLI flags); ``None`` values are ignored
        2. Environment variables (``MXCACHE_HOMESERVER``, ``MXCACHE_USER_ID``,
           ``MXCACHE_ACCESS_TOKEN``, ``MXCACHE_CACHE_LEVEL``)
        3. Settings file
        4. Defaults

    Raises:
        ConfigError: If the merged settings fail validation.
    """
    data = load_settings(path).model_dump()
    data.update(env_overrides())
    data.update({k: v for k, v in cli.items() if v is not None})
    try:
        return ClientSettings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc
