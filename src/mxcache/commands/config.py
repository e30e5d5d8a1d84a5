"""Config commands -- view and modify the stored settings.

Provides the ``mxcache config`` sub-command group for reading, updating
and resetting :class:`~mxcache.models.ClientSettings` in the mxcache config
directory.
"""

from __future__ import annotations

import typer

from mxcache.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True)

_SECRET_FIELDS = ("access_token",)


@config_app.command("show")
def config_show() -> None:
    """Show the stored settings, with the access token masked."""
    from mxcache.config import load_settings, settings_path
    from mxcache.exceptions import ConfigError

    try:
        settings = load_settings()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    data = settings.model_dump(mode="json")
    for field in _SECRET_FIELDS:
        if data.get(field):
            data[field] = "****"
    info(f"Settings file: {settings_path()}")
    format_response(data)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Setting key (dot notation, e.g. 'request.timeout')."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a setting value.

    The value is coerced to the type of the current field and the result
    is validated before saving.

    Example::

        mxcache config set homeserver https://matrix.example.org
        mxcache config set cache_level some
        mxcache config set request.max_retries 5
    """
    from pydantic import ValidationError

    from mxcache.config import load_settings, save_settings
    from mxcache.models import ClientSettings

    data = load_settings().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid setting key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target:
        error(f"Unknown setting key: {key}")
        raise typer.Exit(code=2)

    current = target[final_key]
    coerced: object = value
    if isinstance(current, bool):
        coerced = value.lower() in ("true", "1", "yes")
    target[final_key] = coerced

    try:
        settings = ClientSettings.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_settings(settings)
    success(f"Set {key} = {'****' if final_key in _SECRET_FIELDS else coerced}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmation."),
) -> None:
    """Reset the stored settings to defaults."""
    from mxcache.config import save_settings
    from mxcache.models import ClientSettings

    if not force and not typer.confirm("Reset all settings to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_settings(ClientSettings())
    success("Settings reset to defaults.")
