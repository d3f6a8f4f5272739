"""Config commands -- view and change the global configuration.

Provides the ``specreg config`` sub-command group for the user-wide
:class:`~specreg.models.GlobalConfig` file: the default API document, the
preferred output format and the connection settings used by ``call``.
"""

from __future__ import annotations

from typing import Any

import typer

from specreg.output import error, format_response, info, success

config_app = typer.Typer(no_args_is_help=True, help="View and change the global configuration.")


@config_app.command("show")
def config_show() -> None:
    """Show the current global configuration.

    A stored token is masked; ``env:`` and ``file:`` descriptors are shown
    as written since they hold no secret.

    Example::

        specreg config show
        specreg --json config show
    """
    from specreg.commands.common import handle_errors
    from specreg.config import get_config_dir, load_global_config

    with handle_errors():
        config = load_global_config()
    data = config.model_dump(mode="json")
    token = data["client"].get("token")
    if token and not token.startswith(("env:", "file:")):
        data["client"]["token"] = "***"
    info(f"Config directory: {get_config_dir()}")
    format_response(data)


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Config key (dot notation, e.g. 'client.server')."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a configuration value.

    Nested keys use dot notation. The value is converted to the type of
    the field it replaces, and the result is validated before it is saved.

    Example::

        specreg config set default_spec https://k8s.example.com/openapi/v2
        specreg config set client.insecure true
        specreg config set client.token env:KUBE_TOKEN
    """
    from specreg.commands.common import handle_errors
    from specreg.config import load_global_config, save_global_config
    from specreg.models import GlobalConfig

    with handle_errors():
        config = load_global_config()
    data = config.model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=2)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=2)

    coerced = _convert(key, target[final_key], value)
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_global_config(new_config)
    shown = "***" if final_key == "token" and not value.startswith(("env:", "file:")) else coerced
    success(f"Set {key} = {shown}")


@config_app.command("reset")
def config_reset(
    force: bool = typer.Option(False, "--force", "-f", help="Do not ask for confirmation."),
) -> None:
    """Reset the global configuration to defaults.

    Example::

        specreg config reset --force
    """
    from specreg.config import save_global_config
    from specreg.models import GlobalConfig

    if not force and not typer.confirm("Reset all config to defaults?"):
        info("Cancelled.")
        raise typer.Exit()

    save_global_config(GlobalConfig())
    success("Configuration reset to defaults.")


def _convert(key: str, current: Any, value: str) -> Any:
    """Convert *value* to the type of *current*."""
    if isinstance(current, bool):
        return value.strip().lower() in ("true", "1", "yes", "on")
    if isinstance(current, int):
        try:
            return int(value)
        except ValueError:
            error(f"Expected integer for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if isinstance(current, float):
        try:
            return float(value)
        except ValueError:
            error(f"Expected number for {key}, got: {value}")
            raise typer.Exit(code=2) from None
    if current is None and value.lower() in ("none", "null", ""):
        return None
    return value
