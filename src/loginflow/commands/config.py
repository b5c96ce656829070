"""Config commands -- view and modify global configuration and profiles.

Provides the ``loginflow config`` sub-command group for reading and
updating the user's global configuration file
(:class:`~loginflow.models.GlobalConfig`) and for listing and removing
login profiles.
"""

from __future__ import annotations

import typer

from loginflow.exceptions import ConfigError
from loginflow.exit_codes import EXIT_INVALID_USAGE
from loginflow.output import error, format_response, get_output, info, success, suggest


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the global configuration.

    Example::

        loginflow config show
        loginflow --json config show
    """
    from loginflow.config import get_config_dir, load_global_config

    try:
        config = load_global_config()
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None
    info(f"Config directory: {get_config_dir()}")
    format_response(config.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(
        help="Config key (dot notation, e.g., 'output.format')."
    ),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set a global configuration value.

    Nested keys use dot notation. The value is coerced to the type of the
    field it replaces and the result is validated before saving.

    Raises:
        typer.Exit: With code 2 if the key is unknown or the value does
            not validate.

    Example::

        loginflow config set default_profile my-client
        loginflow config set auto_select_single_profile false
        loginflow config set output.format json
    """
    from pydantic import ValidationError

    from loginflow.config import load_global_config, save_global_config
    from loginflow.models import GlobalConfig

    data = load_global_config().model_dump(mode="json")

    keys = key.split(".")
    target = data
    for k in keys[:-1]:
        if k not in target or not isinstance(target[k], dict):
            error(f"Invalid config key: {key}")
            raise typer.Exit(code=EXIT_INVALID_USAGE)
        target = target[k]

    final_key = keys[-1]
    if final_key not in target or isinstance(target[final_key], dict):
        error(f"Unknown config key: {key}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    current = target[final_key]
    if isinstance(current, bool):
        coerced: object = value.lower() in ("true", "1", "yes")
    elif current is None and value.lower() in ("none", "null", ""):
        coerced = None
    else:
        coerced = value
    target[final_key] = coerced

    try:
        new_config = GlobalConfig.model_validate(data)
    except ValidationError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    save_global_config(new_config)
    success(f"Set {key} = {coerced}")


@config_app.command("profiles")
def config_profiles() -> None:
    """List login profiles.

    Example::

        loginflow config profiles
    """
    from loginflow.config import list_profiles, load_profile

    names = list_profiles()
    if not names:
        info("No profiles configured.")
        suggest("Create one: loginflow init --client-id <id> --callback <uri>")
        return

    headers = ["Profile", "Provider", "Environment", "Client ID", "Callback"]
    rows: list[list[str]] = []
    for name in names:
        try:
            profile = load_profile(name)
        except ConfigError:
            rows.append([name, "error", "-", "-", "-"])
            continue
        rows.append(
            [
                name,
                profile.provider.value,
                profile.environment.value,
                profile.client_id,
                profile.callback_uri,
            ]
        )
    get_output().print_table(headers, rows, title="Login Profiles")


@config_app.command("remove")
def config_remove(
    ctx: typer.Context,
    name: str = typer.Argument(help="Profile name to remove."),
) -> None:
    """Delete a login profile.

    Asks for confirmation unless ``--force`` is active. The profile's
    stored token is left alone; purge it first with
    ``loginflow token purge`` if needed.

    Example::

        loginflow config remove my-client --force
    """
    from loginflow.config import delete_profile, profile_exists

    if not profile_exists(name):
        error(f'Profile "{name}" not found.')
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm(f'Remove profile "{name}"?')
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    delete_profile(name)
    success(f'Profile "{name}" removed.')
