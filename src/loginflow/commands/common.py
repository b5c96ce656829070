"""Helpers shared by the sub-commands."""

from __future__ import annotations

import typer

from loginflow.auth.token_store import TokenStore
from loginflow.exceptions import ConfigError
from loginflow.exit_codes import EXIT_INVALID_USAGE
from loginflow.models import LoginProfile
from loginflow.output import error, suggest


def require_profile(ctx: typer.Context) -> LoginProfile:
    """Resolve the active profile from the global options, or exit with code 2."""
    from loginflow.config import resolve_config

    obj = ctx.obj or {}
    try:
        _, profile = resolve_config(
            cli_profile=obj.get("profile"), cli_base_url=obj.get("base_url")
        )
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    if profile is None:
        error("No profile selected.")
        suggest("Create one: loginflow init --client-id <id> --callback <uri>")
        raise typer.Exit(code=EXIT_INVALID_USAGE)
    return profile


def token_store_for(profile: LoginProfile) -> TokenStore:
    """The token store a profile's logins write to."""
    return TokenStore(profile.name)
