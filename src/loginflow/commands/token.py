"""Token commands -- inspect or purge the token a login stored.

There is no ``token set``: a token is only ever obtained through
``loginflow login``.
"""

from __future__ import annotations

import typer

from loginflow.commands.common import require_profile, token_store_for
from loginflow.exceptions import TokenStoreError
from loginflow.exit_codes import EXIT_GENERIC_FAILURE
from loginflow.output import error, format_response, get_output, info, print_data, success, suggest


token_app = typer.Typer(no_args_is_help=True)


@token_app.command("status")
def token_status(ctx: typer.Context) -> None:
    """Show whether a token is stored for the active profile, and its expiry.

    Example::

        loginflow token status
        loginflow --json token status
    """
    profile = require_profile(ctx)
    store = token_store_for(profile)
    try:
        entry = store.read()
    except TokenStoreError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if entry is None:
        info(f'No token stored for "{profile.name}".')
        suggest("Log in: loginflow login")
        return

    headers = ["Field", "Value"]
    rows = [
        ["Profile", profile.name],
        ["Token Type", entry.token_type],
        ["Token", _preview(entry.access_token)],
        ["Obtained At", entry.obtained_at.isoformat()],
        ["Expires At", entry.expires_at.isoformat() if entry.expires_at else "never"],
        ["Expired", str(entry.is_expired())],
    ]
    get_output().print_table(headers, rows, title="Stored Token")


@token_app.command("show")
def token_show(
    ctx: typer.Context,
) -> None:
    """Print the stored access token to stdout.

    With ``--json`` the full stored record is printed instead, so scripts
    can read the expiry alongside the token.

    Raises:
        typer.Exit: With code 1 if no token is stored.

    Example::

        curl -H "Authorization: Bearer $(loginflow token show)" ...
    """
    from loginflow.output import OutputFormat

    profile = require_profile(ctx)
    store = token_store_for(profile)
    try:
        entry = store.read()
    except TokenStoreError as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if entry is None:
        error(f'No token stored for "{profile.name}".')
        suggest("Log in: loginflow login")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)

    if get_output().format == OutputFormat.JSON:
        format_response(entry.model_dump(mode="json"))
    else:
        print_data(entry.access_token)


@token_app.command("purge")
def token_purge(ctx: typer.Context) -> None:
    """Remove the stored token for the active profile.

    Asks for confirmation unless ``--force`` is active.

    Example::

        loginflow token purge
        loginflow --force token purge
    """
    from loginflow.helper import has_token, purge_token

    profile = require_profile(ctx)
    store = token_store_for(profile)
    if not has_token(store):
        info(f'No token stored for "{profile.name}".')
        return

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm(f'Remove the stored token for "{profile.name}"?')
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    if not purge_token(store):
        error(f"Could not remove the token at {store.path}")
        raise typer.Exit(code=EXIT_GENERIC_FAILURE)
    success(f'Token removed for "{profile.name}".')


def _preview(token: str) -> str:
    return token[:8] + "..." if len(token) > 8 else token
