"""Login command -- run the browser login for the active profile.

``loginflow login`` resolves the profile's API key, runs
:func:`~loginflow.helper.present_login` on a fresh event loop and stores
the token on success. Ctrl-C during the flow cancels it (exit 130) rather
than killing the process mid-exchange.
"""

from __future__ import annotations

import asyncio
import signal
from typing import Optional

import typer

from loginflow.auth.token_store import TokenStore
from loginflow.commands.common import require_profile, token_store_for
from loginflow.exceptions import ConfigError, FlowBusyError
from loginflow.exit_codes import (
    EXIT_CANCELLED,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)
from loginflow.flow.coordinator import AuthFlowCoordinator
from loginflow.helper import present_login
from loginflow.models import FlowState, LoginProfile
from loginflow.output import debug, error, info, suggest


def login_command(
    ctx: typer.Context,
    no_landing: bool = typer.Option(
        False, "--no-landing", help="Open the browser without asking first."
    ),
) -> None:
    """Log in through the browser and store the token.

    Raises:
        typer.Exit: With code 2 for configuration problems, 130 if the
            login was cancelled, and the failure's own exit code (3 or 6)
            if it failed.

    Example::

        loginflow login
        loginflow --profile staging login --no-landing
    """
    from loginflow.config import resolve_credential

    profile = require_profile(ctx)
    try:
        api_key = resolve_credential(profile.api_key_source)
    except ConfigError as exc:
        error(str(exc))
        raise typer.Exit(code=EXIT_INVALID_USAGE) from None

    store = token_store_for(profile)
    show_landing = False if no_landing else None
    debug(f"Logging in with profile {profile.name} against {profile.service_base_url}")

    try:
        state, flow = asyncio.run(_run_login(profile, api_key, store, show_landing))
    except (ConfigError, FlowBusyError) as exc:
        error(str(exc))
        raise typer.Exit(code=exc.exit_code) from None

    if state is FlowState.SUCCEEDED:
        suggest("Show it: loginflow token show")
        return
    if state is FlowState.CANCELLED:
        info("Login cancelled.")
        raise typer.Exit(code=EXIT_CANCELLED)
    if flow is not None and flow.error is not None:
        raise typer.Exit(code=flow.error.exit_code)
    raise typer.Exit(code=EXIT_GENERIC_FAILURE)


async def _run_login(
    profile: LoginProfile,
    api_key: str,
    store: TokenStore,
    show_landing: Optional[bool],
) -> tuple[FlowState, Optional[AuthFlowCoordinator]]:
    loop = asyncio.get_running_loop()
    started: list[AuthFlowCoordinator] = []
    handles_sigint = False

    def on_start(flow: AuthFlowCoordinator) -> None:
        nonlocal handles_sigint
        started.append(flow)
        try:
            loop.add_signal_handler(signal.SIGINT, flow.user_cancelled)
        except (NotImplementedError, RuntimeError):
            debug("Ctrl-C cannot be routed to the login on this platform")
            return
        handles_sigint = True

    try:
        state = await present_login(
            profile,
            api_key,
            store=store,
            show_landing=show_landing,
            on_start=on_start,
        )
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)
    return state, started[0] if started else None
