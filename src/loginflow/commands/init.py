"""Init command -- create a login profile for a client application.

Implements ``loginflow init``: the first-time setup that records which
provider, client ID and callback URI a client application logs in with,
where its API key comes from, and pins the new profile as the default for
the current directory in ``./loginflow.json``.
"""

from __future__ import annotations

import re
from typing import Optional
from urllib.parse import urlsplit

import typer

from loginflow.exit_codes import EXIT_INVALID_USAGE
from loginflow.models import AuthEnvironment, Industry, Provider
from loginflow.output import error, info, success, suggest


def init_command(
    client_id: str = typer.Option(
        ..., "--client-id", help="Client ID registered with the provider."
    ),
    callback: str = typer.Option(
        ...,
        "--callback",
        help="Callback URI registered with the provider, e.g. http://127.0.0.1:8765/cb.",
    ),
    provider: Provider = typer.Option(
        Provider.AUTH0, "--provider", help="Identity provider."
    ),
    industry: Industry = typer.Option(
        Industry.CONSTRUCTION, "--industry", help="Industry the app serves."
    ),
    environment: AuthEnvironment = typer.Option(
        AuthEnvironment.PRODUCTION, "--environment", "-e", help="Auth service environment."
    ),
    api_key_source: str = typer.Option(
        "env:LOGINFLOW_API_KEY",
        "--api-key-source",
        help="API key source: env:VAR, file:/path, prompt.",
    ),
    scope: str = typer.Option("", "--scope", help="Space-separated scopes to request."),
    name: Optional[str] = typer.Option(
        None,
        "--name",
        "-n",
        help="Profile name (derived from the client ID if omitted).",
    ),
    base_url: Optional[str] = typer.Option(
        None, "--base-url", help="Override the environment's auth service URL."
    ),
    no_landing: bool = typer.Option(
        False, "--no-landing", help="Open the browser without asking first."
    ),
) -> None:
    """Create a login profile and make it the default here.

    Raises:
        typer.Exit: With code 2 if the callback URI has no scheme or the
            API key source is not recognised.

    Example::

        loginflow init --client-id my-client --callback http://127.0.0.1:8765/cb
        loginflow init --client-id my-client --callback myapp://auth/done --provider google
    """
    from loginflow.config import profile_exists, save_profile, write_project_config
    from loginflow.models import LoginProfile

    if not urlsplit(callback).scheme:
        error(f"Callback URI must include a scheme: {callback}")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    if not _valid_source(api_key_source):
        error(f"Unknown API key source: {api_key_source}")
        suggest("Use env:VAR_NAME, file:/path/to/key, or prompt")
        raise typer.Exit(code=EXIT_INVALID_USAGE)

    profile_name = name or _slugify(client_id)
    if profile_exists(profile_name):
        info(f'Profile "{profile_name}" already exists and will be overwritten.')

    profile = LoginProfile(
        name=profile_name,
        provider=provider,
        industry=industry,
        environment=environment,
        base_url=base_url,
        api_key_source=api_key_source,
        client_id=client_id,
        callback_uri=callback,
        scope=scope,
        show_landing=not no_landing,
    )
    save_profile(profile)
    write_project_config(profile_name)

    success(f'Profile "{profile_name}" created.')
    if api_key_source.startswith("env:"):
        suggest(f"Export the API key: export {api_key_source[4:]}=<key>")
    suggest("Log in: loginflow login")


def _valid_source(source: str) -> bool:
    return source == "prompt" or source.startswith(("env:", "file:"))


def _slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower().strip()).strip("-")
    return slug or "default"
