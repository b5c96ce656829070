"""Shared test fixtures for loginflow.

Provides isolated config environments, output state management, a CLI
runner, and scripted in-memory collaborators (service, presenter,
delegate) for driving a login flow without a network or a browser.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any, Optional

import pytest

from loginflow.exceptions import LoginFlowError
from loginflow.flow.base import LoginDelegate, Presenter
from loginflow.flow.coordinator import AuthFlowCoordinator
from loginflow.flow.registry import FlowRegistry
from loginflow.models import AuthRequest, LoginProfile, Provider, Token
from loginflow.output import OutputFormat, OutputManager, reset_output, set_output
from loginflow.service.base import AuthServiceClient


CALLBACK_URI = "myapp://auth/done"
AUTH_URL = "https://login.example.com/authorize?client_id=my-client"


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams the
    cached references go stale once the test ends.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point XDG config/data dirs into tmp_path and chdir there.

    Also clears the LOGINFLOW_* environment variables so a developer's
    own settings never leak into a test.
    """
    monkeypatch.setattr("loginflow.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in ["LOGINFLOW_PROFILE", "LOGINFLOW_BASE_URL", "LOGINFLOW_API_KEY"]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# Output fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def quiet_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, quiet=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def verbose_output() -> OutputManager:
    output = OutputManager(format=OutputFormat.PLAIN, verbose=True, no_color=True)
    set_output(output)
    yield output
    reset_output()


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


@pytest.fixture
def auth_request() -> AuthRequest:
    return AuthRequest(
        provider=Provider.AUTH0,
        api_key="k-test",
        client_id="my-client",
        callback_uri=CALLBACK_URI,
        scope="openid profile",
    )


@pytest.fixture
def sample_profile() -> LoginProfile:
    return LoginProfile(
        name="my-client",
        client_id="my-client",
        callback_uri=CALLBACK_URI,
        api_key_source="env:LOGINFLOW_API_KEY",
    )


@pytest.fixture
def token() -> Token:
    return Token(access_token="at-123", expires_in=3600, scope="openid profile")


# ---------------------------------------------------------------------------
# Scripted collaborators
# ---------------------------------------------------------------------------


class ScriptedService(AuthServiceClient):
    """Answers from a script; optional gates hold a response until released."""

    def __init__(
        self,
        url: str = AUTH_URL,
        token: Optional[Token] = None,
        url_error: Optional[BaseException] = None,
        resolve_error: Optional[BaseException] = None,
    ) -> None:
        self.url = url
        self.token = token or Token(access_token="at-123")
        self.url_error = url_error
        self.resolve_error = resolve_error
        self.url_gate: Optional[asyncio.Event] = None
        self.resolve_gate: Optional[asyncio.Event] = None
        self.url_calls: list[tuple[Any, ...]] = []
        self.resolve_calls: list[str] = []
        self.closed = False

    async def get_authentication_url(self, provider, client_id, callback_uri, scope):
        self.url_calls.append((provider, client_id, callback_uri, scope))
        if self.url_gate is not None:
            await self.url_gate.wait()
        if self.url_error is not None:
            raise self.url_error
        return self.url

    async def resolve_callback(self, uri):
        self.resolve_calls.append(uri)
        if self.resolve_gate is not None:
            await self.resolve_gate.wait()
        if self.resolve_error is not None:
            raise self.resolve_error
        return self.token

    async def aclose(self) -> None:
        self.closed = True


class RecordingPresenter(Presenter):
    """Records what the flow asked to show.

    With ``auto_load`` the web surface reports loaded as soon as a URL is
    shown; with ``redirect_to`` it then delivers that URI through the
    registry on the next loop tick, as a browser redirect would.
    """

    def __init__(
        self,
        registry: Optional[FlowRegistry] = None,
        auto_load: bool = False,
        redirect_to: Optional[str] = None,
    ) -> None:
        self.registry = registry
        self.auto_load = auto_load
        self.redirect_to = redirect_to
        self.landings: list[bool] = []
        self.urls: list[str] = []
        self.dismissals = 0
        self.redirect_results: list[bool] = []

    def show_landing(self, flow, interactive):
        self.landings.append(interactive)

    def show_url(self, flow, url):
        self.urls.append(url)
        if self.auto_load:
            flow.web_surface_loaded()
        if self.redirect_to is not None and self.registry is not None:
            asyncio.get_running_loop().call_soon(self._redirect)

    def dismiss(self, flow):
        self.dismissals += 1

    def _redirect(self) -> None:
        from loginflow.flow.entry import handle_external_redirect

        self.redirect_results.append(
            handle_external_redirect(self.registry, self.redirect_to)
        )


class RecordingDelegate(LoginDelegate):
    """Collects terminal notifications as ``(name, payload)`` tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []

    def cancelled(self, flow: AuthFlowCoordinator) -> None:
        self.events.append(("cancelled", None))

    def failed(self, flow: AuthFlowCoordinator, error: LoginFlowError) -> None:
        self.events.append(("failed", error))

    def authenticated(self, flow: AuthFlowCoordinator, token: Token) -> None:
        self.events.append(("authenticated", token))


async def settle(ticks: int = 10) -> None:
    """Let scheduled callbacks and tasks run."""
    for _ in range(ticks):
        await asyncio.sleep(0)


@pytest.fixture
def registry() -> FlowRegistry:
    return FlowRegistry()


@pytest.fixture
def service() -> ScriptedService:
    return ScriptedService()


@pytest.fixture
def presenter() -> RecordingPresenter:
    return RecordingPresenter()


@pytest.fixture
def delegate() -> RecordingDelegate:
    return RecordingDelegate()
