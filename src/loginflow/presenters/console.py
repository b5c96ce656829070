"""Terminal presenter: confirmation prompt as landing screen, system browser as web surface."""

from __future__ import annotations

import asyncio
import threading
import webbrowser
from typing import TYPE_CHECKING, Any, Callable, Optional

import typer

from loginflow.flow.base import Presenter
from loginflow.flow.entry import handle_external_redirect
from loginflow.flow.registry import FlowRegistry
from loginflow.output import debug, info, suggest, warning
from loginflow.presenters.listener import is_loopback_callback

if TYPE_CHECKING:
    from loginflow.flow.coordinator import AuthFlowCoordinator

_LANDING_PROMPT = "Open your browser to log in?"
_PASTE_PROMPT = "Paste the URL your browser was redirected to"


class ConsolePresenter(Presenter):
    """Presents a login in the terminal.

    The landing screen is a yes/no prompt. The web surface is the user's
    default browser: :func:`webbrowser.open` returning ``False`` counts as a
    load failure. For callback URIs a loopback
    :class:`~loginflow.presenters.listener.CallbackListener` cannot catch
    (custom schemes, remote hosts), the presenter keeps asking the user to
    paste the URL the browser ended up on until one matches.

    Prompts block, so each runs on a daemon thread and posts its outcome
    back to the flow's event loop.

    Args:
        registry: The registry pasted URLs are delivered through.
        open_browser: Replaces :func:`webbrowser.open`.
        confirm: Replaces :func:`typer.confirm`.
        prompt: Replaces :func:`typer.prompt`.
    """

    def __init__(
        self,
        registry: FlowRegistry,
        *,
        open_browser: Callable[[str], bool] = webbrowser.open,
        confirm: Callable[..., bool] = typer.confirm,
        prompt: Callable[..., Any] = typer.prompt,
    ) -> None:
        self._registry = registry
        self._open_browser = open_browser
        self._confirm = confirm
        self._prompt = prompt
        self._dismissed = threading.Event()

    @property
    def dismissed(self) -> bool:
        return self._dismissed.is_set()

    def show_landing(self, flow: AuthFlowCoordinator, interactive: bool) -> None:
        if not interactive:
            info(f"Logging in with {flow.request.provider.value}...")
            return
        self._spawn(self._run_landing, flow, asyncio.get_running_loop())

    def show_url(self, flow: AuthFlowCoordinator, url: str) -> None:
        self._spawn(self._run_browser, flow, asyncio.get_running_loop(), url)

    def dismiss(self, flow: AuthFlowCoordinator) -> None:
        self._dismissed.set()

    # ------------------------------------------------------------------ #
    # Worker threads
    # ------------------------------------------------------------------ #

    def _run_landing(
        self, flow: AuthFlowCoordinator, loop: asyncio.AbstractEventLoop
    ) -> None:
        try:
            accepted = self._confirm(_LANDING_PROMPT, default=True)
        except typer.Abort:
            accepted = False
        _post(loop, flow.log_in if accepted else flow.user_cancelled)

    def _run_browser(
        self, flow: AuthFlowCoordinator, loop: asyncio.AbstractEventLoop, url: str
    ) -> None:
        info("Opening your browser to log in. If it does not open, visit:")
        info(url)
        if not self._open_browser(url):
            _post(loop, flow.web_surface_failed, "the system browser could not be opened")
            return
        _post(loop, flow.web_surface_loaded)

        if is_loopback_callback(flow.request.callback_uri):
            return
        self._run_paste_loop(flow, loop)

    def _run_paste_loop(
        self, flow: AuthFlowCoordinator, loop: asyncio.AbstractEventLoop
    ) -> None:
        suggest(f"After logging in, your browser is sent to {flow.request.callback_uri}")
        while not self._dismissed.is_set():
            try:
                pasted = str(self._prompt(_PASTE_PROMPT)).strip()
            except typer.Abort:
                _post(loop, flow.user_cancelled)
                return
            if self._dismissed.is_set():
                return
            if not pasted:
                continue
            outcome = _call(loop, _deliver_pasted, self._registry, flow, pasted)
            if outcome is None or outcome[0]:
                return
            if outcome[1]:
                debug("Login flow ended while waiting for a pasted URL")
                return
            warning("That URL is not the login callback; try again.")

    def _spawn(self, target: Callable[..., None], *args: Any) -> None:
        self._dismissed.clear()
        thread = threading.Thread(
            target=target, args=args, name="loginflow-console", daemon=True
        )
        thread.start()


def _deliver_pasted(
    registry: FlowRegistry, flow: AuthFlowCoordinator, uri: str
) -> tuple[bool, bool]:
    """Return ``(consumed, flow_finished)``; runs on the loop."""
    consumed = handle_external_redirect(registry, uri)
    return consumed, flow.state.is_terminal


def _post(loop: asyncio.AbstractEventLoop, callback: Callable[..., None], *args: Any) -> None:
    try:
        loop.call_soon_threadsafe(callback, *args)
    except RuntimeError:
        debug("Event loop closed before a console event could be delivered")


def _call(
    loop: asyncio.AbstractEventLoop, fn: Callable[..., Any], *args: Any
) -> Optional[Any]:
    """Run *fn* on *loop* and wait for its result; ``None`` if the loop is gone."""

    async def run() -> Any:
        return fn(*args)

    try:
        return asyncio.run_coroutine_threadsafe(run(), loop).result()
    except RuntimeError:
        debug("Event loop closed before a pasted URL could be delivered")
        return None
