"""State machine for a single browser-redirect login attempt.

An :class:`AuthFlowCoordinator` owns one
:class:`~loginflow.models.AuthRequest` and walks it through::

    idle -> fetching_url -> presenting_web -> awaiting_callback
         -> resolving_token -> succeeded

with ``failed`` reachable from ``fetching_url``, ``presenting_web`` and
``resolving_token``, and ``cancelled`` reachable from every state that is
not already terminal.

Everything runs on one asyncio event loop. Event methods (:meth:`log_in`,
:meth:`user_cancelled`, :meth:`web_surface_loaded`,
:meth:`web_surface_failed`, :meth:`handle_callback`) are plain synchronous
methods that must be called on that loop; each service call runs as a task
whose completion re-checks the state before acting. That gives the two
guarantees the rest of the package relies on:

- the delegate hears exactly one of ``cancelled`` / ``failed`` /
  ``authenticated``, once;
- anything that arrives after a terminal state (a late service response, a
  duplicate callback) is dropped.

See Also:
    :func:`~loginflow.flow.entry.start_login` to construct and begin a flow.
"""

from __future__ import annotations

import asyncio
import weakref
from typing import Optional

from loginflow.exceptions import (
    CallbackResolutionError,
    ErrorKind,
    FlowBusyError,
    LoginFlowError,
    URLFetchError,
    WebLoadError,
)
from loginflow.flow.base import LoginDelegate, Presenter
from loginflow.flow.registry import FlowRegistry, callback_matches
from loginflow.models import AuthRequest, FlowState, Token
from loginflow.output import debug
from loginflow.service.base import AuthServiceClient


class AuthFlowCoordinator:
    """Drives one login attempt from landing screen to token.

    Args:
        request: The immutable login request this flow owns.
        delegate: Receives the terminal notification. Held weakly.
        service: Fetches the authorization URL and resolves the callback.
        presenter: Shows the landing screen and the web surface.
        registry: Callback routing slot shared with
            :func:`~loginflow.flow.entry.handle_external_redirect`.
        show_landing: When ``False`` the flow starts fetching the
            authorization URL on its own, one loop tick after
            :meth:`begin`.
    """

    def __init__(
        self,
        request: AuthRequest,
        delegate: Optional[LoginDelegate],
        *,
        service: AuthServiceClient,
        presenter: Presenter,
        registry: FlowRegistry,
        show_landing: bool = True,
    ) -> None:
        self._request = request
        self._delegate_ref: Optional[weakref.ReferenceType[LoginDelegate]] = (
            weakref.ref(delegate) if delegate is not None else None
        )
        self._service = service
        self._presenter = presenter
        self._registry = registry
        self._show_landing = show_landing

        self._state = FlowState.IDLE
        self._history: list[FlowState] = [FlowState.IDLE]
        self._url: Optional[str] = None
        self._token: Optional[Token] = None
        self._error: Optional[LoginFlowError] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._task: Optional[asyncio.Task[None]] = None
        self._done: Optional[asyncio.Future[FlowState]] = None
        self._began = False

    # ------------------------------------------------------------------ #
    # Inspection
    # ------------------------------------------------------------------ #

    @property
    def request(self) -> AuthRequest:
        return self._request

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def history(self) -> tuple[FlowState, ...]:
        """Every state the flow has entered, in order, starting with ``idle``."""
        return tuple(self._history)

    @property
    def show_landing(self) -> bool:
        return self._show_landing

    @property
    def url(self) -> Optional[str]:
        """The authorization URL, once the service has produced it."""
        return self._url

    @property
    def token(self) -> Optional[Token]:
        """The token, once the flow has succeeded."""
        return self._token

    @property
    def error(self) -> Optional[LoginFlowError]:
        """The failure, once the flow has failed."""
        return self._error

    @property
    def delegate(self) -> Optional[LoginDelegate]:
        """The delegate, or ``None`` if it was never set or has been collected."""
        if self._delegate_ref is None:
            return None
        return self._delegate_ref()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        """The event loop driving the flow, once it has begun."""
        return self._loop

    async def wait(self) -> FlowState:
        """Wait until the flow reaches a terminal state and return it."""
        if self._state.is_terminal:
            return self._state
        if self._done is None:
            self._done = self._get_loop().create_future()
        return await asyncio.shield(self._done)

    # ------------------------------------------------------------------ #
    # Events
    # ------------------------------------------------------------------ #

    def begin(self) -> None:
        """Claim the registry, then show the landing screen.

        Without a landing screen :meth:`log_in` is scheduled instead. Must be
        called from a coroutine running on the loop that will drive the
        flow. The automatic start is deferred to the next loop tick so that
        it never runs inside the presenter's own setup.

        Raises:
            FlowBusyError: If another flow on the same registry is still
                running. Nothing is shown in that case.
        """
        if self._began:
            debug("Login flow already begun")
            return
        self._registry.claim(self)
        self._began = True
        self._loop = asyncio.get_running_loop()
        self._presenter.show_landing(self, interactive=self._show_landing)
        if not self._show_landing:
            self._loop.call_soon(self.log_in)

    def log_in(self) -> None:
        """Start fetching the authorization URL (the landing's "log in" action)."""
        if self._state is not FlowState.IDLE:
            debug(f"Ignoring log in while {self._state.value}")
            return
        self._transition(FlowState.FETCHING_URL)
        self._task = self._get_loop().create_task(self._fetch_url())

    def web_surface_loaded(self) -> None:
        """The presenter finished loading the authorization URL."""
        if self._state is not FlowState.PRESENTING_WEB:
            debug(f"Ignoring web surface load while {self._state.value}")
            return
        self._transition(FlowState.AWAITING_CALLBACK)

    def web_surface_failed(self, reason: Optional[str] = None) -> None:
        """The presenter could not load the authorization URL."""
        if self._state is not FlowState.PRESENTING_WEB:
            debug(f"Ignoring web surface failure while {self._state.value}")
            return
        if reason:
            self._fail(WebLoadError(f"The login page failed to load: {reason}"))
        else:
            self._fail(WebLoadError())

    def user_cancelled(self) -> None:
        """The user backed out. Valid from every non-terminal state."""
        if self._state.is_terminal:
            debug(f"Ignoring cancel after the flow {self._state.value}")
            return
        self._finish()

    def handle_callback(self, uri: str) -> bool:
        """Accept a routed callback URI and start resolving it.

        Normally reached through
        :meth:`FlowRegistry.deliver <loginflow.flow.registry.FlowRegistry.deliver>`.

        Returns:
            ``True`` if the URI matched and resolution started. ``False`` if
            the flow is not waiting for a callback or the URI belongs to
            something else; the flow is unchanged either way.
        """
        if not self._state.accepts_callback:
            debug(f"Ignoring callback while {self._state.value}")
            return False
        if not callback_matches(uri, self._request.callback_uri):
            return False
        self._registry.unregister(self)
        self._transition(FlowState.RESOLVING_TOKEN)
        self._task = self._get_loop().create_task(self._resolve(uri))
        return True

    def dismiss(self) -> None:
        """Ask the presenter to tear down the login surfaces."""
        self._presenter.dismiss(self)

    # ------------------------------------------------------------------ #
    # Service steps
    # ------------------------------------------------------------------ #

    async def _fetch_url(self) -> None:
        request = self._request
        try:
            url = await self._service.get_authentication_url(
                request.provider,
                request.client_id,
                request.callback_uri,
                request.scope,
            )
        except URLFetchError as exc:
            self._step_failed(FlowState.FETCHING_URL, exc)
            return
        except Exception as exc:
            error = URLFetchError(
                f"Fetching the authorization URL failed: {exc}", kind=ErrorKind.TRANSPORT
            )
            error.__cause__ = exc
            self._step_failed(FlowState.FETCHING_URL, error)
            return
        self._url_received(url)

    def _url_received(self, url: str) -> None:
        self._task = None
        if self._state is not FlowState.FETCHING_URL:
            debug("Discarding an authorization URL that arrived after the flow ended")
            return
        try:
            self._registry.register(self)
        except FlowBusyError as exc:
            self._fail(exc)
            return
        self._url = url
        self._transition(FlowState.PRESENTING_WEB)
        self._presenter.show_url(self, url)

    async def _resolve(self, uri: str) -> None:
        try:
            token = await self._service.resolve_callback(uri)
        except CallbackResolutionError as exc:
            self._step_failed(FlowState.RESOLVING_TOKEN, exc)
            return
        except Exception as exc:
            error = CallbackResolutionError(
                f"Resolving the callback failed: {exc}", kind=ErrorKind.TRANSPORT
            )
            error.__cause__ = exc
            self._step_failed(FlowState.RESOLVING_TOKEN, error)
            return
        self._token_received(token)

    def _token_received(self, token: Token) -> None:
        self._task = None
        if self._state is not FlowState.RESOLVING_TOKEN:
            debug("Discarding a token that arrived after the flow ended")
            return
        self._finish(token=token)

    def _step_failed(self, expected: FlowState, error: LoginFlowError) -> None:
        self._task = None
        if self._state is not expected:
            debug(f"Discarding a late failure: {error}")
            return
        self._fail(error)

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def _fail(self, error: LoginFlowError) -> None:
        self._finish(error=error)

    def _finish(
        self, token: Optional[Token] = None, error: Optional[LoginFlowError] = None
    ) -> None:
        """End the flow: succeeded with *token*, failed with *error*, else cancelled."""
        if self._state.is_terminal:
            return
        if token is not None:
            state = FlowState.SUCCEEDED
        elif error is not None:
            state = FlowState.FAILED
        else:
            state = FlowState.CANCELLED
        self._token = token
        self._error = error
        self._registry.release(self)
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self._transition(state)

        if self._done is not None and not self._done.done():
            self._done.set_result(state)

        delegate = self.delegate
        if delegate is None:
            debug(f"Login {state.value} but the delegate is gone")
            return
        if token is not None:
            delegate.authenticated(self, token)
        elif error is not None:
            delegate.failed(self, error)
        else:
            delegate.cancelled(self)

    def _transition(self, state: FlowState) -> None:
        debug(f"Login flow: {self._state.value} -> {state.value}")
        self._state = state
        self._history.append(state)

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop
