"""Opinionated login wrapper: run a flow and keep its token in the token store.

Most consumers want "log the user in and remember the token" rather than
wiring a delegate by hand. This module provides that:

- :class:`StoringDelegate` writes the access token to a
  :class:`~loginflow.auth.token_store.TokenStore` on success and reports
  failures to the user.
- :func:`present_login` builds the request, service, presenter and
  registry for a profile and runs the flow to completion.
- :func:`has_token`, :func:`get_token` and :func:`purge_token` are the only
  read/clear surface; the only way to set a token is to log in.
"""

from __future__ import annotations

from typing import Callable, Optional

import httpx

from loginflow.auth.token_store import StoredToken, TokenStore
from loginflow.exceptions import LoginFlowError, TokenStoreError
from loginflow.flow.base import LoginDelegate, Presenter
from loginflow.flow.coordinator import AuthFlowCoordinator
from loginflow.flow.entry import start_login
from loginflow.flow.registry import FlowRegistry
from loginflow.models import FlowState, LoginProfile, Token
from loginflow.output import debug, error, success
from loginflow.presenters.console import ConsolePresenter
from loginflow.presenters.listener import CallbackListener, is_loopback_callback
from loginflow.service.base import AuthServiceClient
from loginflow.service.http_client import HttpAuthServiceClient

FAILURE_TITLE = "Log In Failed"
LOGIN_PROBLEM = "There was a problem logging in to your account."
SAVE_PROBLEM = "There was a problem saving your account information."


class StoringDelegate(LoginDelegate):
    """Delegate that persists the token and reports problems on stderr.

    After the flow ends, :attr:`error` holds whatever went wrong (a flow
    failure or a :class:`~loginflow.exceptions.TokenStoreError`) and
    :attr:`stored` the written token, if any.
    """

    def __init__(self, store: TokenStore) -> None:
        self._store = store
        self.stored: Optional[StoredToken] = None
        self.error: Optional[LoginFlowError] = None

    def cancelled(self, flow: AuthFlowCoordinator) -> None:
        flow.dismiss()
        debug("Login cancelled by the user")

    def failed(self, flow: AuthFlowCoordinator, error: LoginFlowError) -> None:
        flow.dismiss()
        self.error = error
        _report_failure(LOGIN_PROBLEM, error)

    def authenticated(self, flow: AuthFlowCoordinator, token: Token) -> None:
        flow.dismiss()
        try:
            self.stored = self._store.write(token)
        except TokenStoreError as exc:
            self.error = exc
            _report_failure(SAVE_PROBLEM, exc)
            return
        success("Logged in.")


def _report_failure(problem: str, exc: LoginFlowError) -> None:
    error(f"{FAILURE_TITLE}: {problem}\n\n{exc}")


def has_token(store: Optional[TokenStore] = None) -> bool:
    """``True`` if a token has been stored by a previous login."""
    return (store or TokenStore()).has_token()


def get_token(store: Optional[TokenStore] = None) -> Optional[str]:
    """Return the stored access token, or ``None``.

    A missing or unreadable token both read as ``None``; the reason is
    reported with ``--verbose``.
    """
    try:
        entry = (store or TokenStore()).read()
    except TokenStoreError as exc:
        debug(str(exc))
        return None
    return entry.access_token if entry is not None else None


def purge_token(store: Optional[TokenStore] = None) -> bool:
    """Remove the stored token.

    Returns:
        ``True`` if a token was removed. A failure is reported with
        ``--verbose`` and returns ``False``.
    """
    try:
        (store or TokenStore()).delete()
    except TokenStoreError as exc:
        debug(str(exc))
        return False
    return True


async def present_login(
    profile: LoginProfile,
    api_key: str,
    *,
    store: Optional[TokenStore] = None,
    show_landing: Optional[bool] = None,
    service: Optional[AuthServiceClient] = None,
    presenter: Optional[Presenter] = None,
    registry: Optional[FlowRegistry] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    on_start: Optional[Callable[[AuthFlowCoordinator], None]] = None,
) -> FlowState:
    """Run a login for *profile* and store the token on success.

    Collaborators that are not supplied are built from the profile: an
    :class:`~loginflow.service.http_client.HttpAuthServiceClient`, a
    :class:`~loginflow.presenters.console.ConsolePresenter`, a fresh
    :class:`~loginflow.flow.registry.FlowRegistry` and, for loopback
    callback URIs, a :class:`~loginflow.presenters.listener.CallbackListener`.

    Args:
        profile: Supplies the request fields and service settings.
        api_key: The resolved API key.
        store: Where the token goes. Defaults to the standard store.
        show_landing: Overrides ``profile.show_landing``.
        on_start: Called with the coordinator right after it begins, e.g.
            to hook Ctrl-C up to ``flow.user_cancelled``.

    Returns:
        The terminal state. ``SUCCEEDED`` is returned only if the token was
        also stored; a store failure reads as ``FAILED``.

    Raises:
        FlowBusyError: If another flow on *registry* is still running.
        ConfigError: If the loopback callback port cannot be bound.
    """
    request = profile.to_request(api_key)
    registry = registry if registry is not None else FlowRegistry()
    delegate = StoringDelegate(store or TokenStore())
    owns_service = service is None
    if service is None:
        service = HttpAuthServiceClient.from_profile(profile, api_key, transport=transport)
    if presenter is None:
        presenter = ConsolePresenter(registry)
    landing = profile.show_landing if show_landing is None else show_landing

    listener: Optional[CallbackListener] = None
    if is_loopback_callback(request.callback_uri):
        listener = CallbackListener(registry, request.callback_uri)

    try:
        if listener is not None:
            listener.start()
        flow = start_login(
            request,
            delegate,
            service=service,
            presenter=presenter,
            registry=registry,
            show_landing=landing,
        )
        if on_start is not None:
            on_start(flow)
        state = await flow.wait()
    finally:
        if listener is not None:
            await listener.aclose()
        if owns_service:
            await service.aclose()

    if state is FlowState.SUCCEEDED and delegate.stored is None:
        return FlowState.FAILED
    return state
