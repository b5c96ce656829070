"""Entry points for starting a login and routing its redirect back."""

from __future__ import annotations

from typing import Optional

from loginflow.flow.base import LoginDelegate, Presenter
from loginflow.flow.coordinator import AuthFlowCoordinator
from loginflow.flow.registry import FlowRegistry
from loginflow.models import AuthRequest
from loginflow.service.base import AuthServiceClient


def start_login(
    request: AuthRequest,
    delegate: Optional[LoginDelegate],
    *,
    service: AuthServiceClient,
    presenter: Presenter,
    registry: FlowRegistry,
    show_landing: bool = True,
) -> AuthFlowCoordinator:
    """Construct a coordinator for *request* and begin it.

    Must be called from a coroutine running on the loop that drives the
    flow. With ``show_landing=False`` the authorization URL fetch starts on
    the next loop tick, so the caller can finish its own setup first.

    Raises:
        FlowBusyError: If another flow on *registry* has begun and not yet
            finished, whatever state it is in.
    """
    flow = AuthFlowCoordinator(
        request,
        delegate,
        service=service,
        presenter=presenter,
        registry=registry,
        show_landing=show_landing,
    )
    flow.begin()
    return flow


def handle_external_redirect(registry: FlowRegistry, uri: str) -> bool:
    """Hand an incoming URI open to the active login flow.

    Call this whenever the host environment reports that *uri* was opened
    (a custom-scheme launch, a loopback HTTP hit, a pasted URL).

    Returns:
        ``True`` if the active flow recognised *uri* as its callback and
        consumed it, ``False`` otherwise.
    """
    return registry.deliver(uri)
