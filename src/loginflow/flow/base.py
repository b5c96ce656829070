"""Collaborator interfaces of a login flow.

- :class:`LoginDelegate` -- consumer-facing. Receives exactly one terminal
  notification per flow: :meth:`~LoginDelegate.cancelled`,
  :meth:`~LoginDelegate.failed`, or :meth:`~LoginDelegate.authenticated`.
- :class:`Presenter` -- UI-facing. Shows the landing screen and the web
  surface, and reports what the user and the web surface did back into the
  coordinator through :meth:`AuthFlowCoordinator.log_in`,
  :meth:`~AuthFlowCoordinator.user_cancelled`,
  :meth:`~AuthFlowCoordinator.web_surface_loaded` and
  :meth:`~AuthFlowCoordinator.web_surface_failed`.

All methods are called on the event loop that drives the flow and must not
block it. A presenter that needs to wait on something blocking (a console
prompt, a browser launch) does so off-loop and posts the outcome back.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from loginflow.exceptions import LoginFlowError
from loginflow.models import Token

if TYPE_CHECKING:
    from loginflow.flow.coordinator import AuthFlowCoordinator


class LoginDelegate(ABC):
    """Receives the outcome of a login flow.

    The coordinator holds its delegate weakly. Keep a reference to the
    delegate for as long as the flow runs; a delegate that has been
    collected simply misses the notification.
    """

    @abstractmethod
    def cancelled(self, flow: AuthFlowCoordinator) -> None:
        """The user cancelled the login. Normally dismiss the presentation."""

    @abstractmethod
    def failed(self, flow: AuthFlowCoordinator, error: LoginFlowError) -> None:
        """The login failed.

        Possible errors:

        - :class:`~loginflow.exceptions.URLFetchError` -- the authorization
          URL could not be obtained.
        - :class:`~loginflow.exceptions.WebLoadError` -- the web surface
          failed to load the authorization URL.
        - :class:`~loginflow.exceptions.CallbackResolutionError` -- the
          callback could not be turned into a token.
        - :class:`~loginflow.exceptions.FlowBusyError` -- the callback
          slot was already held when this flow got its URL.
        """

    @abstractmethod
    def authenticated(self, flow: AuthFlowCoordinator, token: Token) -> None:
        """The login succeeded. Handle *token* with care."""


class Presenter(ABC):
    """Displays the login surfaces for a flow."""

    @abstractmethod
    def show_landing(self, flow: AuthFlowCoordinator, interactive: bool) -> None:
        """Show the landing screen.

        Args:
            flow: The flow being presented.
            interactive: ``True`` when the user must choose to log in (the
                presenter later calls ``flow.log_in()`` or
                ``flow.user_cancelled()``). ``False`` when the flow starts on
                its own and the landing is only a backdrop.
        """

    @abstractmethod
    def show_url(self, flow: AuthFlowCoordinator, url: str) -> None:
        """Load *url* in the web surface.

        The presenter reports the outcome with ``flow.web_surface_loaded()``
        or ``flow.web_surface_failed()``.
        """

    def dismiss(self, flow: AuthFlowCoordinator) -> None:
        """Tear the presentation down. The default does nothing."""
