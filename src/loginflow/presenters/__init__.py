"""Presenters for hosting a login flow in a terminal.

- :class:`ConsolePresenter` -- prompts plus the system browser.
- :class:`CallbackListener` -- loopback HTTP server feeding redirects back
  into the flow.
"""

from loginflow.presenters.console import ConsolePresenter
from loginflow.presenters.listener import CallbackListener, is_loopback_callback

__all__ = ["CallbackListener", "ConsolePresenter", "is_loopback_callback"]
