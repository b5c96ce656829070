"""Routing of externally delivered callback URIs to the flow awaiting them.

The redirect that ends a browser login does not come back as a return
value: the hosting environment reports "this URI was opened" through its
own channel, at a time of the user's choosing. :class:`FlowRegistry` is the
addressable slot that lets that report find the one coordinator waiting
for it.

Two slots are kept, both as weak references. The *claim* is taken when a
flow begins and released when it ends, so only one login runs at a time.
The *active* slot is filled only while the claimant can take a callback.
A coordinator its owner has dropped is treated as gone.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
import weakref
from typing import TYPE_CHECKING, Callable, Optional
from urllib.parse import urlsplit

from loginflow.exceptions import FlowBusyError
from loginflow.output import debug

if TYPE_CHECKING:
    from loginflow.flow.coordinator import AuthFlowCoordinator

DELIVERY_TIMEOUT = 10.0

_BUSY_MESSAGE = "Another login is already in progress; finish or cancel it first."


def callback_matches(uri: str, callback_uri: str) -> bool:
    """Return ``True`` if *uri* targets the registered *callback_uri*.

    Scheme, host and path must all be equal; query and fragment are
    ignored. Scheme and host compare case-insensitively, the path exactly.
    A component present on one side and absent on the other is a mismatch.

    Example::

        >>> callback_matches("myapp://auth/done?code=abc", "myapp://auth/done")
        True
        >>> callback_matches("myapp://auth/finish", "myapp://auth/done")
        False
    """
    try:
        received = urlsplit(uri)
        expected = urlsplit(callback_uri)
        received_host = received.hostname
        expected_host = expected.hostname
    except ValueError:
        return False

    if not received.scheme or received.scheme.lower() != expected.scheme.lower():
        return False
    if received_host != expected_host:
        return False
    return received.path == expected.path


class FlowRegistry:
    """Tracks the one running login flow and the one awaiting a callback.

    One registry belongs to the application (or to a test) and is passed
    to every coordinator and to
    :func:`~loginflow.flow.entry.handle_external_redirect`. Slot updates
    are serialized on a re-entrant lock.

    A coordinator claims the registry in
    :meth:`~loginflow.flow.coordinator.AuthFlowCoordinator.begin`,
    registers once it has an authorization URL to show, unregisters as
    soon as it stops accepting callbacks, and releases the claim when it
    reaches a terminal state.

    :meth:`deliver` may be called from any thread. A flow bound to an
    event loop always handles the callback on that loop; a caller on
    another thread blocks until the loop has answered.
    """

    def __init__(self) -> None:
        self._claim_ref: Optional[weakref.ReferenceType[AuthFlowCoordinator]] = None
        self._ref: Optional[weakref.ReferenceType[AuthFlowCoordinator]] = None
        self._lock = threading.RLock()

    @property
    def active(self) -> Optional[AuthFlowCoordinator]:
        """The coordinator waiting for a callback, or ``None``."""
        with self._lock:
            return self._live()

    @property
    def claimant(self) -> Optional[AuthFlowCoordinator]:
        """The coordinator currently running, or ``None``."""
        with self._lock:
            return self._claimed()

    def claim(self, flow: AuthFlowCoordinator) -> None:
        """Mark *flow* as the running login.

        Raises:
            FlowBusyError: If a different, still-alive flow holds the claim.
        """
        with self._lock:
            current = self._claimed()
            if current is not None and current is not flow:
                raise FlowBusyError(_BUSY_MESSAGE)
            self._claim_ref = weakref.ref(flow)

    def release(self, flow: AuthFlowCoordinator) -> None:
        """Drop every slot *flow* holds."""
        with self._lock:
            if self._claimed() is flow:
                self._claim_ref = None
            if self._live() is flow:
                self._ref = None

    def register(self, flow: AuthFlowCoordinator) -> None:
        """Make *flow* the flow awaiting a callback.

        Raises:
            FlowBusyError: If another flow is registered or holds the claim.
        """
        with self._lock:
            current = self._live()
            if current is flow:
                return
            claimant = self._claimed()
            if current is not None or claimant not in (None, flow):
                raise FlowBusyError(_BUSY_MESSAGE)
            self._ref = weakref.ref(flow)

    def unregister(self, flow: AuthFlowCoordinator) -> None:
        """Clear the callback slot if it holds *flow*; otherwise do nothing."""
        with self._lock:
            if self._live() is flow:
                self._ref = None

    def deliver(self, uri: str) -> bool:
        """Forward *uri* to the registered flow if it matches its callback.

        Returns:
            ``True`` if the flow consumed *uri*. ``False`` when no flow is
            registered, the URI does not match, the flow is no longer
            accepting callbacks, or its event loop did not answer in time.
            A ``False`` result has no side effects.
        """
        with self._lock:
            flow = self._live()
            if flow is None:
                debug("No login flow is waiting for a callback")
                return False
            if not callback_matches(uri, flow.request.callback_uri):
                debug("Callback URI does not match the active flow")
                return False

        loop = flow.loop
        if loop is None or _running_on(loop):
            return flow.handle_callback(uri)
        return _call_on_loop(loop, flow.handle_callback, uri)

    def _live(self) -> Optional[AuthFlowCoordinator]:
        if self._ref is None:
            return None
        flow = self._ref()
        if flow is None:
            self._ref = None
        return flow

    def _claimed(self) -> Optional[AuthFlowCoordinator]:
        if self._claim_ref is None:
            return None
        flow = self._claim_ref()
        if flow is None:
            self._claim_ref = None
        return flow


def _running_on(loop: asyncio.AbstractEventLoop) -> bool:
    try:
        return asyncio.get_running_loop() is loop
    except RuntimeError:
        return False


def _call_on_loop(
    loop: asyncio.AbstractEventLoop, fn: Callable[[str], bool], uri: str
) -> bool:
    """Run ``fn(uri)`` on *loop* from a foreign thread and wait for the answer."""

    async def call() -> bool:
        return fn(uri)

    if loop.is_closed():
        debug("The login flow's event loop is closed")
        return False
    future = asyncio.run_coroutine_threadsafe(call(), loop)
    try:
        return future.result(timeout=DELIVERY_TIMEOUT)
    except concurrent.futures.TimeoutError:
        future.cancel()
        debug(f"The login flow did not answer within {DELIVERY_TIMEOUT:g}s")
        return False
