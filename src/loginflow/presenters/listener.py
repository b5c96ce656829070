"""Loopback HTTP listener that turns a browser redirect into a callback delivery.

When the callback URI is ``http://127.0.0.1:<port>/<path>`` (or
``localhost``), the provider's final redirect lands on this machine. A
:class:`CallbackListener` serves that port from a daemon thread, forwards
every request URI to
:func:`~loginflow.flow.entry.handle_external_redirect`, which hands it to
the event loop driving the flow, and answers the browser with a short page saying
whether the redirect was recognised.
"""

from __future__ import annotations

import asyncio
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any, Optional
from urllib.parse import urlsplit

from loginflow.exceptions import ConfigError
from loginflow.flow.entry import handle_external_redirect
from loginflow.flow.registry import FlowRegistry
from loginflow.output import debug

LOOPBACK_HOSTS = ("127.0.0.1", "localhost", "::1")

_PAGE = "<html><body><h2>{}</h2></body></html>"
_CONSUMED_BODY = (
    "Login received! You can close this window and return to the terminal."
)
_IGNORED_BODY = "This address is not the login callback."


def is_loopback_callback(callback_uri: str) -> bool:
    """``True`` if *callback_uri* is a plain-HTTP loopback address."""
    parts = urlsplit(callback_uri)
    return parts.scheme.lower() == "http" and parts.hostname in LOOPBACK_HOSTS


class CallbackListener:
    """Serves the loopback callback URI until closed.

    Args:
        registry: The registry the active flow is registered in.
        callback_uri: A loopback ``http`` URI with an explicit port.

    Raises:
        ConfigError: If *callback_uri* is not a loopback ``http`` URI with
            a port.

    Example::

        async with CallbackListener(registry, "http://127.0.0.1:8765/cb"):
            flow = start_login(...)
            await flow.wait()
    """

    def __init__(self, registry: FlowRegistry, callback_uri: str) -> None:
        if not is_loopback_callback(callback_uri):
            raise ConfigError(
                f"Callback URI is not a loopback http address: {callback_uri}"
            )
        parts = urlsplit(callback_uri)
        try:
            port = parts.port
        except ValueError as exc:
            raise ConfigError(f"Callback URI has an invalid port: {callback_uri}") from exc
        if port is None:
            raise ConfigError(
                f"Callback URI must name a port to listen on: {callback_uri}"
            )
        self._registry = registry
        self._host = parts.hostname or "127.0.0.1"
        self._port = port
        self._scheme = parts.scheme
        self._netloc = parts.netloc
        self._server: Optional[HTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def port(self) -> int:
        """The bound port (useful when the URI named port 0)."""
        if self._server is not None:
            return self._server.server_address[1]
        return self._port

    @property
    def running(self) -> bool:
        return self._server is not None

    async def __aenter__(self) -> CallbackListener:
        self.start()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    def start(self) -> None:
        """Bind the port and start serving.

        Raises:
            ConfigError: If the port cannot be bound.
        """
        if self._server is not None:
            return
        try:
            server = HTTPServer((self._host, self._port), self._handler_class())
        except OSError as exc:
            raise ConfigError(
                f"Cannot listen for the login callback on port {self._port}: {exc}"
            ) from exc
        self._server = server
        self._thread = threading.Thread(
            target=server.serve_forever,
            kwargs={"poll_interval": 0.2},
            name="loginflow-callback",
            daemon=True,
        )
        self._thread.start()
        debug(f"Listening for the login callback on {self._host}:{self.port}")

    async def aclose(self) -> None:
        """Stop serving and release the port."""
        server, self._server = self._server, None
        if server is None:
            return
        # shutdown() waits for the serving thread, which may be waiting on us.
        await asyncio.to_thread(server.shutdown)
        server.server_close()
        self._thread = None
        debug("Callback listener stopped")

    def _deliver(self, path: str, host: Optional[str]) -> bool:
        """Route a request to the flow; runs on the server thread."""
        uri = f"{self._scheme}://{host or self._netloc}{path}"
        return handle_external_redirect(self._registry, uri)

    def _handler_class(self) -> type[BaseHTTPRequestHandler]:
        listener = self

        class CallbackHandler(BaseHTTPRequestHandler):
            def do_GET(self) -> None:
                try:
                    consumed = listener._deliver(self.path, self.headers.get("Host"))
                except Exception as exc:
                    debug(f"Callback delivery failed: {exc!r}")
                    consumed = False
                if consumed:
                    self._respond(200, _CONSUMED_BODY)
                else:
                    self._respond(404, _IGNORED_BODY)

            def _respond(self, status: int, body: str) -> None:
                self.send_response(status)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.end_headers()
                self.wfile.write(_PAGE.format(body).encode("utf-8"))

            def log_message(self, format: str, *args: Any) -> None:
                debug(f"Callback listener: {format % args}")

        return CallbackHandler
