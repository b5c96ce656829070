"""loginflow -- browser-redirect OAuth login for terminal and embedded hosts.

The package coordinates a login through an external identity provider:
fetch an authorization URL from the auth service, show it in a browser,
catch the redirect back to the registered callback URI, and exchange it for
a token.

Typical workflow::

    loginflow init --client-id my-client --callback http://127.0.0.1:8765/cb
    loginflow login
    loginflow token show

Modules:
    flow: Coordinator state machine, callback registry, entry points.
    service: Auth service contract and its httpx implementation.
    presenters: Console presenter and loopback callback listener.
    helper: Store-the-token wrapper around a flow.
    app: Typer application and CLI entry point.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration and profile management.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting with Rich support.
"""

__version__ = "0.1.0"
