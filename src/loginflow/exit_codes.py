"""Numeric process exit codes following `clig.dev <https://clig.dev/>`_ conventions.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~loginflow.exceptions.LoginFlowError` subclass.
Shell wrappers can inspect the exit code of ``loginflow login`` to tell a
rejected login from a network outage or a user who walked away.

Example::

    $ loginflow login
    $ echo $?
    130   # EXIT_CANCELLED -- the user cancelled the login
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""The login flow failed (URL fetch, web surface, or callback resolution)."""

EXIT_CONNECTION_ERROR = 6
"""A network-level error occurred while talking to the auth service."""

EXIT_FLOW_BUSY = 8
"""Another login attempt is already in flight."""

EXIT_CANCELLED = 130
"""The user cancelled the login (same code a shell reports for Ctrl-C)."""
