"""Exception hierarchy for loginflow.

All exceptions inherit from :class:`LoginFlowError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`loginflow.exit_codes`.
The top-level error handler in :func:`loginflow.app.main` catches
``LoginFlowError`` and exits with the appropriate code, while unexpected
exceptions produce a crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    LoginFlowError (exit 1)
    +-- InvalidUsageError          (exit 2)
    +-- ConfigError                (exit 1)
    +-- AuthFlowError              (exit 3)
    |   +-- URLFetchError          (exit 3, or 6 for transport failures)
    |   +-- WebLoadError           (exit 3)
    |   +-- CallbackResolutionError (exit 3, or 6 for transport failures)
    +-- FlowBusyError              (exit 8)
    +-- TokenStoreError            (exit 1)

The :class:`AuthFlowError` subclasses are the errors a
:class:`~loginflow.flow.coordinator.AuthFlowCoordinator` hands to its
delegate. They are delivered, never raised out of the coordinator.
"""

from __future__ import annotations

import enum
from typing import Optional

from loginflow.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_FLOW_BUSY,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
)


class ErrorKind(str, enum.Enum):
    """Failure categories reported by the auth service client.

    ``INVALID_PAYLOAD`` only applies to callback resolution: the callback
    URI itself was malformed, carried an ``error`` parameter, or was missing
    the parameters needed to obtain a token.
    """

    TRANSPORT = "transport"
    UNEXPECTED_STATUS_CODE = "unexpected_status_code"
    UNEXPECTED_BODY = "unexpected_body"
    INVALID_PAYLOAD = "invalid_payload"


class LoginFlowError(Exception):
    """Base exception for all loginflow errors.

    Every subclass sets a class-level ``exit_code`` corresponding to one of
    the constants in :mod:`loginflow.exit_codes`. The entry point catches
    this exception type and calls ``sys.exit(exc.exit_code)``.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(LoginFlowError):
    """Raised for invalid CLI arguments or missing required parameters."""

    exit_code = EXIT_INVALID_USAGE


class ConfigError(LoginFlowError):
    """Raised for configuration problems (missing profiles, invalid JSON, bad credential sources)."""

    exit_code = EXIT_GENERIC_FAILURE


class AuthFlowError(LoginFlowError):
    """Base class for failures that end a login attempt."""

    exit_code = EXIT_AUTH_FAILURE


class _ServiceError(AuthFlowError):
    """An auth service failure tagged with an :class:`ErrorKind`.

    Transport failures map to :data:`EXIT_CONNECTION_ERROR` so scripts can
    tell an unreachable service from a rejected login.
    """

    def __init__(
        self,
        message: str,
        kind: ErrorKind = ErrorKind.TRANSPORT,
        status_code: Optional[int] = None,
    ):
        super().__init__(
            message,
            exit_code=EXIT_CONNECTION_ERROR if kind is ErrorKind.TRANSPORT else None,
        )
        self.kind = kind
        self.status_code = status_code


class URLFetchError(_ServiceError):
    """Raised when the authorization URL cannot be obtained from the auth service."""


class WebLoadError(AuthFlowError):
    """Raised when the web surface fails to load the authorization URL."""

    def __init__(self, message: str = "The login page failed to load."):
        super().__init__(message)


class CallbackResolutionError(_ServiceError):
    """Raised when a callback URI cannot be turned into a token."""


class FlowBusyError(LoginFlowError):
    """Raised when a login is started while another one is still active."""

    exit_code = EXIT_FLOW_BUSY


class TokenStoreError(LoginFlowError):
    """Raised when the token store cannot be read, written, or cleared."""

    exit_code = EXIT_GENERIC_FAILURE
