"""Abstract contract for the auth service a login flow talks to.

The coordinator treats the auth service as opaque: it asks for an
authorization URL once, and later hands over the callback URI the
environment delivered. How either step reaches the identity provider is up
to the implementation.

To implement a new service, subclass :class:`AuthServiceClient` and
implement both coroutines. Raise :class:`~loginflow.exceptions.URLFetchError`
or :class:`~loginflow.exceptions.CallbackResolutionError` for failures; any
other exception escaping a call is reported to the delegate as a transport
failure.

See Also:
    :class:`~loginflow.service.http_client.HttpAuthServiceClient` for the
    httpx-based implementation.
"""

from __future__ import annotations

import base64
import hashlib
import secrets
from abc import ABC, abstractmethod

from loginflow.models import Provider, Token


def generate_pkce_pair() -> tuple[str, str]:
    """Generate a PKCE code_verifier and code_challenge (S256).

    Returns:
        A tuple of ``(code_verifier, code_challenge)``.
    """
    # RFC 7636: 43-128 characters from unreserved character set
    code_verifier = secrets.token_urlsafe(64)[:128]
    digest = hashlib.sha256(code_verifier.encode("ascii")).digest()
    code_challenge = base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")
    return code_verifier, code_challenge


class AuthServiceClient(ABC):
    """Asynchronous auth service used by one login attempt.

    Each method is single-shot: a coordinator calls
    :meth:`get_authentication_url` at most once per attempt and
    :meth:`resolve_callback` at most once, with the callback that matched.
    Implementations perform no retries.
    """

    @abstractmethod
    async def get_authentication_url(
        self,
        provider: Provider,
        client_id: str,
        callback_uri: str,
        scope: str,
    ) -> str:
        """Return the provider-hosted URL that starts the browser login.

        Raises:
            URLFetchError: On transport failure, an unexpected HTTP status,
                or a response body that cannot be decoded.
        """
        ...

    @abstractmethod
    async def resolve_callback(self, uri: str) -> Token:
        """Turn the delivered callback URI into a token.

        Raises:
            CallbackResolutionError: With kind ``invalid_payload``,
                ``unexpected_status_code``, ``unexpected_body``, or
                ``transport``.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources. The default implementation holds none."""
