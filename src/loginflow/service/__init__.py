"""Auth service clients.

- :class:`AuthServiceClient` -- the asynchronous contract a login flow
  drives: fetch an authorization URL, resolve a callback to a token.
- :class:`HttpAuthServiceClient` -- implementation over
  :class:`httpx.AsyncClient`.
- :func:`generate_pkce_pair` -- PKCE verifier/challenge helper.
"""

from loginflow.service.base import AuthServiceClient, generate_pkce_pair
from loginflow.service.http_client import HttpAuthServiceClient

__all__ = ["AuthServiceClient", "HttpAuthServiceClient", "generate_pkce_pair"]
