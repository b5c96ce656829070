"""Secret storage for tokens obtained by a login.

- :class:`TokenStore` -- file-backed key/value store, one file per service.
- :class:`StoredToken` -- the persisted shape of a token.
"""

from loginflow.auth.token_store import DEFAULT_SERVICE, StoredToken, TokenStore

__all__ = ["DEFAULT_SERVICE", "StoredToken", "TokenStore"]
