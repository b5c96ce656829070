"""File-backed secret store for access tokens.

Tokens live in ``~/.local/share/loginflow/tokens/<service>.json`` (XDG) or
the platform-equivalent directory. Files are written atomically with
``0o600`` permissions so a token is never world-readable, even for the
moment between create and rename.

The store is a plain key/value surface keyed by a service name: read,
write, delete, and an existence check. It knows nothing about the login
flow; :class:`~loginflow.helper.StoringDelegate` is what writes to it.

Note:
    Like any file in the user's data directory, a stored token survives
    reinstalling the package. :meth:`TokenStore.delete` is the only way to
    purge it.
"""

from __future__ import annotations

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, Field, ValidationError

from loginflow.config import atomic_write, get_data_dir
from loginflow.exceptions import TokenStoreError
from loginflow.models import Token

DEFAULT_SERVICE = "loginflow.token"


class StoredToken(BaseModel):
    """A persisted token plus the context it was obtained in.

    Attributes:
        access_token: The bearer credential.
        token_type: Usually ``"Bearer"``.
        obtained_at: UTC time the token was written.
        expires_at: UTC expiry derived from ``expires_in``, if the service
            sent one.
        metadata: Remaining provider fields (scope, id token, extras).
    """

    access_token: str = Field(repr=False)
    token_type: str = "Bearer"
    obtained_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: Optional[datetime] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_token(cls, token: Token) -> StoredToken:
        """Capture a :class:`~loginflow.models.Token` for persistence."""
        now = datetime.now(timezone.utc)
        expires_at = None
        if token.expires_in is not None:
            expires_at = now + timedelta(seconds=token.expires_in)
        metadata = token.model_dump(
            exclude={"access_token", "token_type", "expires_in"},
            exclude_none=True,
        )
        return cls(
            access_token=token.access_token,
            token_type=token.token_type,
            obtained_at=now,
            expires_at=expires_at,
            metadata=metadata,
        )

    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        expires = self.expires_at
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) >= expires


def _tokens_dir() -> Path:
    path = get_data_dir() / "tokens"
    path.mkdir(parents=True, exist_ok=True)
    return path


class TokenStore:
    """Read/write the token for a single service name.

    Args:
        service: Key the token is stored under. One file per service.

    Example::

        store = TokenStore("myapp")
        store.write(token)
        assert store.read().access_token == token.access_token
    """

    def __init__(self, service: str = DEFAULT_SERVICE) -> None:
        self._service = service
        self._path = _tokens_dir() / f"{service}.json"

    @property
    def service(self) -> str:
        return self._service

    @property
    def path(self) -> Path:
        """The filesystem path of this service's token file."""
        return self._path

    def write(self, token: Token) -> StoredToken:
        """Persist *token* atomically with ``0o600`` permissions.

        Returns:
            The :class:`StoredToken` that was written.

        Raises:
            TokenStoreError: If the file cannot be written.
        """
        entry = StoredToken.from_token(token)
        text = json.dumps(entry.model_dump(mode="json"), indent=2) + "\n"
        try:
            atomic_write(self._path, text, mode=0o600)
        except OSError as exc:
            raise TokenStoreError(f"Cannot write token to {self._path}: {exc}") from exc
        return entry

    def read(self) -> Optional[StoredToken]:
        """Load the stored token.

        Returns:
            The stored token, or ``None`` if nothing is stored.

        Raises:
            TokenStoreError: If the file exists but cannot be read or parsed.
        """
        if not self._path.is_file():
            return None
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return StoredToken.model_validate(data)
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            raise TokenStoreError(f"Cannot read token from {self._path}: {exc}") from exc

    def has_token(self) -> bool:
        """``True`` if a token file exists for this service."""
        return self._path.is_file()

    def delete(self) -> None:
        """Remove the stored token.

        Raises:
            TokenStoreError: If no token is stored or the file cannot be
                removed.
        """
        try:
            self._path.unlink()
        except FileNotFoundError as exc:
            raise TokenStoreError(f"No token stored for '{self._service}'") from exc
        except OSError as exc:
            raise TokenStoreError(f"Cannot delete token at {self._path}: {exc}") from exc
