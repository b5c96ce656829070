"""httpx-backed implementation of :class:`~loginflow.service.base.AuthServiceClient`.

The client speaks to the auth service's two endpoints:

1. ``POST /v1/authorize`` -- given the provider, client ID, redirect URI,
   scope, a ``state`` value and a PKCE challenge, returns ``{"url": ...}``:
   the provider-hosted page the user logs in on.
2. ``POST /v1/token`` -- exchanges the authorization code carried by the
   callback (plus the PKCE verifier) for a token.

Every request carries the API key in the ``X-Api-Key`` header. Nothing is
retried: a login step that fails is terminal for the attempt, and the
caller starts a new one.

The ``state`` and PKCE verifier generated for the URL request are kept on
the instance until a callback is resolved, so one instance serves one
login attempt at a time.
"""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import parse_qs, urlsplit

import httpx
from pydantic import ValidationError

from loginflow.exceptions import CallbackResolutionError, ErrorKind, URLFetchError
from loginflow.models import AuthEnvironment, LoginProfile, Provider, Token
from loginflow.output import debug
from loginflow.service.base import AuthServiceClient, generate_pkce_pair

AUTHORIZE_PATH = "/v1/authorize"
TOKEN_PATH = "/v1/token"


@dataclass(frozen=True)
class _PendingAuthorization:
    state: str
    code_verifier: str
    client_id: str
    redirect_uri: str


class HttpAuthServiceClient(AuthServiceClient):
    """Auth service client over :class:`httpx.AsyncClient`.

    The underlying httpx client is created on first use and closed by
    :meth:`aclose` (or by leaving ``async with``).

    Args:
        environment: Selects the default service base URL.
        api_key: Sent as ``X-Api-Key`` on every request.
        base_url: Overrides the environment's base URL.
        timeout: Per-request timeout in seconds.
        verify_ssl: Verify TLS certificates.
        transport: Optional httpx transport, e.g. :class:`httpx.MockTransport`
            in tests.

    Example::

        async with HttpAuthServiceClient(AuthEnvironment.STAGING, api_key) as service:
            url = await service.get_authentication_url(
                Provider.AUTH0, "my-client", "myapp://auth/done", ""
            )
    """

    def __init__(
        self,
        environment: AuthEnvironment,
        api_key: str,
        base_url: Optional[str] = None,
        timeout: float = 30.0,
        verify_ssl: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._base_url = (base_url or environment.base_url).rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self._pending: Optional[_PendingAuthorization] = None

    @classmethod
    def from_profile(
        cls,
        profile: LoginProfile,
        api_key: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> HttpAuthServiceClient:
        """Build a client from a profile's environment and request settings."""
        return cls(
            environment=profile.environment,
            api_key=api_key,
            base_url=profile.service_base_url,
            timeout=profile.request.timeout,
            verify_ssl=profile.request.verify_ssl,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> HttpAuthServiceClient:
        self._http()
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # AuthServiceClient
    # ------------------------------------------------------------------ #

    async def get_authentication_url(
        self,
        provider: Provider,
        client_id: str,
        callback_uri: str,
        scope: str,
    ) -> str:
        code_verifier, code_challenge = generate_pkce_pair()
        state = secrets.token_urlsafe(24)
        payload: dict[str, str] = {
            "provider": provider.value,
            "client_id": client_id,
            "redirect_uri": callback_uri,
            "state": state,
            "code_challenge": code_challenge,
            "code_challenge_method": "S256",
        }
        if scope:
            payload["scope"] = scope

        body = await self._post(AUTHORIZE_PATH, payload, URLFetchError)
        url = body.get("url") if isinstance(body, dict) else None
        if not isinstance(url, str) or urlsplit(url).scheme not in ("http", "https"):
            raise URLFetchError(
                f"Response from {AUTHORIZE_PATH} has no usable 'url' field",
                kind=ErrorKind.UNEXPECTED_BODY,
            )

        self._pending = _PendingAuthorization(
            state=state,
            code_verifier=code_verifier,
            client_id=client_id,
            redirect_uri=callback_uri,
        )
        debug(f"Authorization URL received for provider {provider.value}")
        return url

    async def resolve_callback(self, uri: str) -> Token:
        params = _callback_params(uri)

        if "error" in params:
            message = f"Authorization failed: {params['error']}"
            if params.get("error_description"):
                message += f" - {params['error_description']}"
            raise CallbackResolutionError(message, kind=ErrorKind.INVALID_PAYLOAD)

        pending = self._pending
        if pending is None:
            raise CallbackResolutionError(
                "No authorization is pending for this callback",
                kind=ErrorKind.INVALID_PAYLOAD,
            )
        if params.get("state") != pending.state:
            raise CallbackResolutionError(
                "Callback state does not match the authorization request",
                kind=ErrorKind.INVALID_PAYLOAD,
            )

        if "access_token" in params:
            # Implicit grant: the token rides in the fragment.
            self._pending = None
            return _token_from_callback(params)

        code = params.get("code")
        if not code:
            raise CallbackResolutionError(
                "Callback carries neither an authorization code nor a token",
                kind=ErrorKind.INVALID_PAYLOAD,
            )

        body = await self._post(
            TOKEN_PATH,
            {
                "grant_type": "authorization_code",
                "code": code,
                "code_verifier": pending.code_verifier,
                "client_id": pending.client_id,
                "redirect_uri": pending.redirect_uri,
            },
            CallbackResolutionError,
        )
        if not isinstance(body, dict) or "access_token" not in body:
            raise CallbackResolutionError(
                f"Response from {TOKEN_PATH} is missing 'access_token'",
                kind=ErrorKind.UNEXPECTED_BODY,
            )
        try:
            token = Token.model_validate(body)
        except ValidationError as exc:
            raise CallbackResolutionError(
                f"Response from {TOKEN_PATH} is not a valid token: {exc}",
                kind=ErrorKind.UNEXPECTED_BODY,
            ) from exc

        self._pending = None
        debug("Authorization code exchanged for a token")
        return token

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    def _http(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                verify=self._verify_ssl,
                headers={"X-Api-Key": self._api_key, "Accept": "application/json"},
                transport=self._transport,
            )
        return self._client

    async def _post(
        self,
        path: str,
        payload: dict[str, str],
        error_cls: type[URLFetchError] | type[CallbackResolutionError],
    ) -> Any:
        """POST *payload* as JSON and return the decoded body.

        Raises:
            error_cls: Tagged ``transport``, ``unexpected_status_code`` or
                ``unexpected_body``.
        """
        debug(f"POST {self._base_url}{path}")
        try:
            response = await self._http().post(path, json=payload)
        except httpx.HTTPError as exc:
            raise error_cls(
                f"Request to {path} failed: {exc}", kind=ErrorKind.TRANSPORT
            ) from exc

        if not response.is_success:
            raise error_cls(
                _status_message(response, path),
                kind=ErrorKind.UNEXPECTED_STATUS_CODE,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise error_cls(
                f"Response from {path} is not valid JSON", kind=ErrorKind.UNEXPECTED_BODY
            ) from exc


def _callback_params(uri: str) -> dict[str, str]:
    """Merge query and fragment parameters of a callback URI; fragment wins."""
    parts = urlsplit(uri)
    params: dict[str, str] = {}
    for raw in (parts.query, parts.fragment):
        for key, values in parse_qs(raw).items():
            params[key] = values[0]
    return params


def _token_from_callback(params: dict[str, str]) -> Token:
    data: dict[str, Any] = {
        key: params[key]
        for key in ("access_token", "token_type", "expires_in", "id_token", "scope")
        if key in params
    }
    try:
        return Token.model_validate(data)
    except ValidationError as exc:
        raise CallbackResolutionError(
            f"Callback token parameters are malformed: {exc}",
            kind=ErrorKind.INVALID_PAYLOAD,
        ) from exc


def _status_message(response: httpx.Response, path: str) -> str:
    detail = ""
    try:
        body = response.json()
        if isinstance(body, dict):
            detail = str(
                body.get("error_description")
                or body.get("message")
                or body.get("error")
                or body.get("detail")
                or ""
            )
    except ValueError:
        detail = response.text[:200]
    prefix = f"HTTP {response.status_code} from {path}"
    return f"{prefix}: {detail}" if detail else prefix
