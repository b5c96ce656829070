"""Canonical Pydantic models shared across all loginflow modules.

This is the single source of truth for data shapes in the project. The
models fall into two groups:

**Flow models** -- the values a login attempt is built from and produces:
    :class:`Provider`, :class:`Industry`, :class:`AuthEnvironment`,
    :class:`AuthRequest`, :class:`Token`, and :class:`FlowState`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`OutputConfig`, :class:`GlobalConfig`,
    and :class:`LoginProfile`.

All models use Pydantic v2. :class:`AuthRequest` and :class:`Token` are
frozen so that neither can change once a flow holds them.
"""

from __future__ import annotations

import enum
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --- Flow models ---


class Provider(str, enum.Enum):
    """Identity providers the auth service can broker a login for."""

    AUTH0 = "auth0"
    GOOGLE = "google"
    MICROSOFT = "microsoft"


class Industry(str, enum.Enum):
    """Industry the consuming application serves.

    Purely cosmetic: it travels with the request but no part of the flow
    reads it.
    """

    CONSTRUCTION = "construction"
    WIND = "wind"


class AuthEnvironment(str, enum.Enum):
    """Deployment environment of the auth service.

    The environment selects the default base URL all auth API calls are
    sent to. A profile's ``base_url`` overrides it.
    """

    PRODUCTION = "production"
    STAGING = "staging"
    DEVELOPMENT = "development"

    @property
    def base_url(self) -> str:
        """Default auth service base URL for this environment."""
        return _ENVIRONMENT_BASE_URLS[self]


_ENVIRONMENT_BASE_URLS: dict[AuthEnvironment, str] = {
    AuthEnvironment.PRODUCTION: "https://auth.example.com",
    AuthEnvironment.STAGING: "https://auth.staging.example.com",
    AuthEnvironment.DEVELOPMENT: "https://auth.dev.example.com",
}


class AuthRequest(BaseModel):
    """Immutable description of one login attempt.

    Owned by exactly one :class:`~loginflow.flow.coordinator.AuthFlowCoordinator`.
    The ``callback_uri`` is kept as the exact string the caller supplied so
    that callback matching compares against what was registered with the
    provider, not a normalised form of it.

    Example::

        AuthRequest(
            provider=Provider.AUTH0,
            api_key="k-123",
            client_id="my-client",
            callback_uri="myapp://auth/done",
        )
    """

    model_config = ConfigDict(frozen=True)

    provider: Provider
    industry: Industry = Industry.CONSTRUCTION
    environment: AuthEnvironment = AuthEnvironment.PRODUCTION
    api_key: str = Field(repr=False, description="Sent as the X-Api-Key header")
    client_id: str = Field(description="Must match the provider-side registration")
    callback_uri: str = Field(
        description="Redirect target; its scheme must be unique to the client app"
    )
    scope: str = ""

    @field_validator("callback_uri")
    @classmethod
    def _require_scheme(cls, value: str) -> str:
        if not urlsplit(value).scheme:
            raise ValueError(f"callback_uri must include a scheme: {value!r}")
        return value


class Token(BaseModel):
    """Bearer credential produced by the auth service.

    Only the auth service client constructs tokens; the coordinator forwards
    them untouched. Provider-specific fields beyond the ones declared here
    are preserved in ``model_extra``.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    access_token: str = Field(repr=False)
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = Field(default=None, repr=False)
    id_token: Optional[str] = Field(default=None, repr=False)
    scope: Optional[str] = None


class FlowState(str, enum.Enum):
    """States of an :class:`~loginflow.flow.coordinator.AuthFlowCoordinator`."""

    IDLE = "idle"
    FETCHING_URL = "fetching_url"
    PRESENTING_WEB = "presenting_web"
    AWAITING_CALLBACK = "awaiting_callback"
    RESOLVING_TOKEN = "resolving_token"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        """``True`` for states that accept no further transitions."""
        return self in (FlowState.SUCCEEDED, FlowState.FAILED, FlowState.CANCELLED)

    @property
    def accepts_callback(self) -> bool:
        """``True`` while the flow may be registered for callback routing."""
        return self in (FlowState.PRESENTING_WEB, FlowState.AWAITING_CALLBACK)


# --- Configuration models ---


class RequestConfig(BaseModel):
    """HTTP settings for calls to the auth service."""

    timeout: int = Field(default=30, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: str = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/loginflow/config.json``.

    Loaded and saved by :func:`~loginflow.config.load_global_config` and
    :func:`~loginflow.config.save_global_config`. Fields here have the
    lowest precedence; see :func:`~loginflow.config.resolve_config`.
    """

    default_profile: Optional[str] = None
    auto_select_single_profile: bool = True
    output: OutputConfig = Field(default_factory=OutputConfig)


class LoginProfile(BaseModel):
    """Per-application login settings stored under the ``profiles/`` directory.

    A profile holds everything needed to build an :class:`AuthRequest`
    except the API key itself, which is resolved at login time from
    ``api_key_source`` so that secrets never land in the profile file.

    See Also:
        :func:`~loginflow.config.load_profile`: Deserialise a profile by name.
        :func:`~loginflow.config.save_profile`: Persist a profile to disk.
    """

    model_config = ConfigDict(extra="allow")

    name: str
    provider: Provider = Provider.AUTH0
    industry: Industry = Industry.CONSTRUCTION
    environment: AuthEnvironment = AuthEnvironment.PRODUCTION
    base_url: Optional[str] = Field(
        default=None, description="Override the environment's auth service URL"
    )
    api_key_source: str = Field(
        default="env:LOGINFLOW_API_KEY",
        description="Credential source: env:VAR, file:/path, prompt",
    )
    client_id: str
    callback_uri: str
    scope: str = ""
    show_landing: bool = Field(
        default=True, description="Ask before opening the browser"
    )
    request: RequestConfig = Field(default_factory=RequestConfig)

    @property
    def service_base_url(self) -> str:
        """The auth service URL, honouring the ``base_url`` override."""
        return (self.base_url or self.environment.base_url).rstrip("/")

    def to_request(self, api_key: str) -> AuthRequest:
        """Build the immutable :class:`AuthRequest` for a login attempt.

        Args:
            api_key: The resolved API key.

        Returns:
            A frozen request carrying this profile's settings.
        """
        return AuthRequest(
            provider=self.provider,
            industry=self.industry,
            environment=self.environment,
            api_key=api_key,
            client_id=self.client_id,
            callback_uri=self.callback_uri,
            scope=self.scope,
        )
