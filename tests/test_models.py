"""Tests for the data models and the exception hierarchy."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from loginflow.exceptions import (
    CallbackResolutionError,
    ConfigError,
    ErrorKind,
    FlowBusyError,
    URLFetchError,
    WebLoadError,
)
from loginflow.exit_codes import (
    EXIT_AUTH_FAILURE,
    EXIT_CONNECTION_ERROR,
    EXIT_FLOW_BUSY,
    EXIT_GENERIC_FAILURE,
)
from loginflow.models import (
    AuthEnvironment,
    AuthRequest,
    FlowState,
    LoginProfile,
    Provider,
    Token,
)


class TestAuthRequest:
    def test_is_frozen(self, auth_request: AuthRequest) -> None:
        with pytest.raises(ValidationError):
            auth_request.client_id = "other"

    def test_callback_needs_scheme(self) -> None:
        with pytest.raises(ValidationError, match="must include a scheme"):
            AuthRequest(
                provider=Provider.GOOGLE,
                api_key="k",
                client_id="c",
                callback_uri="auth/done",
            )

    def test_callback_kept_verbatim(self) -> None:
        request = AuthRequest(
            provider=Provider.GOOGLE,
            api_key="k",
            client_id="c",
            callback_uri="MyApp://Auth/Done/",
        )
        assert request.callback_uri == "MyApp://Auth/Done/"

    def test_api_key_not_in_repr(self, auth_request: AuthRequest) -> None:
        assert "k-test" not in repr(auth_request)


class TestToken:
    def test_defaults(self) -> None:
        token = Token(access_token="at")
        assert token.token_type == "Bearer"
        assert token.expires_in is None

    def test_extra_fields_kept(self) -> None:
        token = Token.model_validate({"access_token": "at", "tenant": "acme"})
        assert token.model_extra == {"tenant": "acme"}

    def test_secrets_not_in_repr(self) -> None:
        token = Token(access_token="secret-at", refresh_token="secret-rt")
        assert "secret" not in repr(token)


class TestFlowState:
    @pytest.mark.parametrize(
        "state", [FlowState.SUCCEEDED, FlowState.FAILED, FlowState.CANCELLED]
    )
    def test_terminal(self, state: FlowState) -> None:
        assert state.is_terminal
        assert not state.accepts_callback

    @pytest.mark.parametrize(
        ("state", "accepts"),
        [
            (FlowState.IDLE, False),
            (FlowState.FETCHING_URL, False),
            (FlowState.PRESENTING_WEB, True),
            (FlowState.AWAITING_CALLBACK, True),
            (FlowState.RESOLVING_TOKEN, False),
        ],
    )
    def test_callback_window(self, state: FlowState, accepts: bool) -> None:
        assert not state.is_terminal
        assert state.accepts_callback is accepts


class TestLoginProfile:
    def test_service_url_from_environment(self, sample_profile: LoginProfile) -> None:
        profile = sample_profile.model_copy(update={"environment": AuthEnvironment.STAGING})
        assert profile.service_base_url == AuthEnvironment.STAGING.base_url

    def test_base_url_override_strips_slash(self, sample_profile: LoginProfile) -> None:
        profile = sample_profile.model_copy(update={"base_url": "http://localhost:9000/"})
        assert profile.service_base_url == "http://localhost:9000"

    def test_to_request(self, sample_profile: LoginProfile) -> None:
        request = sample_profile.to_request("k-1")
        assert request.api_key == "k-1"
        assert request.client_id == sample_profile.client_id
        assert request.callback_uri == sample_profile.callback_uri
        assert request.provider is Provider.AUTH0


class TestExceptions:
    def test_transport_errors_map_to_connection_exit(self) -> None:
        assert URLFetchError("down").exit_code == EXIT_CONNECTION_ERROR
        assert CallbackResolutionError("down").kind is ErrorKind.TRANSPORT

    def test_service_errors_map_to_auth_exit(self) -> None:
        err = CallbackResolutionError(
            "HTTP 401", kind=ErrorKind.UNEXPECTED_STATUS_CODE, status_code=401
        )
        assert err.exit_code == EXIT_AUTH_FAILURE
        assert err.status_code == 401

    def test_web_load_default_message(self) -> None:
        assert str(WebLoadError()) == "The login page failed to load."
        assert WebLoadError().exit_code == EXIT_AUTH_FAILURE

    def test_other_codes(self) -> None:
        assert FlowBusyError("busy").exit_code == EXIT_FLOW_BUSY
        assert ConfigError("bad").exit_code == EXIT_GENERIC_FAILURE
        assert ConfigError("bad", exit_code=2).exit_code == 2
