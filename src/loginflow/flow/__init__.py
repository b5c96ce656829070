"""The login flow core: coordinator state machine, callback routing, contracts."""

from loginflow.flow.base import LoginDelegate, Presenter
from loginflow.flow.coordinator import AuthFlowCoordinator
from loginflow.flow.entry import handle_external_redirect, start_login
from loginflow.flow.registry import FlowRegistry, callback_matches

__all__ = [
    "AuthFlowCoordinator",
    "FlowRegistry",
    "LoginDelegate",
    "Presenter",
    "callback_matches",
    "handle_external_redirect",
    "start_login",
]
