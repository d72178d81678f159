"""FastAPI dependencies handing out the components built at start-up."""

from fastapi import Request

from build_monitor.alerts.notifier import Notifier
from build_monitor.auth.credentials import AuthorizationFlow
from build_monitor.db.store import LocalStore
from build_monitor.refresh.messages import MessageDispatcher
from build_monitor.refresh.orchestrator import RefreshOrchestrator


def get_store(request: Request) -> LocalStore:
    return request.app.state.store


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_orchestrator(request: Request) -> RefreshOrchestrator:
    return request.app.state.orchestrator


def get_dispatcher(request: Request) -> MessageDispatcher:
    return request.app.state.dispatcher


def get_authorization(request: Request) -> AuthorizationFlow:
    return request.app.state.authorization
