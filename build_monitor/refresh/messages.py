"""Request signals emitted by the UI and the handlers behind them."""

import logging
from enum import IntEnum
from typing import Any

from build_monitor.alerts.service import toggle_notifications
from build_monitor.auth.credentials import AuthorizationFlow
from build_monitor.db.repository import clear_all
from build_monitor.errors import UnknownMessageError
from build_monitor.refresh.orchestrator import RefreshOrchestrator

logger = logging.getLogger(__name__)


class MessageId(IntEnum):
    REQUEST_CREDENTIAL = 1
    REQUEST_REFRESH = 2
    REQUEST_CLEAR_ALL = 3
    REQUEST_TOGGLE_NOTIFICATIONS = 4


class MessageDispatcher:
    def __init__(self, orchestrator: RefreshOrchestrator, authorization: AuthorizationFlow):
        self.orchestrator = orchestrator
        self.authorization = authorization
        self.store = orchestrator.store

    async def dispatch(self, message_id: int, **payload: Any) -> Any:
        try:
            message = MessageId(message_id)
        except ValueError:
            raise UnknownMessageError(f"Incoming message id has no match. Value given: {message_id}") from None

        if message is MessageId.REQUEST_CREDENTIAL:
            return await self.accept_credential(**payload)
        if message is MessageId.REQUEST_REFRESH:
            return await self.orchestrator.refresh()
        if message is MessageId.REQUEST_CLEAR_ALL:
            await clear_all(self.store)
            logger.info("Cleared all local data")
            return None
        return await toggle_notifications(self.store)

    async def accept_credential(self, redirect_url: str | None = None, access_token: str | None = None, state: str | None = None) -> bool:
        """Store the token returned by the authorization flow, then refresh once."""
        await self.store_credential(redirect_url, access_token, state)
        return await self.orchestrator.refresh()

    async def store_credential(self, redirect_url: str | None = None, access_token: str | None = None, state: str | None = None) -> str:
        """Check and store the token from either the full redirect url or an explicit token/state pair."""
        if redirect_url is not None:
            return await self.authorization.complete_from_redirect(redirect_url)
        return await self.authorization.complete(access_token, state)
