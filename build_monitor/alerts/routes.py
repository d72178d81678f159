"""Notification preference and attention badge endpoints."""

from fastapi import APIRouter, Depends

from build_monitor.alerts.notifier import Notifier
from build_monitor.dependencies import get_dispatcher, get_notifier
from build_monitor.refresh.messages import MessageDispatcher, MessageId

router = APIRouter(prefix="/api/v1", tags=["Alerts"])


@router.post("/notifications/toggle", summary="Toggle notifications", description="Switch failed build notifications on or off. An unset preference turns on.")
async def toggle(dispatcher: MessageDispatcher = Depends(get_dispatcher)):
    enabled = await dispatcher.dispatch(MessageId.REQUEST_TOGGLE_NOTIFICATIONS)
    return {"status": "success", "data": {"wants_notifications": enabled}}


@router.post("/alerts/acknowledge", summary="Acknowledge alerts", description="Clear the attention badge once the user has looked at the failures.")
async def acknowledge(notifier: Notifier = Depends(get_notifier)):
    notifier.clear_attention_indicator()
    return {"status": "success", "data": {"attention_indicator": ""}}
