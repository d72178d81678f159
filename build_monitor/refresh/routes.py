"""Request signal endpoints: refresh, clear all data."""

from fastapi import APIRouter, BackgroundTasks, Depends

from build_monitor.auth.credentials import get_access_token
from build_monitor.dependencies import get_dispatcher, get_orchestrator
from build_monitor.refresh.messages import MessageDispatcher, MessageId
from build_monitor.refresh.orchestrator import RefreshOrchestrator

router = APIRouter(prefix="/api/v1", tags=["Refresh"])


@router.post("/refresh", status_code=202, summary="Request a refresh", description="Start a refresh in the background unless one is running or no access token is stored.")
async def refresh(
    background_tasks: BackgroundTasks,
    orchestrator: RefreshOrchestrator = Depends(get_orchestrator),
    dispatcher: MessageDispatcher = Depends(get_dispatcher),
):
    if not await get_access_token(orchestrator.store):
        return {"status": "success", "data": {"accepted": False, "reason": "no_access_token"}}
    if await orchestrator.in_progress():
        return {"status": "success", "data": {"accepted": False, "reason": "refresh_in_progress"}}
    background_tasks.add_task(dispatcher.dispatch, MessageId.REQUEST_REFRESH)
    return {"status": "success", "data": {"accepted": True}}


@router.delete("/data", status_code=204, summary="Clear all data", description="Delete user info, websites and builds from the local store.")
async def clear_data(dispatcher: MessageDispatcher = Depends(get_dispatcher)):
    await dispatcher.dispatch(MessageId.REQUEST_CLEAR_ALL)
