"""Site list, monitor status and their live event stream."""

from fastapi import APIRouter, Depends, Query, Request
from starlette.responses import StreamingResponse

from build_monitor.alerts.notifier import Notifier
from build_monitor.config.settings import get_settings
from build_monitor.db.store import LocalStore
from build_monitor.dependencies import get_notifier, get_store
from build_monitor.sites.schemas import SiteListResponse
from build_monitor.sites.service import list_sites, monitor_status
from build_monitor.sites.streaming import site_events

router = APIRouter(prefix="/api/v1", tags=["Sites"])


@router.get("/sites", response_model=SiteListResponse, summary="List sites", description="Websites ordered by last update, each with its latest build and derived status.")
async def sites(store: LocalStore = Depends(get_store)):
    data = await list_sites(store, get_settings().NETLIFY_APP_URL)
    return SiteListResponse(data=data, total=len(data))


@router.get("/status", summary="Monitor status", description="Refresh flag, last refresh time, notification preference and badge text.")
async def status(store: LocalStore = Depends(get_store), notifier: Notifier = Depends(get_notifier)):
    current = await monitor_status(store, notifier)
    return {"status": "success", "data": current.model_dump(mode="json")}


@router.get("/sites/events", summary="Live updates", description="SSE stream re-sending the site list or status whenever the local store changes.")
async def events(
    request: Request,
    limit: int | None = Query(None, ge=1, description="Close the stream after this many events"),
    store: LocalStore = Depends(get_store),
    notifier: Notifier = Depends(get_notifier),
):
    return StreamingResponse(
        site_events(store, notifier, get_settings().NETLIFY_APP_URL, request.is_disconnected, limit),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive", "X-Accel-Buffering": "no"},
    )
