"""SSE event formatting and the store change stream behind the live site list."""

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import aclosing

from build_monitor.alerts.notifier import Notifier
from build_monitor.db.models import BUILDS, USER_INFO, WEBSITES
from build_monitor.db.store import LocalStore
from build_monitor.sites.schemas import MonitorStatus, SiteResponse
from build_monitor.sites.service import list_sites, monitor_status

logger = logging.getLogger(__name__)


def _sse(event: str, data: dict) -> str:
    return f"event: {event}\ndata: {json.dumps(data)}\n\n"


def format_sites_changed(sites: list[SiteResponse]) -> str:
    return _sse("sites_changed", {"type": "sites_changed", "sites": [s.model_dump(mode="json") for s in sites]})


def format_status_changed(status: MonitorStatus) -> str:
    return _sse("status_changed", {"type": "status_changed", "status": status.model_dump(mode="json")})


def format_error(error_type: str, message: str) -> str:
    return _sse("error", {"type": "error", "error": {"type": error_type, "message": message}})


async def _changes(
    store: LocalStore,
    notifier: Notifier | None,
    app_url: str,
    is_disconnected: Callable[[], Awaitable[bool]] | None,
) -> AsyncIterator[str]:
    yield format_sites_changed(await list_sites(store, app_url))
    yield format_status_changed(await monitor_status(store, notifier))
    async with aclosing(store.bus.listen({WEBSITES, BUILDS, USER_INFO})) as changes:
        async for changed in changes:
            if is_disconnected is not None and await is_disconnected():
                return
            if WEBSITES in changed or BUILDS in changed:
                yield format_sites_changed(await list_sites(store, app_url))
            if USER_INFO in changed:
                yield format_status_changed(await monitor_status(store, notifier))


async def site_events(
    store: LocalStore,
    notifier: Notifier | None,
    app_url: str,
    is_disconnected: Callable[[], Awaitable[bool]] | None = None,
    limit: int | None = None,
) -> AsyncIterator[str]:
    """Current site list and status, then a fresh copy of whichever changed after each store write.

    Stops after ``limit`` events when one is given. Closing the stream stops
    listening on the store's change bus.
    """
    events = _changes(store, notifier, app_url, is_disconnected)
    sent = 0
    try:
        async for event in events:
            yield event
            sent += 1
            if limit is not None and sent >= limit:
                return
    except Exception as e:
        logger.exception("Error during site event stream")
        yield format_error("stream_error", str(e))
    finally:
        await events.aclose()
