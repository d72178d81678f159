"""Single-flight refresh: sync websites, poll builds, raise alerts."""

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

from build_monitor.alerts.notifier import Notifier
from build_monitor.alerts.service import trigger_failed_build_alerts
from build_monitor.auth.credentials import get_access_token
from build_monitor.config.settings import Settings, get_settings
from build_monitor.db.models import UserInfoKey
from build_monitor.db.repository import get_setting, set_setting
from build_monitor.db.store import LocalStore
from build_monitor.netlify.client import BuildHostClient, get_build_host_client
from build_monitor.sync.detector import select_sites_to_poll
from build_monitor.sync.fetcher import BatchedBuildFetcher
from build_monitor.sync.reconciler import sync_websites

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RefreshOrchestrator:
    """Runs the refresh pipeline, at most one run at a time.

    The ``refresh_in_progress`` user info flag is the shared guard: a request
    arriving while it is set does nothing, and every run clears it and
    records ``last_refresh`` on the way out, whatever happened inside.
    """

    def __init__(
        self,
        store: LocalStore,
        notifier: Notifier,
        client_factory: Callable[[str], BuildHostClient] = get_build_host_client,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], datetime] = _utcnow,
    ):
        self.store = store
        self.notifier = notifier
        self.client_factory = client_factory
        self.settings = settings or get_settings()
        self._sleep = sleep
        self._now = now
        self._guard = asyncio.Lock()
        self._running = False

    async def in_progress(self) -> bool:
        return self._running or await self._flag_set()

    async def _flag_set(self) -> bool:
        return await get_setting(self.store, UserInfoKey.REFRESH_IN_PROGRESS) is True

    async def reset_stale_flag(self) -> None:
        """Clear a flag left set by a process that died mid-refresh."""
        if not self._running and await self._flag_set():
            logger.warning("Clearing a refresh flag left over from a previous run")
            await set_setting(self.store, UserInfoKey.REFRESH_IN_PROGRESS, False)

    @asynccontextmanager
    async def refresh_window(self) -> AsyncIterator[bool]:
        """Yield True if this caller now owns the refresh, False if one is already running.

        Ownership is held in process for the whole window. The persisted flag
        only mirrors it for readers, so clearing user info mid-run does not
        release the window.
        """
        async with self._guard:
            if await self.in_progress():
                acquired = False
            else:
                self._running = True
                acquired = True

        if not acquired:
            yield False
            return
        try:
            await set_setting(self.store, UserInfoKey.REFRESH_IN_PROGRESS, True)
            yield True
        finally:
            try:
                await set_setting(self.store, UserInfoKey.REFRESH_IN_PROGRESS, False)
                await set_setting(self.store, UserInfoKey.LAST_REFRESH, self._now())
            finally:
                self._running = False

    async def refresh(self) -> bool:
        """Run one refresh. Returns False when skipped (no token, or already running).

        Pipeline errors are logged, never raised.
        """
        token = await get_access_token(self.store)
        if not token:
            logger.info("No access token on record; skipping refresh")
            return False

        async with self.refresh_window() as acquired:
            if not acquired:
                logger.info("Refresh already in progress; ignoring request")
                return False
            logger.info("Refresh started")
            try:
                await self._run_pipeline(token)
            except Exception:
                logger.exception("Refresh failed")
            else:
                logger.info("Refresh finished")
        return True

    async def _run_pipeline(self, token: str) -> None:
        settings = self.settings
        async with self.client_factory(token) as client:
            await sync_websites(self.store, client)

            site_ids = await select_sites_to_poll(
                self.store,
                now=self._now(),
                window=timedelta(hours=settings.RECENT_UPDATE_WINDOW_HOURS),
            )
            fetcher = BatchedBuildFetcher(
                self.store,
                client,
                batch_size=settings.BUILD_BATCH_SIZE,
                cooldown_seconds=settings.BUILD_BATCH_COOLDOWN_SECONDS,
                sleep=self._sleep,
            )
            report = await fetcher.fetch(site_ids)
            if not report.ok:
                logger.warning(
                    "Pulled builds for %d of %d sites; %d requests failed",
                    report.stored, len(site_ids), report.errors,
                )

        await trigger_failed_build_alerts(
            self.store,
            self.notifier,
            now=self._now(),
            lookback=timedelta(hours=settings.ALERT_LOOKBACK_HOURS),
        )
