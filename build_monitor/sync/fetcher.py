"""Fetch the latest build of many sites without exceeding the build host's rate limit.

Requests go out in batches: every site of a batch is queried concurrently,
the batch's results are stored, and a fixed cooldown separates one batch
from the next. A failing site is counted and logged; it never aborts its
batch or the run.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import TypeVar

from build_monitor.db.models import BUILDS, Build
from build_monitor.db.store import LocalStore
from build_monitor.netlify.client import BuildHostClient
from build_monitor.sync.reconciler import merge_remote_build

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_BATCH_SIZE = 100
DEFAULT_COOLDOWN_SECONDS = 60.0


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    if size < 1:
        raise ValueError("Batch size must be at least 1")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


@dataclass
class FetchReport:
    batches: int = 0
    stored: int = 0
    without_builds: int = 0
    errors: int = 0

    @property
    def ok(self) -> bool:
        return self.errors == 0


class BatchedBuildFetcher:
    def __init__(
        self,
        store: LocalStore,
        client: BuildHostClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
        cooldown_seconds: float = DEFAULT_COOLDOWN_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.store = store
        self.client = client
        self.batch_size = batch_size
        self.cooldown_seconds = cooldown_seconds
        self._sleep = sleep

    async def fetch_latest_build(self, site_id: str) -> Build | None:
        """Latest build of ``site_id`` merged with what is on record, or None when it has none."""
        builds = await self.client.list_builds(site_id, per_page=1)
        if not builds:
            return None
        return await merge_remote_build(self.store, site_id, builds[0])

    async def fetch(self, site_ids: Iterable[str]) -> FetchReport:
        batches = chunked(list(dict.fromkeys(site_ids)), self.batch_size)
        report = FetchReport(batches=len(batches))

        for index, batch in enumerate(batches, start=1):
            results = await asyncio.gather(
                *(self.fetch_latest_build(site_id) for site_id in batch),
                return_exceptions=True,
            )

            builds = []
            for site_id, result in zip(batch, results):
                if isinstance(result, Exception):
                    report.errors += 1
                    logger.warning("Could not pull the latest build of site %s: %s", site_id, result)
                elif isinstance(result, BaseException):
                    raise result
                elif result is None:
                    report.without_builds += 1
                else:
                    builds.append(result)

            report.stored += await self.store.bulk_upsert(BUILDS, builds)
            logger.info("Build batch %d/%d: %d sites, %d builds stored", index, len(batches), len(batch), len(builds))

            if index < len(batches):
                await self._sleep(self.cooldown_seconds)

        return report
