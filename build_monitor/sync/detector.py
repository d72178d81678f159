"""Decide which sites are worth polling for a fresh build this cycle.

A site is polled when it changed recently or when no build of it is on
record yet. Sites that changed long ago and already have a build are
skipped to stay under the build host's rate limit, so a build started on
such a site outside the window can be missed.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from build_monitor.db.models import WEBSITES, Website
from build_monitor.db.repository import site_ids_with_builds
from build_monitor.db.store import LocalStore

DEFAULT_RECENT_WINDOW = timedelta(hours=2)


def is_recently_updated(website: Website, now: datetime, window: timedelta = DEFAULT_RECENT_WINDOW) -> bool:
    if website.last_update is None:
        return False
    return now - website.last_update <= window


def select_site_ids(
    websites: Iterable[Website],
    now: datetime,
    sites_with_builds: set[str],
    window: timedelta = DEFAULT_RECENT_WINDOW,
) -> list[str]:
    """Return the ids to poll, in listing order and without duplicates."""
    selected: dict[str, None] = {}
    for website in websites:
        if is_recently_updated(website, now, window) or website.site_id not in sites_with_builds:
            selected[website.site_id] = None
    return list(selected)


async def select_sites_to_poll(
    store: LocalStore,
    now: datetime | None = None,
    window: timedelta = DEFAULT_RECENT_WINDOW,
) -> list[str]:
    websites = await store.get_all(WEBSITES)
    return select_site_ids(
        websites,
        now or datetime.now(timezone.utc),
        await site_ids_with_builds(store),
        window,
    )
