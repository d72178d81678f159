"""Failed build alerts and the notification preference."""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from build_monitor.alerts.notifier import Notifier
from build_monitor.db.models import BUILDS, WEBSITES, Build, UserInfoKey
from build_monitor.db.repository import builds_created_since, get_setting, set_setting
from build_monitor.db.store import LocalStore

logger = logging.getLogger(__name__)

NOTIFICATION_ID = "failed-build-notification"
NOTIFICATION_TITLE = "Failed build detected"
NOTIFICATION_MESSAGE = "The latest build failed for:"
ATTENTION_TEXT = "!"

DEFAULT_LOOKBACK = timedelta(hours=24)


@dataclass
class AlertResult:
    build_ids: list[str] = field(default_factory=list)
    notified: bool = False

    @property
    def alerted(self) -> bool:
        return bool(self.build_ids)


def qualifies_for_alert(build: Build) -> bool:
    return build.is_done and build.has_failed and not build.considered_for_alert


async def compose_notification(store: LocalStore, builds: list[Build]) -> tuple[str, str]:
    """Title and body listing the url of every affected site.

    Sites that cannot be looked up are left out of the body rather than
    failing the alert.
    """
    urls: list[str] = []
    for site_id in dict.fromkeys(build.site_id for build in builds):
        try:
            website = await store.get(WEBSITES, site_id)
        except Exception:
            logger.exception("Could not load site %s for the failed build notification", site_id)
            continue
        if website is None or not website.url:
            logger.warning("No url on record for site %s; leaving it out of the notification", site_id)
            continue
        urls.append(website.url)

    body = NOTIFICATION_MESSAGE
    if urls:
        body += "\n" + ", ".join(urls)
    return NOTIFICATION_TITLE, body


async def trigger_failed_build_alerts(
    store: LocalStore,
    notifier: Notifier,
    now: datetime | None = None,
    lookback: timedelta = DEFAULT_LOOKBACK,
) -> AlertResult:
    """Alert once on failed builds created within ``lookback`` that were never considered.

    Every qualifying build is marked as considered whether or not a
    notification went out, so switching notifications on later never
    reports failures that were already seen.
    """
    now = now or datetime.now(timezone.utc)
    builds = [b for b in await builds_created_since(store, now - lookback) if qualifies_for_alert(b)]
    result = AlertResult(build_ids=[b.build_id for b in builds])
    if not builds:
        return result

    notifier.set_attention_indicator(ATTENTION_TEXT)

    if await get_setting(store, UserInfoKey.WANTS_NOTIFICATIONS) is True:
        title, body = await compose_notification(store, builds)
        notifier.raise_notification(NOTIFICATION_ID, title, body)
        result.notified = True

    for build in builds:
        build.considered_for_alert = True
    await store.bulk_upsert(BUILDS, builds)

    logger.info("Alerted on %d failed builds (notification sent: %s)", len(builds), result.notified)
    return result


async def toggle_notifications(store: LocalStore) -> bool:
    """Flip the notification preference; an unset preference becomes True."""
    current = await get_setting(store, UserInfoKey.WANTS_NOTIFICATIONS)
    entry = await set_setting(store, UserInfoKey.WANTS_NOTIFICATIONS, current is not True)
    return entry.value
