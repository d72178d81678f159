"""Tests for failed build alerts and the notification preference."""

import pytest

from build_monitor.alerts.notifier import LoggingNotifier
from build_monitor.alerts.service import (
    ATTENTION_TEXT,
    NOTIFICATION_ID,
    NOTIFICATION_TITLE,
    toggle_notifications,
    trigger_failed_build_alerts,
)
from build_monitor.db.models import BUILDS, WEBSITES, UserInfoKey
from build_monitor.db.repository import get_setting, set_setting

from conftest import NOW, hours_ago


async def add_build(store, build_id, site_id="s1", created_hours_ago=1, done=True, failed=True, considered=False):
    await store.upsert(BUILDS, {
        "build_id": build_id,
        "site_id": site_id,
        "is_done": done,
        "has_failed": failed,
        "considered_for_alert": considered,
        "created_at": hours_ago(created_hours_ago),
    })


@pytest.mark.asyncio
async def test_failed_build_alerts_exactly_once(store, notifier):
    await set_setting(store, UserInfoKey.WANTS_NOTIFICATIONS, True)
    await store.upsert(WEBSITES, {"site_id": "s1", "url": "https://s1.example.app"})
    await add_build(store, "b1")

    first = await trigger_failed_build_alerts(store, notifier, now=NOW)
    second = await trigger_failed_build_alerts(store, notifier, now=NOW)

    assert first.build_ids == ["b1"]
    assert first.notified
    assert not second.alerted
    assert notifier.indicator == ATTENTION_TEXT
    assert notifier.indicator_calls == [ATTENTION_TEXT]
    assert len(notifier.notifications) == 1
    notification_id, title, body = notifier.notifications[0]
    assert notification_id == NOTIFICATION_ID
    assert title == NOTIFICATION_TITLE
    assert "https://s1.example.app" in body
    assert (await store.get(BUILDS, "b1")).considered_for_alert is True


@pytest.mark.asyncio
async def test_builds_outside_lookback_are_ignored(store, notifier):
    await add_build(store, "old", created_hours_ago=25)

    result = await trigger_failed_build_alerts(store, notifier, now=NOW)

    assert not result.alerted
    assert notifier.indicator == ""
    assert (await store.get(BUILDS, "old")).considered_for_alert is False


@pytest.mark.asyncio
async def test_disabled_notifications_still_consume_the_alert(store, notifier):
    await set_setting(store, UserInfoKey.WANTS_NOTIFICATIONS, False)
    await add_build(store, "b1")

    result = await trigger_failed_build_alerts(store, notifier, now=NOW)

    assert result.build_ids == ["b1"]
    assert not result.notified
    assert notifier.indicator == ATTENTION_TEXT
    assert notifier.notifications == []
    assert (await store.get(BUILDS, "b1")).considered_for_alert is True

    # Switching notifications on later does not replay the failure
    await set_setting(store, UserInfoKey.WANTS_NOTIFICATIONS, True)
    assert not (await trigger_failed_build_alerts(store, notifier, now=NOW)).alerted
    assert notifier.notifications == []


@pytest.mark.asyncio
async def test_unset_preference_does_not_notify(store, notifier):
    await add_build(store, "b1")

    result = await trigger_failed_build_alerts(store, notifier, now=NOW)

    assert result.alerted
    assert notifier.notifications == []


@pytest.mark.asyncio
async def test_pending_and_successful_builds_are_not_alerted(store, notifier):
    await add_build(store, "pending", done=False, failed=False)
    await add_build(store, "running-with-error", done=False, failed=True)
    await add_build(store, "ok", done=True, failed=False)

    result = await trigger_failed_build_alerts(store, notifier, now=NOW)

    assert not result.alerted
    for build_id in ("pending", "running-with-error", "ok"):
        assert (await store.get(BUILDS, build_id)).considered_for_alert is False


@pytest.mark.asyncio
async def test_one_notification_lists_each_site_once(store, notifier):
    await set_setting(store, UserInfoKey.WANTS_NOTIFICATIONS, True)
    await store.bulk_upsert(WEBSITES, [
        {"site_id": "s1", "url": "https://s1.example.app"},
        {"site_id": "s2", "url": "https://s2.example.app"},
    ])
    await add_build(store, "b1", site_id="s1")
    await add_build(store, "b2", site_id="s1", created_hours_ago=2)
    await add_build(store, "b3", site_id="s2")

    result = await trigger_failed_build_alerts(store, notifier, now=NOW)

    assert sorted(result.build_ids) == ["b1", "b2", "b3"]
    assert len(notifier.notifications) == 1
    body = notifier.notifications[0][2]
    assert body.count("https://s1.example.app") == 1
    assert body.count("https://s2.example.app") == 1


@pytest.mark.asyncio
async def test_missing_website_is_left_out_of_the_body(store, notifier):
    await set_setting(store, UserInfoKey.WANTS_NOTIFICATIONS, True)
    await add_build(store, "b1", site_id="deleted")

    result = await trigger_failed_build_alerts(store, notifier, now=NOW)

    assert result.notified
    assert "deleted" not in notifier.notifications[0][2]
    assert (await store.get(BUILDS, "b1")).considered_for_alert is True


@pytest.mark.asyncio
async def test_toggle_notifications(store):
    assert await get_setting(store, UserInfoKey.WANTS_NOTIFICATIONS) is None
    assert await toggle_notifications(store) is True
    assert await toggle_notifications(store) is False
    assert await get_setting(store, UserInfoKey.WANTS_NOTIFICATIONS) is False


def test_logging_notifier_tracks_indicator(caplog):
    notifier = LoggingNotifier()
    notifier.set_attention_indicator("!")
    notifier.raise_notification(NOTIFICATION_ID, NOTIFICATION_TITLE, "body")
    assert notifier.indicator == "!"
    assert NOTIFICATION_TITLE in caplog.text
    notifier.clear_attention_indicator()
    assert notifier.indicator == ""
