"""Data access helpers shared by the sync pipeline, alerts and the HTTP views."""

from datetime import datetime
from typing import Any

from build_monitor.db.models import ALL_COLLECTIONS, BUILDS, USER_INFO, WEBSITES, Build, UserInfoEntry, UserInfoKey, Website
from build_monitor.db.store import FieldRange, LocalStore


async def get_setting(store: LocalStore, key: UserInfoKey) -> Any:
    entry = await store.get(USER_INFO, key)
    return entry.value if entry else None


async def set_setting(store: LocalStore, key: UserInfoKey, value: Any) -> UserInfoEntry:
    return await store.upsert(USER_INFO, {"key": key, "value": value})


async def clear_all(store: LocalStore) -> None:
    for collection in ALL_COLLECTIONS:
        await store.clear(collection)


async def websites_by_last_update(store: LocalStore) -> list[Website]:
    return await store.get_all(WEBSITES, order_by="last_update", descending=True)


async def site_ids_with_builds(store: LocalStore) -> set[str]:
    return await store.distinct(BUILDS, "site_id")


async def builds_for_site(store: LocalStore, site_id: str) -> list[Build]:
    """Builds for ``site_id``, newest first."""
    return await store.query(BUILDS, where={"site_id": site_id}, order_by="created_at", descending=True)


async def latest_build_for_site(store: LocalStore, site_id: str) -> Build | None:
    builds = await store.query(BUILDS, where={"site_id": site_id}, order_by="created_at", descending=True, limit=1)
    return builds[0] if builds else None


async def latest_builds_by_site(store: LocalStore) -> dict[str, Build]:
    latest: dict[str, Build] = {}
    for build in await store.get_all(BUILDS, order_by="created_at"):
        # NULL timestamps sort first, so the newest dated build wins
        latest[build.site_id] = build
    return latest


async def builds_created_since(store: LocalStore, since: datetime) -> list[Build]:
    return await store.query(BUILDS, field_range=FieldRange("created_at", above=since))
