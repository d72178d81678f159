"""Merge build host payloads into the local store."""

import logging
from typing import Any

from build_monitor.db.models import BUILDS, WEBSITES, Build, Website
from build_monitor.db.store import LocalStore
from build_monitor.db.validators import validate
from build_monitor.errors import RecordValidationError
from build_monitor.netlify.client import BuildHostClient

logger = logging.getLogger(__name__)


def website_from_remote(payload: dict[str, Any]) -> Website:
    """Map a site listing entry to a Website; unusable optional fields become None."""
    return validate(WEBSITES, {
        "site_id": payload.get("id"),
        "name": payload.get("name"),
        "url": payload.get("url"),
        "last_update": payload.get("updated_at"),
    })


async def sync_websites(store: LocalStore, client: BuildHostClient) -> int:
    """Replace the local websites collection with the build host's full listing.

    Sites missing from the listing are dropped locally. Returns the number of
    websites stored.
    """
    websites = []
    for payload in await client.list_sites():
        if not isinstance(payload, dict):
            logger.warning("Skipping site listing entry that is not an object: %r", payload)
            continue
        try:
            websites.append(website_from_remote(payload))
        except RecordValidationError as exc:
            logger.warning("Skipping site %r from listing: %s", payload.get("name"), exc)

    stored = await store.replace_all(WEBSITES, websites)
    logger.info("Synchronized %d websites", stored)
    return stored


async def merge_remote_build(store: LocalStore, site_id: str, payload: dict[str, Any]) -> Build:
    """Turn the latest-build payload for ``site_id`` into a Build ready to upsert.

    A build already on record keeps its site, creation time and alert flag;
    only its status fields follow the payload.
    """
    status = {
        "is_done": payload.get("done") is True,
        "has_failed": payload.get("error") is not None,
        "deploy_id": payload.get("deploy_id"),
    }
    build_id = payload.get("id")
    existing = await store.get(BUILDS, build_id) if isinstance(build_id, str) and build_id else None

    if existing is None:
        return validate(BUILDS, {
            "build_id": build_id,
            "site_id": site_id,
            "created_at": payload.get("created_at"),
            "considered_for_alert": False,
            **status,
        })
    return validate(BUILDS, {**existing.model_dump(), **status})
