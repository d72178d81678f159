"""Read views over the local store: websites with their latest build, and monitor status."""

from build_monitor.alerts.notifier import Notifier
from build_monitor.db.models import Build, UserInfoKey, Website
from build_monitor.db.repository import get_setting, latest_builds_by_site, websites_by_last_update
from build_monitor.db.store import LocalStore
from build_monitor.sites.schemas import BuildSummary, MonitorStatus, SiteResponse, SiteStatus


def site_status(build: Build | None) -> SiteStatus:
    if build is None:
        return SiteStatus.UNKNOWN
    # A failure wins over a pending flag
    if build.has_failed:
        return SiteStatus.FAILED
    if not build.is_done:
        return SiteStatus.PENDING
    return SiteStatus.SUCCESS


def inspect_url(app_url: str, website: Website, build: Build | None) -> str:
    slug = website.name or website.site_id
    if build is not None and build.deploy_id:
        return f"{app_url}/sites/{slug}/deploys/{build.deploy_id}"
    return f"{app_url}/sites/{slug}/overview"


def to_site_response(app_url: str, website: Website, build: Build | None) -> SiteResponse:
    return SiteResponse(
        site_id=website.site_id,
        name=website.name,
        url=website.url,
        last_update=website.last_update,
        status=site_status(build),
        displayed_at=build.created_at if build is not None else website.last_update,
        inspect_url=inspect_url(app_url, website, build),
        latest_build=BuildSummary(**build.model_dump()) if build is not None else None,
    )


async def list_sites(store: LocalStore, app_url: str) -> list[SiteResponse]:
    """Websites, most recently updated first, each with its latest build."""
    latest = await latest_builds_by_site(store)
    return [
        to_site_response(app_url, website, latest.get(website.site_id))
        for website in await websites_by_last_update(store)
    ]


async def monitor_status(store: LocalStore, notifier: Notifier | None = None) -> MonitorStatus:
    return MonitorStatus(
        refresh_in_progress=await get_setting(store, UserInfoKey.REFRESH_IN_PROGRESS) is True,
        last_refresh=await get_setting(store, UserInfoKey.LAST_REFRESH),
        wants_notifications=await get_setting(store, UserInfoKey.WANTS_NOTIFICATIONS) is True,
        has_token=bool(await get_setting(store, UserInfoKey.ACCESS_TOKEN)),
        attention_indicator=getattr(notifier, "indicator", None),
    )
