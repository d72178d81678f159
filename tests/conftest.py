"""Shared test fixtures."""

from datetime import datetime, timedelta, timezone

import httpx
import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from build_monitor.alerts.notifier import Notifier
from build_monitor.config.settings import get_settings
from build_monitor.db.store import LocalStore
from build_monitor.netlify.client import NetlifyClient

API_URL = "https://api.test/api/v1"
TOKEN = "a" * 43
NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.indicator = ""
        self.indicator_calls: list[str] = []
        self.notifications: list[tuple[str, str, str]] = []

    def set_attention_indicator(self, text: str) -> None:
        self.indicator_calls.append(text)
        self.indicator = text

    def clear_attention_indicator(self) -> None:
        self.indicator = ""

    def raise_notification(self, notification_id: str, title: str, body: str) -> None:
        self.notifications.append((notification_id, title, body))


class FakeBuildHost:
    """In-memory build host API served through httpx.MockTransport."""

    def __init__(self, token: str = TOKEN):
        self.token = token
        self.sites: list[dict] = []
        self.builds: dict[str, list[dict]] = {}
        self.failing: set[str] = set()
        self.requests: list[httpx.Request] = []

    def add_site(self, site_id: str, updated_at: datetime | None, builds: list[dict] | None = None, **extra) -> dict:
        site = {
            "id": site_id,
            "name": f"site-{site_id}",
            "url": f"https://{site_id}.example.app",
            "updated_at": updated_at.isoformat() if updated_at else None,
            **extra,
        }
        self.sites.append(site)
        if builds is not None:
            self.builds[site_id] = builds
        return site

    @staticmethod
    def build(build_id: str, created_at: datetime, done: bool = True, error: str | None = None, deploy_id: str | None = None) -> dict:
        return {
            "id": build_id,
            "deploy_id": deploy_id or f"deploy-{build_id}",
            "created_at": created_at.isoformat(),
            "done": done,
            "error": error,
        }

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.headers.get("Authorization") != f"Bearer {self.token}":
            return httpx.Response(401, json={"code": 401, "message": "Access Denied"})

        parts = request.url.path.rstrip("/").split("/")
        if parts[-1] == "sites":
            return httpx.Response(200, json=self.sites)
        if parts[-1] == "builds":
            site_id = parts[-2]
            if site_id in self.failing:
                return httpx.Response(500, json={"message": "boom"})
            per_page = int(request.url.params.get("per_page", "100"))
            return httpx.Response(200, json=self.builds.get(site_id, [])[:per_page])
        return httpx.Response(404, json={"message": "Not Found"})

    def client(self, access_token: str) -> NetlifyClient:
        return NetlifyClient(access_token, base_url=API_URL, transport=httpx.MockTransport(self.handler))

    @property
    def listing_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/sites")]

    @property
    def build_requests(self) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path.endswith("/builds")]


def hours_ago(hours: float, now: datetime = NOW) -> datetime:
    return now - timedelta(hours=hours)


@pytest_asyncio.fixture
async def store(tmp_path):
    local = await LocalStore.open(tmp_path / "monitor.sqlite3")
    yield local
    await local.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def remote():
    return FakeBuildHost()


@pytest.fixture
def app_env(tmp_path, monkeypatch):
    monkeypatch.setenv("DATABASE_PATH", str(tmp_path / "app.sqlite3"))
    monkeypatch.setenv("SCHEDULER_ENABLED", "false")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def client(app_env, remote, notifier):
    from build_monitor.main import app

    with TestClient(app) as test_client:
        app.state.orchestrator.client_factory = remote.client
        app.state.orchestrator.notifier = notifier
        app.state.notifier = notifier
        yield test_client
