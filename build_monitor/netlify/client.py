"""Build host API client: site listing and latest build per site."""

import logging
from abc import ABC, abstractmethod
from typing import Any

import httpx

from build_monitor.config.settings import get_settings
from build_monitor.errors import RemoteAPIError

logger = logging.getLogger(__name__)


class BuildHostClient(ABC):
    @abstractmethod
    async def list_sites(self) -> list[dict]:
        """Return [{"id", "name", "url", "updated_at"}, ...] for every site of the user."""
        ...

    @abstractmethod
    async def list_builds(self, site_id: str, per_page: int = 1) -> list[dict]:
        """Return [{"id", "deploy_id", "created_at", "done", "error"}, ...], most recent first."""
        ...

    async def aclose(self) -> None:
        return None

    async def __aenter__(self) -> "BuildHostClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()


class NetlifyClient(BuildHostClient):
    def __init__(
        self,
        access_token: str,
        base_url: str | None = None,
        sites_page_size: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self._sites_page_size = sites_page_size or settings.SITES_PAGE_SIZE
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.NETLIFY_API_URL).rstrip("/"),
            headers={"Authorization": f"Bearer {access_token}"},
            transport=transport,
        )

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        try:
            response = await self._client.get(path, params=params)
        except httpx.HTTPError as exc:
            raise RemoteAPIError(f"Request to {path} failed: {exc}", url=path) from exc

        if not response.is_success:
            raise RemoteAPIError(
                f"{path} answered with status code {response.status_code}",
                status_code=response.status_code,
                url=str(response.url),
            )
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteAPIError(f"{path} returned a body that is not JSON", response.status_code, str(response.url)) from exc

    async def list_sites(self) -> list[dict]:
        payload = await self._get("/sites", {"page": 1, "per_page": self._sites_page_size})
        if not isinstance(payload, list):
            raise RemoteAPIError("Site listing is not a list", url="/sites")
        return payload

    async def list_builds(self, site_id: str, per_page: int = 1) -> list[dict]:
        path = f"/sites/{site_id}/builds"
        payload = await self._get(path, {"page": 1, "per_page": per_page})
        if not isinstance(payload, list):
            raise RemoteAPIError(f"Build listing for {site_id} is not a list", url=path)
        return payload

    async def aclose(self) -> None:
        await self._client.aclose()


def get_build_host_client(access_token: str) -> BuildHostClient:
    return NetlifyClient(access_token)
