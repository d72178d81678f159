"""Pydantic schemas for the site list and status views."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel


class SiteStatus(str, Enum):
    SUCCESS = "success"
    PENDING = "pending"
    FAILED = "failed"
    UNKNOWN = "unknown"


class BuildSummary(BaseModel):
    build_id: str
    deploy_id: str | None
    is_done: bool
    has_failed: bool
    created_at: datetime | None


class SiteResponse(BaseModel):
    site_id: str
    name: str | None
    url: str | None
    last_update: datetime | None
    status: SiteStatus
    displayed_at: datetime | None
    inspect_url: str
    latest_build: BuildSummary | None = None


class SiteListResponse(BaseModel):
    status: str = "success"
    data: list[SiteResponse]
    total: int


class MonitorStatus(BaseModel):
    refresh_in_progress: bool
    last_refresh: datetime | None
    wants_notifications: bool
    has_token: bool
    attention_indicator: str | None = None
