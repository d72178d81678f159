"""Application settings loaded from environment variables."""

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Local store
    DATABASE_PATH: Path = Path.home() / ".build-monitor" / "monitor.sqlite3"

    # Build host API
    NETLIFY_API_URL: str = "https://api.netlify.com/api/v1"
    NETLIFY_APP_URL: str = "https://app.netlify.com"
    NETLIFY_AUTHORIZE_URL: str = "https://app.netlify.com/authorize"
    NETLIFY_CLIENT_ID: str = ""
    SITES_PAGE_SIZE: int = 1000
    ACCESS_TOKEN_MIN_LENGTH: int = 43

    # Rate limiting: at most BUILD_BATCH_SIZE requests per cooldown window
    BUILD_BATCH_SIZE: int = 100
    BUILD_BATCH_COOLDOWN_SECONDS: float = 60.0

    # Polling and alerting windows
    RECENT_UPDATE_WINDOW_HOURS: float = 2.0
    ALERT_LOOKBACK_HOURS: float = 24.0

    # Periodic refresh
    SCHEDULER_ENABLED: bool = True
    REFRESH_INTERVAL_SECONDS: float = 120.0
    REFRESH_ON_STARTUP: bool = True

    # CORS
    ALLOWED_ORIGINS: str = "http://localhost:3000,http://localhost:5173"

    LOG_LEVEL: str = "INFO"

    @property
    def allowed_origins_list(self) -> list[str]:
        return [o.strip() for o in self.ALLOWED_ORIGINS.split(",") if o.strip()]

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache()
def get_settings() -> Settings:
    return Settings()
