from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

# Get the backend directory (parent of finance/)
# In Docker: /app/finance/config.py → /app/.env
# Locally: backend/finance/config.py → backend/.env
BACKEND_ROOT = Path(__file__).parent.parent
ENV_FILE = BACKEND_ROOT / ".env"


class Settings(BaseSettings):
    # Database Configuration
    database_url: str = "sqlite+aiosqlite:///./finance.db"

    # CORS Configuration (comma-separated string to avoid Pydantic JSON-parsing issues with List from env vars)
    cors_origins: str = "http://localhost:4200,http://localhost:3000"

    # Logging
    log_level: str = "INFO"

    # ECB reference rate feeds
    ecb_recent_feed_url: str = "https://www.ecb.europa.eu/stats/eurofxref/eurofxref-hist-90d.xml"
    ecb_historical_feed_url: str = "https://www.ecb.europa.eu/stats/eurofxref/eurofxref-hist.xml"
    feed_timeout_seconds: float = 30.0

    # Rate sync schedule (ECB publishes around 16:00 CET, we pick it up overnight)
    scheduler_enabled: bool = True
    sync_on_startup: bool = True
    sync_hour: int = 3
    sync_minute: int = 0
    sync_timezone: str = "UTC"

    # Retry / backfill policy
    sync_max_attempts: int = 3
    sync_retry_base_seconds: float = 2.0
    gap_lookback_days: int = 90
    sync_failure_alert_threshold: int = 3

    # Conversion cache
    rate_cache_ttl_seconds: float = 3600.0
    rate_cache_max_entries: int = 10000

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    @property
    def cors_origins_list(self) -> list:
        return [origin.strip() for origin in self.cors_origins.split(",")]


# Create a global settings instance
settings = Settings()
