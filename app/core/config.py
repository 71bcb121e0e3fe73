from functools import lru_cache
import json
from typing import Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.core.errors import ConfigurationError


def parse_cors_origins(value: str) -> list[str]:
    if not value:
        return []

    parsed: list[str]
    raw = value.strip()
    if raw.startswith("["):
        try:
            items = json.loads(raw)
            parsed = [str(item).strip() for item in items if str(item).strip()]
        except (TypeError, ValueError):
            parsed = []
    else:
        parsed = [origin.strip() for origin in raw.split(",") if origin.strip()]

    # Preserve order and remove duplicates.
    return list(dict.fromkeys(parsed))


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "eSIM Catalog"
    environment: str = "development"
    api_v1_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Database
    database_url: str
    db_pool_size: int = 5
    db_max_overflow: int = 5
    db_pool_timeout: int = 15
    db_pool_recycle: int = 1200
    db_pool_pre_ping: bool = True
    auto_create_tables: bool = False

    # CORS
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # Sync
    sync_secret_key: Optional[str] = None
    sync_rate_limit: str = "10/minute"
    sync_chunk_size: int = 1000
    sync_transaction_timeout_seconds: float = 300
    # 0 disables the in-process scheduler (e.g. when an external cron drives syncs).
    sync_interval_hours: float = 12

    # Upstream provider APIs
    provider_timeout_seconds: float = 30
    provider_retry_count: int = 2
    airalo_api_url: str = "https://www.airalo.com/api/plans"
    esimcard_api_url: str = "https://esimcard.com/api/affiliate/data-plans"
    yaalo_api_url: str = "https://platform.yaalo.com/api/affiliate/data-plans"
    voyeglobal_api_url: str = "https://voyeglobal.com/wp-content/uploads/json-api/custom_products_api.json"
    yesim_api_url: str = "https://api.yesim.app/api_v0.1/api/prices"
    eur_usd_rate_url: str = "https://cdn.jsdelivr.net/npm/@fawazahmed0/currency-api@latest/v1/currencies/eur.json"
    eur_usd_fallback_rate: float = 1.08


@lru_cache
def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        missing = [".".join(str(part) for part in err["loc"]).upper() for err in exc.errors()]
        raise ConfigurationError(f"Invalid configuration: {', '.join(missing) or 'unknown field'}") from exc
