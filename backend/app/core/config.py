"""Application configuration managed via environment variables."""
from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "Smart Healthcare Recommendation Backend"
    debug: bool = False
    log_level: str = "INFO"
    database_url: str = "postgresql+psycopg2://postgres@localhost:5432/smart_healthcare"
    opik_enabled: bool = False
    opik_api_key: str | None = None
    opik_project: str = "smart-healthcare"
    # Recommendation cache (session-scoped keyed store).
    cache_provider: str = "memory"
    cache_ttl_seconds: int | None = None
    # Reject unknown survey day names instead of dropping them.
    strict_survey_days: bool = False


@lru_cache
def get_settings() -> Settings:
    """Return a cached Settings instance."""
    return Settings()


settings = get_settings()
