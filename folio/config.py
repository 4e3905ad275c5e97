"""Application settings, loaded from the environment or a local ``.env`` file."""

from functools import lru_cache

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="FOLIO_",
        extra="ignore",
    )

    # ── Runtime ────────────────────────────────────
    log_level: str = "INFO"

    # ── Persistence ────────────────────────────────
    database_url: str = "sqlite+aiosqlite:///./folio.db"
    auto_create_schema: bool = True

    # ── Completion service ─────────────────────────
    completion_api_key: SecretStr = SecretStr("")
    completion_base_url: str = "https://api.openai.com/v1"
    completion_model: str = "gpt-4o-mini"
    completion_temperature: float = 0.7
    completion_max_tokens: int = 500
    completion_timeout: float = 30.0  # seconds

    # Response cache (seconds)
    completion_cache_enabled: bool = True
    completion_cache_ttl: float = 300.0

    # Throttling and retries
    rate_limit_max_requests: int = 20  # per 60 second window
    retry_max_attempts: int = 3
    retry_backoff_factor: float = 1.5
    retry_base_delay: float = 1.0  # seconds

    # ── Recommendations ────────────────────────────
    recommendation_cache_ttl: float = 24 * 60 * 60
    recommendation_dedupe_in_flight: bool = True


@lru_cache
def get_settings() -> Settings:
    """Process-wide settings, read from the environment once."""
    return Settings()


settings = get_settings()
