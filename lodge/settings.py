import os
from datetime import timedelta

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv()


class Settings(BaseModel):
    # Supabase / PostgREST
    supabase_url: str = Field(default="", alias="SUPABASE_URL")
    supabase_key: str = Field(default="", alias="SUPABASE_KEY")
    request_timeout_seconds: float = Field(default=10.0, alias="REQUEST_TIMEOUT_SECONDS")

    # Cache
    cache_default_ttl_seconds: float = Field(
        default=300.0, alias="CACHE_DEFAULT_TTL_SECONDS"
    )
    cache_max_size: int = Field(default=100, alias="CACHE_MAX_SIZE")
    cache_cleanup_interval_minutes: int = Field(
        default=10, alias="CACHE_CLEANUP_INTERVAL_MINUTES"
    )

    # Circuit breaker
    circuit_failure_threshold: int = Field(default=3, alias="CIRCUIT_FAILURE_THRESHOLD")
    circuit_reset_timeout_seconds: float = Field(
        default=30.0, alias="CIRCUIT_RESET_TIMEOUT_SECONDS"
    )

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    debug: bool = Field(default=False, alias="DEBUG")

    @property
    def cache_default_ttl(self) -> timedelta:
        return timedelta(seconds=self.cache_default_ttl_seconds)

    @property
    def circuit_reset_timeout(self) -> timedelta:
        return timedelta(seconds=self.circuit_reset_timeout_seconds)


def load_settings() -> Settings:
    """Build settings from the process environment (after .env is loaded)."""
    return Settings.model_validate(dict(os.environ))


global_settings = load_settings()
