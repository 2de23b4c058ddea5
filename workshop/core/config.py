"""
Application Settings for Workshop.

All values are read from the environment (prefix WORKSHOP_) or a local .env
file. Settings are loaded once per process and cached:

    from workshop.core.config import get_settings
    settings = get_settings()
    print(settings.slow_request_ms)
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_SLOW_REQUEST_MS = 200


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WORKSHOP_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_name: str = "Workshop"
    app_version: str = "0.1.0"
    debug: bool = False

    # --- Sessions ---
    session_cookie_name: str = "workshop_session"
    session_ttl_hours: int = Field(default=24, gt=0)
    session_purge_seconds: float = Field(default=3600.0, gt=0)
    # Allow plain HTTP for local development
    cookie_secure: bool = False
    login_path: str = "/login"

    # --- Rate limiting (token bucket per client IP) ---
    rate_limit_capacity: int = Field(default=100, gt=0)
    rate_limit_interval_seconds: float = Field(default=60.0, gt=0)
    rate_limit_sweep_seconds: float = Field(default=60.0, gt=0)
    rate_limit_stale_seconds: float = Field(default=300.0, gt=0)

    # --- Request timing ---
    slow_request_ms: int = DEFAULT_SLOW_REQUEST_MS
    perf_ring_size: int = 10000

    # --- Logging ---
    log_level: str = "INFO"
    log_json: bool = False
    log_file: str | None = None

    @field_validator("slow_request_ms", mode="before")
    @classmethod
    def _fallback_slow_request_ms(cls, value):
        """Non-numeric or non-positive overrides fall back to the default."""
        try:
            ms = int(value)
        except (TypeError, ValueError):
            return DEFAULT_SLOW_REQUEST_MS
        return ms if ms > 0 else DEFAULT_SLOW_REQUEST_MS

    @property
    def session_ttl_seconds(self) -> int:
        return self.session_ttl_hours * 3600


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings (read once, then cached)."""
    return Settings()
