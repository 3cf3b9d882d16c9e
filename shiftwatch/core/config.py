# shiftwatch/core/config.py
from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Global application configuration.

    Values are loaded from environment variables at runtime (and from a local
    `.env` file when present).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "ShiftWatch"
    APP_ENV: str = Field("local", description="Environment name: local/dev/stage/prod")

    DB_URL: str = Field(
        "sqlite+aiosqlite:///./shiftwatch.db",
        description="SQLAlchemy-compatible async database URL",
    )
    AUTO_CREATE_SCHEMA: bool = Field(
        default=True,
        description="Create missing tables when the application starts.",
    )

    LOG_LEVEL: str = Field(
        default="INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR).",
    )

    # --- Scheduling ---
    DEFAULT_TIMEZONE: str = Field(
        default="UTC",
        description="IANA timezone used for schedules that do not define one.",
    )
    DEFAULT_SHIFT_DURATION_MINUTES: int = Field(
        default=120,
        description="Shift duration applied when a schedule is created without one.",
    )
    DEFAULT_SLOT_LIMIT: int = Field(
        default=1000,
        description="Result cap used when a slot query passes limit=0 or no limit.",
    )
    DEFAULT_QUERY_WINDOW_DAYS: int = Field(
        default=14,
        description="Window length used by the HTTP layer when `to` is omitted.",
    )
    MAX_QUERY_WINDOW_DAYS: int = Field(
        default=366,
        description="Longest availability window accepted, in days.",
    )
    CANCEL_CUTOFF_HOURS: int = Field(
        default=2,
        description=(
            "Self-service cancellation is refused when the shift starts within "
            "this many hours."
        ),
    )


@lru_cache()
def get_settings() -> Settings:
    """
    Cached accessor for application settings.

    Settings are read and validated once per process.
    """
    return Settings()
