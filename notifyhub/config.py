"""Engine configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Configuration values loaded from ``NOTIFYHUB_*`` environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="NOTIFYHUB_",
        env_file=ENV_FILE,
        env_file_encoding=ENV_FILE_ENCODING,
        extra="ignore",
    )

    app_timezone: str = Field(
        default="UTC",
        description="IANA name or UTC offset used for quiet hours and date grouping",
    )
    database_url: str = Field(
        default="sqlite:///./notifyhub.db",
        description="Database connection URL used by SQLAlchemy for the persistence collaborator",
        min_length=1,
    )
    max_visible_toasts: int = Field(
        default=3, description="Maximum number of toasts shown at once", gt=0
    )
    tick_interval_ms: int = Field(
        default=100, description="Interval of the shared countdown tick", gt=0
    )
    default_toast_duration_ms: int = Field(
        default=5000, description="Countdown duration for normal and low toasts", gt=0
    )
    critical_duration_multiplier: float = Field(
        default=0.6,
        description="Multiplier applied to the default duration for urgent and high toasts",
        gt=0,
    )
    dismiss_distance_threshold: float = Field(
        default=100.0, description="Drag distance (px) that dismisses a toast", gt=0
    )
    dismiss_velocity_threshold: float = Field(
        default=0.5, description="Drag velocity (px/ms) that dismisses a toast", gt=0
    )
    retry_initial_delay: float = Field(
        default=1.0, description="First backoff delay in seconds", gt=0
    )
    retry_multiplier: float = Field(
        default=2.0, description="Exponential backoff growth factor", ge=1
    )
    retry_max_delay: float = Field(
        default=30.0, description="Upper bound for a single backoff delay", gt=0
    )
    retry_max_attempts: int = Field(
        default=5,
        description="Consecutive failures tolerated before a source is marked degraded",
        gt=0,
    )
    low_balance_threshold: float = Field(
        default=1000.0, description="Wallet balance below which a debit raises an alert"
    )
    chat_preview_length: int = Field(
        default=100, description="Maximum characters of a chat message shown in a notification", gt=0
    )

    @model_validator(mode="after")
    def _validate_durations(self) -> "Settings":
        if self.critical_duration_multiplier > 1:
            raise ValueError(
                "NOTIFYHUB_CRITICAL_DURATION_MULTIPLIER must not exceed 1"
            )
        if self.retry_max_delay < self.retry_initial_delay:
            raise ValueError(
                "NOTIFYHUB_RETRY_MAX_DELAY must be greater than the initial delay"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
