"""Exponential backoff policy shared by subscriptions and persistence writes."""

from __future__ import annotations

from dataclasses import dataclass

from notifyhub.config import Settings, get_settings


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule: ``initial_delay * multiplier ** (attempt - 1)``, capped."""

    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0
    max_attempts: int = 5

    def delay_for(self, attempt: int) -> float:
        """Return the delay in seconds before retry number ``attempt`` (1-based)."""

        if attempt < 1:
            return 0.0
        try:
            delay = self.initial_delay * (self.multiplier ** (attempt - 1))
        except OverflowError:
            return self.max_delay
        return min(delay, self.max_delay)

    def exhausted(self, failures: int) -> bool:
        return failures >= self.max_attempts

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "RetryPolicy":
        settings = settings or get_settings()
        return cls(
            initial_delay=settings.retry_initial_delay,
            multiplier=settings.retry_multiplier,
            max_delay=settings.retry_max_delay,
            max_attempts=settings.retry_max_attempts,
        )


__all__ = ["RetryPolicy"]
