"""Retry budget and backoff for failed notifications."""

from dataclasses import dataclass
from datetime import datetime, timedelta

from ..core.config import Settings


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff: backoff_seconds * multiplier ** attempt."""

    max_retries: int = 3
    backoff_seconds: int = 60
    multiplier: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "RetryPolicy":
        return cls(
            max_retries=settings.notification_max_retries,
            backoff_seconds=settings.notification_retry_backoff_seconds,
            multiplier=settings.notification_retry_backoff_multiplier,
        )

    def delay_for(self, attempt: int) -> timedelta:
        return timedelta(seconds=self.backoff_seconds * self.multiplier ** max(attempt, 0))

    def next_retry_at(self, retry_count: int, max_retries: int, now: datetime) -> datetime | None:
        """When the next retry may run, or None once the budget is spent."""
        if retry_count >= max_retries:
            return None
        return now + self.delay_for(retry_count)


DEFAULT_RETRY_POLICY = RetryPolicy()
