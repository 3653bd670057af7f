"""
Transfer poller configuration.

Built once at startup from Settings and passed into the poller, so a running
poller never reads ambient configuration.
"""

from datetime import timedelta

import structlog
from pydantic import BaseModel, Field, field_validator, model_validator

from transfer_ack.core.config import Settings

logger = structlog.get_logger(__name__)

MIN_POLL_INTERVAL_SECONDS = 5
LOOKBACK_INTERVAL_FACTOR = 3


class PollerConfig(BaseModel):
    """Main transfer poller configuration."""

    # Polling behavior
    poll_interval_seconds: int = Field(
        default=10, ge=1, description="Seconds between polling runs"
    )
    lookback_minutes: int = Field(
        default=60, ge=1, description="Minutes of history re-queried every tick"
    )
    page_size: int = Field(
        default=50, ge=1, le=1000, description="Events requested per account per tick"
    )

    # Operational settings
    enabled: bool = Field(default=True, description="Enable/disable poller")
    run_on_startup: bool = Field(
        default=True, description="Run a tick immediately when the loop starts"
    )
    history_size: int = Field(
        default=100, ge=1, description="Poll runs kept in memory for metrics"
    )

    @field_validator("poll_interval_seconds")
    @classmethod
    def _floor_interval(cls, value: int) -> int:
        if value < MIN_POLL_INTERVAL_SECONDS:
            logger.warning(
                "poller.interval_clamped",
                requested=value,
                applied=MIN_POLL_INTERVAL_SECONDS,
            )
            return MIN_POLL_INTERVAL_SECONDS
        return value

    @model_validator(mode="after")
    def _check_lookback(self) -> "PollerConfig":
        # one failed tick must not open a gap in coverage
        required = LOOKBACK_INTERVAL_FACTOR * self.poll_interval_seconds
        if self.lookback_minutes * 60 < required:
            raise ValueError(
                f"lookback_minutes={self.lookback_minutes} is shorter than "
                f"{LOOKBACK_INTERVAL_FACTOR}x poll_interval_seconds "
                f"({required}s)"
            )
        return self

    def get_lookback_timedelta(self) -> timedelta:
        """Get lookback period as timedelta."""
        return timedelta(minutes=self.lookback_minutes)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PollerConfig":
        return cls(
            poll_interval_seconds=settings.POLL_INTERVAL_SECONDS,
            lookback_minutes=settings.POLL_LOOKBACK_MINUTES,
            page_size=settings.PROVIDER_PAGE_SIZE,
            enabled=settings.POLLER_ENABLED,
        )
