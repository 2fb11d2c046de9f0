"""Configuration models for core domain components.

This module provides Pydantic-based configuration classes that consolidate
settings for the reconciliation managers, enabling dependency injection and
testability. Invalid values fail at construction time, never mid-tick.
"""

from pydantic import BaseModel, Field, model_validator


class ReconcilerConfig(BaseModel):
    """Configuration for PollingReconciler behavior.

    Attributes:
        polling_interval: Seconds between reconciler ticks
        stale_threshold: Seconds without a trusted update before a job is stale
        max_concurrent_polls: Upper bound on corrective fetches in flight
        enabled: Kill switch; a disabled reconciler never dispatches fetches
        fetch_timeout: Seconds before a corrective fetch counts as failed
    """

    polling_interval: float = Field(
        default=10.0,
        gt=0,
        description="Interval in seconds between reconciler ticks"
    )

    stale_threshold: float = Field(
        default=30.0,
        gt=0,
        description="Age in seconds beyond which a job's last known status is untrustworthy"
    )

    max_concurrent_polls: int = Field(
        default=5,
        gt=0,
        description="Maximum number of corrective fetches outstanding at once"
    )

    enabled: bool = Field(
        default=True,
        description="Disable to stop issuing corrective fetches entirely"
    )

    fetch_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for a single corrective fetch"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @classmethod
    def from_app_settings(cls, settings) -> "ReconcilerConfig":
        """Factory method to construct config from JobPulseSettings instance."""
        return cls(
            polling_interval=settings.JOBPULSE_POLLING_INTERVAL,
            stale_threshold=settings.JOBPULSE_STALE_THRESHOLD,
            max_concurrent_polls=settings.JOBPULSE_MAX_CONCURRENT_POLLS,
            enabled=settings.JOBPULSE_POLLING_ENABLED,
            fetch_timeout=settings.JOBPULSE_FETCH_TIMEOUT,
        )


class HealthMonitorConfig(BaseModel):
    """Configuration for HealthMonitor probing and backoff.

    Delay after the n-th consecutive failure is
    ``min(base_delay * 2 ** (n - 1), max_delay)``.
    """

    base_delay: float = Field(
        default=30.0,
        gt=0,
        description="Delay in seconds before re-probing after the first failure"
    )

    max_delay: float = Field(
        default=240.0,
        gt=0,
        description="Ceiling for the exponential backoff delay"
    )

    probe_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout in seconds for a single health probe"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @model_validator(mode="after")
    def _check_ceiling(self) -> "HealthMonitorConfig":
        if self.max_delay < self.base_delay:
            raise ValueError("max_delay must be greater than or equal to base_delay")
        return self

    @classmethod
    def from_app_settings(cls, settings) -> "HealthMonitorConfig":
        """Factory method to construct config from JobPulseSettings instance."""
        return cls(
            base_delay=settings.JOBPULSE_HEALTH_BASE_DELAY,
            max_delay=settings.JOBPULSE_HEALTH_MAX_DELAY,
            probe_timeout=settings.JOBPULSE_HEALTH_PROBE_TIMEOUT,
        )
