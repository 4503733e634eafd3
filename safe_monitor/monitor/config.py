"""
Monitor configuration.

Defines concurrency limits, per-call timeouts, retry and circuit breaker
policies for the Safe source, and the notification policy.
"""

from pydantic import BaseModel, Field

from safe_monitor.core.config import Settings


class RetryConfig(BaseModel):
    """Configuration for retry behavior with exponential backoff."""

    max_attempts: int = Field(default=3, ge=1, description="Maximum retry attempts")
    initial_delay: float = Field(
        default=1.0, gt=0, description="Initial delay in seconds"
    )
    max_delay: float = Field(default=20.0, gt=0, description="Maximum delay in seconds")
    exponential_base: float = Field(default=2.0, gt=1, description="Backoff multiplier")
    jitter: bool = Field(
        default=True, description="Add random jitter to prevent thundering herd"
    )


class CircuitBreakerConfig(BaseModel):
    """Configuration for the per-chain circuit breaker."""

    failure_threshold: int = Field(
        default=5, ge=1, description="Consecutive failures before opening circuit"
    )
    success_threshold: int = Field(
        default=1, ge=1, description="Successes in half-open state to close circuit"
    )
    timeout: float = Field(
        default=60.0, gt=0, description="Seconds before attempting reset"
    )


class MonitorConfig(BaseModel):
    """Fleet scheduler and reconciliation engine configuration."""

    concurrency_limit: int = Field(
        default=5, ge=1, le=50, description="Wallets reconciled concurrently"
    )
    interval_seconds: int = Field(
        default=300, ge=10, description="Seconds between automated passes"
    )

    source_timeout_seconds: float = Field(default=30.0, gt=0)
    store_timeout_seconds: float = Field(default=10.0, gt=0)
    sink_timeout_seconds: float = Field(default=30.0, gt=0)

    retry: RetryConfig = Field(default_factory=RetryConfig)
    circuit_breaker: CircuitBreakerConfig = Field(default_factory=CircuitBreakerConfig)

    notify_on_progress: bool = Field(
        default=False,
        description="Notify again when a notified transaction gains confirmations",
    )
    retention_days: int = Field(
        default=30, ge=1, description="Days to keep records no poll has refreshed"
    )

    @classmethod
    def from_settings(cls, settings: Settings) -> "MonitorConfig":
        return cls(
            concurrency_limit=settings.MONITOR_CONCURRENCY,
            interval_seconds=settings.MONITOR_INTERVAL_SECONDS,
            source_timeout_seconds=settings.SOURCE_TIMEOUT_SECONDS,
            store_timeout_seconds=settings.STORE_TIMEOUT_SECONDS,
            sink_timeout_seconds=settings.SINK_TIMEOUT_SECONDS,
            notify_on_progress=settings.NOTIFY_ON_PROGRESS,
            retention_days=settings.SEEN_RETENTION_DAYS,
        )
