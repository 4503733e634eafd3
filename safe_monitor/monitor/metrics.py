"""
Fleet pass metrics.

Tracks each scheduler pass (counts, errors, duration) and keeps a bounded
in-memory history for the metrics endpoint.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class PassStatus(str, Enum):
    """Status of a fleet pass."""

    SUCCESS = "success"
    PARTIAL = "partial"  # Pass ran, some wallets reported errors
    FAILED = "failed"  # Pass could not run (e.g. wallet list unavailable)


@dataclass
class PassRunMetrics:
    """Metrics for a single pass."""

    run_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: PassStatus = PassStatus.SUCCESS

    wallets_checked: int = 0
    wallets_failed: int = 0
    transactions_new: int = 0
    notifications_sent: int = 0

    duration_seconds: float = 0.0

    errors: List[str] = field(default_factory=list)
    error_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["started_at"] = self.started_at.isoformat()
        data["ended_at"] = self.ended_at.isoformat() if self.ended_at else None
        data["status"] = self.status.value
        return data


@dataclass
class AggregateMetrics:
    """Aggregated metrics across recent passes."""

    total_runs: int = 0
    successful_runs: int = 0
    partial_runs: int = 0
    failed_runs: int = 0

    total_wallets_checked: int = 0
    total_new_transactions: int = 0
    total_notifications: int = 0
    total_errors: int = 0

    avg_duration_seconds: float = 0.0

    last_run: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ["last_run", "last_success", "last_failure"]:
            if data[key]:
                data[key] = data[key].isoformat()
        return data


class MonitorMetrics:
    """
    In-memory metrics tracker for fleet passes.

    Passes may overlap (cron and manual trigger), so each run is tracked by
    the object returned from ``start_run`` rather than a single current run.
    """

    def __init__(self, history_size: int = 100):
        self.history_size = history_size
        self._history: List[PassRunMetrics] = []
        self._run_counter = 0

    def start_run(self) -> PassRunMetrics:
        self._run_counter += 1
        now = datetime.now(timezone.utc)
        return PassRunMetrics(
            run_id=f"pass-{now.strftime('%Y%m%d-%H%M%S')}-{self._run_counter}",
            started_at=now,
        )

    def end_run(self, run: PassRunMetrics, status: PassStatus) -> None:
        run.ended_at = datetime.now(timezone.utc)
        run.status = status
        run.error_count = len(run.errors)
        run.duration_seconds = (run.ended_at - run.started_at).total_seconds()

        self._history.append(run)
        if len(self._history) > self.history_size:
            self._history = self._history[-self.history_size :]

    def get_last_run(self) -> Optional[PassRunMetrics]:
        return self._history[-1] if self._history else None

    def get_history(self, limit: Optional[int] = None) -> List[PassRunMetrics]:
        """Recent passes, newest first."""
        history = list(reversed(self._history))
        if limit:
            history = history[:limit]
        return history

    def get_aggregate_metrics(self, hours: Optional[int] = None) -> AggregateMetrics:
        runs = self._history
        if hours:
            cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
            runs = [r for r in runs if r.started_at >= cutoff]

        if not runs:
            return AggregateMetrics()

        metrics = AggregateMetrics(total_runs=len(runs))
        for run in runs:
            if run.status == PassStatus.SUCCESS:
                metrics.successful_runs += 1
            elif run.status == PassStatus.PARTIAL:
                metrics.partial_runs += 1
            elif run.status == PassStatus.FAILED:
                metrics.failed_runs += 1

        metrics.total_wallets_checked = sum(r.wallets_checked for r in runs)
        metrics.total_new_transactions = sum(r.transactions_new for r in runs)
        metrics.total_notifications = sum(r.notifications_sent for r in runs)
        metrics.total_errors = sum(r.error_count for r in runs)
        metrics.avg_duration_seconds = (
            sum(r.duration_seconds for r in runs) / metrics.total_runs
        )

        metrics.last_run = runs[-1].started_at
        for run in reversed(runs):
            if run.status == PassStatus.SUCCESS and not metrics.last_success:
                metrics.last_success = run.started_at
            if run.status == PassStatus.FAILED and not metrics.last_failure:
                metrics.last_failure = run.started_at
            if metrics.last_success and metrics.last_failure:
                break

        return metrics

    def get_success_rate(self, hours: Optional[int] = None) -> float:
        """Share of passes without errors, 0.0 to 1.0."""
        agg = self.get_aggregate_metrics(hours)
        if agg.total_runs == 0:
            return 0.0
        return agg.successful_runs / agg.total_runs

    def clear_history(self) -> None:
        self._history.clear()
