"""
Transfer poller metrics.

Every tick becomes one ``PollRunMetrics`` record. Completed records are kept
in a bounded deque and folded into ``AggregateMetrics`` on demand for the
status endpoint, the metrics endpoint and the CLI.
"""

from collections import Counter, deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional


class PollStatus(str, Enum):
    """Outcome of one tick."""

    SUCCESS = "success"
    PARTIAL = "partial"  # some accounts failed
    FAILED = "failed"  # every account failed, or the directory was unavailable
    SKIPPED = "skipped"  # no pollable accounts


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class PollRunMetrics:
    """Counters for a single tick across all accounts."""

    run_id: str
    started_at: datetime
    ended_at: Optional[datetime] = None
    status: PollStatus = PollStatus.SUCCESS

    # search window shared by every account in the tick
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None

    accounts_processed: int = 0
    accounts_failed: int = 0
    failed_account_ids: List[int] = field(default_factory=list)

    events_seen: int = 0
    events_inserted: int = 0
    events_duplicate: int = 0
    events_skipped: int = 0

    duration_seconds: float = 0.0
    api_calls: int = 0
    api_latency_seconds: float = 0.0

    errors: List[str] = field(default_factory=list)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(
            started_at=_iso(self.started_at),
            ended_at=_iso(self.ended_at),
            window_start=_iso(self.window_start),
            window_end=_iso(self.window_end),
            status=self.status.value,
            error_count=self.error_count,
        )
        return data


@dataclass
class AggregateMetrics:
    """Totals over a set of completed ticks."""

    total_runs: int = 0
    successful_runs: int = 0
    partial_runs: int = 0
    failed_runs: int = 0
    skipped_runs: int = 0

    total_events_seen: int = 0
    total_events_inserted: int = 0
    total_duplicates: int = 0
    total_account_failures: int = 0
    total_errors: int = 0

    avg_duration_seconds: float = 0.0
    avg_api_latency_seconds: float = 0.0

    # accounts that failed in the most recent tick
    failing_account_ids: List[int] = field(default_factory=list)

    first_run: Optional[datetime] = None
    last_run: Optional[datetime] = None
    last_success: Optional[datetime] = None
    last_failure: Optional[datetime] = None

    @classmethod
    def from_runs(cls, runs: List[PollRunMetrics]) -> "AggregateMetrics":
        if not runs:
            return cls()

        by_status = Counter(run.status for run in runs)
        count = len(runs)
        latest = runs[-1]

        return cls(
            total_runs=count,
            successful_runs=by_status[PollStatus.SUCCESS],
            partial_runs=by_status[PollStatus.PARTIAL],
            failed_runs=by_status[PollStatus.FAILED],
            skipped_runs=by_status[PollStatus.SKIPPED],
            total_events_seen=sum(run.events_seen for run in runs),
            total_events_inserted=sum(run.events_inserted for run in runs),
            total_duplicates=sum(run.events_duplicate for run in runs),
            total_account_failures=sum(run.accounts_failed for run in runs),
            total_errors=sum(run.error_count for run in runs),
            avg_duration_seconds=sum(run.duration_seconds for run in runs) / count,
            avg_api_latency_seconds=sum(run.api_latency_seconds for run in runs) / count,
            failing_account_ids=list(latest.failed_account_ids),
            first_run=runs[0].started_at,
            last_run=latest.started_at,
            last_success=_latest_start(runs, PollStatus.SUCCESS),
            last_failure=_latest_start(runs, PollStatus.FAILED),
        )

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key in ("first_run", "last_run", "last_success", "last_failure"):
            data[key] = _iso(data[key])
        return data


def _latest_start(runs: Iterable[PollRunMetrics], status: PollStatus) -> Optional[datetime]:
    for run in reversed(list(runs)):
        if run.status == status:
            return run.started_at
    return None


class PollerMetrics:
    """
    In-memory metrics tracker for the transfer poller.

    Only one tick is in flight at a time (the poller serializes them), so the
    recorder methods write to the current run without locking. Calls made
    while no run is active are ignored.
    """

    def __init__(self, history_size: int = 100):
        self._history: Deque[PollRunMetrics] = deque(maxlen=history_size)
        self._current_run: Optional[PollRunMetrics] = None
        self._run_counter = 0

    @property
    def history_size(self) -> int:
        return self._history.maxlen or 0

    def start_run(self) -> str:
        """Open a new run and return its id."""
        self._run_counter += 1
        now = datetime.now(timezone.utc)
        run_id = f"poll-{now:%Y%m%d-%H%M%S}-{self._run_counter}"
        self._current_run = PollRunMetrics(run_id=run_id, started_at=now)
        return run_id

    def end_run(self, status: PollStatus = PollStatus.SUCCESS) -> Optional[PollRunMetrics]:
        """Close the open run with ``status`` and append it to the history."""
        run, self._current_run = self._current_run, None
        if run is None:
            return None

        run.status = status
        run.ended_at = datetime.now(timezone.utc)
        run.duration_seconds = (run.ended_at - run.started_at).total_seconds()
        self._history.append(run)
        return run

    def record_window(self, start: datetime, end: datetime):
        if self._current_run:
            self._current_run.window_start = start
            self._current_run.window_end = end

    def record_api_call(self, latency_seconds: float):
        if self._current_run:
            self._current_run.api_calls += 1
            self._current_run.api_latency_seconds += latency_seconds

    def record_account(self, seen: int, inserted: int, duplicate: int, skipped: int):
        """Add one account's stored counts to the open run."""
        run = self._current_run
        if run is None:
            return
        run.accounts_processed += 1
        run.events_seen += seen
        run.events_inserted += inserted
        run.events_duplicate += duplicate
        run.events_skipped += skipped

    def record_account_failure(self, account_id: int, error: str):
        if self._current_run:
            self._current_run.accounts_failed += 1
            self._current_run.failed_account_ids.append(account_id)
            self.record_error(f"account {account_id}: {error}")

    def record_error(self, error: str):
        if self._current_run:
            self._current_run.errors.append(error)

    def get_current_run(self) -> Optional[PollRunMetrics]:
        return self._current_run

    def get_last_run(self) -> Optional[PollRunMetrics]:
        return self._history[-1] if self._history else None

    def get_history(self, limit: Optional[int] = None) -> List[PollRunMetrics]:
        """Completed runs, newest first."""
        newest_first = list(reversed(self._history))
        return newest_first[:limit] if limit else newest_first

    def _runs_since(self, hours: Optional[int]) -> List[PollRunMetrics]:
        if not hours:
            return list(self._history)
        cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
        return [run for run in self._history if run.started_at >= cutoff]

    def get_aggregate_metrics(self, hours: Optional[int] = None) -> AggregateMetrics:
        """Aggregate the completed runs, optionally only the last ``hours``."""
        return AggregateMetrics.from_runs(self._runs_since(hours))

    def get_success_rate(self, hours: Optional[int] = None) -> float:
        """
        Share of runs that succeeded, between 0.0 and 1.0.

        Skipped runs count as runs but not as successes.
        """
        aggregate = self.get_aggregate_metrics(hours)
        if not aggregate.total_runs:
            return 0.0
        return aggregate.successful_runs / aggregate.total_runs
