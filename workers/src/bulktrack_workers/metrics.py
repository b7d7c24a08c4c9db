"""Process-local counters for the worker, served by the health endpoint.

Job outcomes, per-handler timings and per-scope rebuild counts. Everything
runs on one event loop, so the counters are plain attributes.
"""

import time
from dataclasses import asdict, dataclass, field


@dataclass
class TimedStats:
    invocations: int = 0
    successes: int = 0
    failures: int = 0
    total_duration_ms: float = 0.0

    def observe(self, duration_ms: float, success: bool) -> None:
        self.invocations += 1
        self.total_duration_ms += duration_ms
        if success:
            self.successes += 1
        else:
            self.failures += 1


@dataclass
class RebuildStats:
    rebuilds: int = 0
    # Rebuilds that found no sets and emptied the scope
    cleared: int = 0
    total_duration_ms: float = 0.0


@dataclass
class _WorkerMetrics:
    started: float = field(default_factory=time.monotonic)
    jobs_processed: int = 0
    jobs_failed: int = 0
    jobs_dead: int = 0
    handlers: dict[str, TimedStats] = field(default_factory=dict)
    rebuilds: dict[str, RebuildStats] = field(default_factory=dict)


_metrics = _WorkerMetrics()


def record_handler_invocation(handler_name: str, duration_ms: float, success: bool) -> None:
    _metrics.handlers.setdefault(handler_name, TimedStats()).observe(duration_ms, success)


def record_scope_rebuild(scope_kind: str, duration_ms: float, cleared: bool) -> None:
    """Count one "daily" or "weekly" scope rebuild."""
    stats = _metrics.rebuilds.setdefault(scope_kind, RebuildStats())
    stats.rebuilds += 1
    stats.total_duration_ms += duration_ms
    if cleared:
        stats.cleared += 1


def record_job_completed() -> None:
    _metrics.jobs_processed += 1


def record_job_failed() -> None:
    _metrics.jobs_failed += 1


def record_job_dead() -> None:
    _metrics.jobs_dead += 1


def get_metrics() -> dict:
    """JSON-ready snapshot."""
    return {
        "uptime_seconds": round(time.monotonic() - _metrics.started, 1),
        "jobs_processed": _metrics.jobs_processed,
        "jobs_failed": _metrics.jobs_failed,
        "jobs_dead": _metrics.jobs_dead,
        "handlers": {name: asdict(stats) for name, stats in _metrics.handlers.items()},
        "rebuilds": {kind: asdict(stats) for kind, stats in _metrics.rebuilds.items()},
    }
