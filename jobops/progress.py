"""Pipeline progress: a last-value cache fanned out to in-process subscribers."""
from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Callable

from jobops.log import get_logger

log = get_logger(__name__)

STEPS: tuple[str, ...] = (
    "idle", "crawling", "importing", "scoring",
    "processing", "completed", "failed", "cancelled",
)


@dataclass
class PipelineProgress:
    step: str = "idle"
    message: str = "Ready"
    detail: str | None = None
    jobs_discovered: int = 0
    jobs_scored: int = 0
    jobs_processed: int = 0
    total_to_process: int = 0
    current_job: dict[str, str] | None = None
    error: str | None = None
    started_at: str | None = None
    completed_at: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


Listener = Callable[[PipelineProgress], None]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class ProgressBroadcaster:
    """Holds the latest snapshot; late subscribers see it, never history.

    Listeners are called synchronously on the updating thread with a copy of
    the merged snapshot. A raising listener is logged and skipped.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._current = PipelineProgress()
        self._listeners: list[Listener] = []

    def get(self) -> PipelineProgress:
        with self._lock:
            return replace(self._current)

    def update(self, **changes: Any) -> PipelineProgress:
        unknown = set(changes) - set(PipelineProgress.__dataclass_fields__)
        if unknown:
            raise ValueError(f"Unknown progress fields: {', '.join(sorted(unknown))}")
        if "step" in changes and changes["step"] not in STEPS:
            raise ValueError(f"Unknown progress step: {changes['step']!r}")
        with self._lock:
            self._current = replace(self._current, **changes)
            snapshot = self._current
            listeners = list(self._listeners)
        self._notify(listeners, snapshot)
        return replace(snapshot)

    def _notify(self, listeners: list[Listener], snapshot: PipelineProgress) -> None:
        for listener in listeners:
            try:
                listener(replace(snapshot))
            except Exception:
                log.exception("Progress listener %r failed", listener)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener*, deliver the current snapshot, return an unsubscribe handle."""
        with self._lock:
            self._listeners.append(listener)
            snapshot = self._current
        self._notify([listener], snapshot)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def reset(self) -> None:
        with self._lock:
            self._current = PipelineProgress()

    # --- step helpers --------------------------------------------------------

    def start_crawling(self) -> None:
        self.update(
            step="crawling",
            message="Fetching jobs from sources...",
            detail="Running crawler",
            started_at=_now(),
            completed_at=None,
            error=None,
            current_job=None,
            jobs_discovered=0,
            jobs_scored=0,
            jobs_processed=0,
            total_to_process=0,
        )

    def crawling_complete(self, jobs_found: int) -> None:
        self.update(
            step="importing",
            message=f"Found {jobs_found} jobs, importing...",
            detail="Deduplicating and saving",
            jobs_discovered=jobs_found,
        )

    def import_complete(self, created: int, skipped: int) -> None:
        self.update(
            step="scoring",
            message=f"Imported {created} new jobs ({skipped} duplicates). Scoring...",
            detail="Evaluating job fit",
        )

    def scoring_job(self, index: int, total: int, title: str) -> None:
        self.update(
            step="scoring",
            message=f"Scoring jobs ({index}/{total})...",
            detail=title,
            jobs_scored=index,
        )

    def scoring_complete(self, total_scored: int, top_n: int) -> None:
        self.update(
            step="processing",
            message=f"Scored {total_scored} jobs. Processing top {top_n}...",
            detail="Generating tailored resumes",
            jobs_scored=total_scored,
            total_to_process=top_n,
        )

    def processing_job(self, index: int, total: int, job: dict[str, str], processed: int) -> None:
        self.update(
            step="processing",
            message=f"Processing job {index}/{total}...",
            detail=f"{job.get('title', '')} @ {job.get('employer', '')}",
            jobs_processed=processed,
            total_to_process=total,
            current_job=job,
        )

    def generating_summary(self, title: str) -> None:
        self.update(detail=f"Generating summary for {title}...")

    def generating_pdf(self, title: str) -> None:
        self.update(detail=f"Generating PDF for {title}...")

    def job_complete(self, processed: int, total: int) -> None:
        self.update(jobs_processed=processed, detail=f"Completed {processed}/{total} jobs")

    def job_failed(self, title: str, error: str) -> None:
        self.update(detail=f"Failed: {title}", error=error)

    def complete(self, discovered: int, processed: int) -> None:
        self.update(
            step="completed",
            message=f"Pipeline complete! Discovered {discovered} jobs, processed {processed}.",
            detail="Ready for review",
            completed_at=_now(),
            current_job=None,
        )

    def failed(self, error: str) -> None:
        self.update(
            step="failed",
            message="Pipeline failed",
            detail=error,
            error=error,
            completed_at=_now(),
            current_job=None,
        )

    def cancelled(self) -> None:
        self.update(
            step="cancelled",
            message="Pipeline cancelled",
            detail="Stopped before the next step",
            completed_at=_now(),
            current_job=None,
        )


# Process-wide instance shared by the orchestrator and its observers.
progress = ProgressBroadcaster()
