"""Persist jobs and pipeline runs in CSV tables with file locking."""
from __future__ import annotations

import csv
import fcntl
import json
import threading
import uuid
from dataclasses import asdict, fields
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Iterable

from jobops.errors import InvalidTransitionError, NotFoundError
from jobops.log import get_logger
from jobops.models import (
    ImportResult,
    Job,
    JobInput,
    JobStatus,
    PipelineRun,
    PipelineRunStatus,
    can_transition,
)

log = get_logger(__name__)

JOB_HEADERS: list[str] = [f.name for f in fields(Job)]
RUN_HEADERS: list[str] = [f.name for f in fields(PipelineRun)]

_JSON_FIELDS = {"tailored_skills", "selected_project_ids"}
_FLOAT_FIELDS = {"suitability_score"}
_INT_FIELDS = {"jobs_discovered", "jobs_processed"}

# Fields the pipeline may enrich without going through a status transition.
ENRICHMENT_FIELDS: frozenset[str] = frozenset({
    "suitability_score", "suitability_reason", "tailored_summary",
    "tailored_headline", "tailored_skills", "selected_project_ids",
    "pdf_path", "job_description",
})


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


def _encode(name: str, value: Any) -> str:
    if value is None:
        return ""
    if name in _JSON_FIELDS:
        return json.dumps(value)
    if isinstance(value, (JobStatus, PipelineRunStatus)):
        return value.value
    return str(value)


def _decode(name: str, raw: str) -> Any:
    if raw == "":
        return 0 if name in _INT_FIELDS else None
    if name in _JSON_FIELDS:
        return json.loads(raw)
    if name in _FLOAT_FIELDS:
        return float(raw)
    if name in _INT_FIELDS:
        return int(raw)
    return raw


class _CsvTable:
    """Whole-file read/rewrite table guarded by a process lock and flock."""

    def __init__(self, path: Path, headers: list[str]) -> None:
        self.path = Path(path)
        self.headers = headers
        self._mutex = threading.RLock()

    def ensure(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            with open(self.path, "w", newline="", encoding="utf-8") as f:
                _lock(f)
                csv.writer(f).writerow(self.headers)
                _unlock(f)
            log.info("Created table → %s", self.path.name)

    def read(self) -> list[dict[str, str]]:
        self.ensure()
        with open(self.path, "r", newline="", encoding="utf-8") as f:
            _lock(f, exclusive=False)
            rows = list(csv.DictReader(f))
            _unlock(f)
        return rows

    def write(self, rows: list[dict[str, str]]) -> None:
        with open(self.path, "w", newline="", encoding="utf-8") as f:
            _lock(f)
            w = csv.DictWriter(f, fieldnames=self.headers)
            w.writeheader()
            w.writerows(rows)
            _unlock(f)

    def append(self, row: dict[str, str]) -> None:
        self.ensure()
        with open(self.path, "a", newline="", encoding="utf-8") as f:
            _lock(f)
            csv.DictWriter(f, fieldnames=self.headers).writerow(row)
            _unlock(f)


def _row_to_job(row: dict[str, str]) -> Job:
    values = {name: _decode(name, row.get(name, "")) for name in JOB_HEADERS}
    values["status"] = JobStatus(values["status"] or JobStatus.DISCOVERED.value)
    values["discovered_at"] = values["discovered_at"] or ""
    values["created_at"] = values["created_at"] or ""
    values["updated_at"] = values["updated_at"] or ""
    return Job(**values)


def _job_to_row(job: Job) -> dict[str, str]:
    return {name: _encode(name, value) for name, value in asdict(job).items()}


def _row_to_run(row: dict[str, str]) -> PipelineRun:
    values = {name: _decode(name, row.get(name, "")) for name in RUN_HEADERS}
    values["status"] = PipelineRunStatus(values["status"])
    return PipelineRun(**values)


def _run_to_row(run: PipelineRun) -> dict[str, str]:
    return {name: _encode(name, value) for name, value in asdict(run).items()}


class JobRepository:
    """Jobs keyed by their unique posting URL.

    Status only changes through :meth:`update_status`, which enforces the
    job lifecycle; :meth:`update_fields` touches enrichment fields only.
    """

    def __init__(self, path: Path) -> None:
        self._table = _CsvTable(path, JOB_HEADERS)

    def list(self, statuses: Iterable[JobStatus] | None = None) -> list[Job]:
        jobs = [_row_to_job(r) for r in self._table.read()]
        if statuses:
            wanted = set(statuses)
            jobs = [j for j in jobs if j.status in wanted]
        return sorted(jobs, key=lambda j: j.discovered_at, reverse=True)

    def get(self, job_id: str) -> Job | None:
        for row in self._table.read():
            if row.get("id") == job_id:
                return _row_to_job(row)
        return None

    def require(self, job_id: str) -> Job:
        job = self.get(job_id)
        if job is None:
            raise NotFoundError(f"Job not found: {job_id}")
        return job

    def get_by_url(self, job_url: str) -> Job | None:
        for row in self._table.read():
            if row.get("job_url") == job_url:
                return _row_to_job(row)
        return None

    def create_or_get_by_url(self, data: JobInput) -> Job:
        """Insert a posting, or return the stored one when its URL is known."""
        with self._table._mutex:
            existing = self.get_by_url(data.job_url)
            if existing is not None:
                return existing
            now = _now()
            job = Job(
                id=str(uuid.uuid4()),
                **asdict(data),
                status=JobStatus.DISCOVERED,
                discovered_at=now,
                created_at=now,
                updated_at=now,
            )
            self._table.append(_job_to_row(job))
            log.debug("Stored job %s (%s)", job.id, job.job_url)
            return job

    def bulk_import(self, inputs: Iterable[JobInput]) -> ImportResult:
        result = ImportResult()
        with self._table._mutex:
            known = {r.get("job_url") for r in self._table.read()}
            for data in inputs:
                if not data.job_url or data.job_url in known:
                    result.skipped += 1
                    continue
                self.create_or_get_by_url(data)
                known.add(data.job_url)
                result.created += 1
        return result

    def jobs_for_processing(self, limit: int = 10) -> list[Job]:
        """Discovered jobs that carry a description, newest first."""
        jobs = [
            j for j in self.list([JobStatus.DISCOVERED])
            if j.job_description
        ]
        return jobs[:limit]

    def _mutate(self, job_id: str, changes: dict[str, Any]) -> Job:
        with self._table._mutex:
            rows = self._table.read()
            for i, row in enumerate(rows):
                if row.get("id") != job_id:
                    continue
                job = _row_to_job(row)
                status = changes.get("status")
                if status is not None and status != job.status:
                    if not can_transition(job.status, status):
                        raise InvalidTransitionError(job_id, job.status.value, status.value)
                for key, value in changes.items():
                    setattr(job, key, value)
                job.updated_at = _now()
                rows[i] = _job_to_row(job)
                self._table.write(rows)
                return job
        raise NotFoundError(f"Job not found: {job_id}")

    def update_fields(self, job_id: str, **changes: Any) -> Job:
        unknown = set(changes) - ENRICHMENT_FIELDS
        if unknown:
            raise ValueError(f"Not enrichment fields: {', '.join(sorted(unknown))}")
        return self._mutate(job_id, changes)

    def update_status(self, job_id: str, status: JobStatus | str, **changes: Any) -> Job:
        status = JobStatus(status)
        unknown = set(changes) - ENRICHMENT_FIELDS
        if unknown:
            raise ValueError(f"Not enrichment fields: {', '.join(sorted(unknown))}")
        changes["status"] = status
        now = _now()
        if status == JobStatus.PROCESSING:
            changes["processed_at"] = now
        elif status == JobStatus.APPLIED:
            changes["applied_at"] = now
        job = self._mutate(job_id, changes)
        log.debug("Job %s → %s", job_id, status.value)
        return job

    def stats(self) -> dict[str, int]:
        counts = {s.value: 0 for s in JobStatus}
        for job in self.list():
            counts[job.status.value] += 1
        return counts


class PipelineRunRepository:
    """Audit trail of pipeline runs. The orchestrator's lock, not this table,
    decides whether a run is in flight."""

    def __init__(self, path: Path) -> None:
        self._table = _CsvTable(path, RUN_HEADERS)

    def create(self) -> PipelineRun:
        run = PipelineRun(id=str(uuid.uuid4()), started_at=_now())
        self._table.append(_run_to_row(run))
        return run

    def get(self, run_id: str) -> PipelineRun | None:
        for row in self._table.read():
            if row.get("id") == run_id:
                return _row_to_run(row)
        return None

    def list(self) -> list[PipelineRun]:
        runs = [_row_to_run(r) for r in self._table.read()]
        return sorted(runs, key=lambda r: r.started_at, reverse=True)

    def latest(self) -> PipelineRun | None:
        runs = self.list()
        return runs[0] if runs else None

    def update(self, run_id: str, **changes: Any) -> PipelineRun:
        with self._table._mutex:
            rows = self._table.read()
            for i, row in enumerate(rows):
                if row.get("id") != run_id:
                    continue
                run = _row_to_run(row)
                for key, value in changes.items():
                    setattr(run, key, value)
                rows[i] = _run_to_row(run)
                self._table.write(rows)
                return run
        raise NotFoundError(f"Pipeline run not found: {run_id}")
