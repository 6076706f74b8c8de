"""Data models for jobs, pipeline runs and tailoring inputs."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class JobStatus(str, Enum):
    DISCOVERED = "discovered"
    PROCESSING = "processing"
    READY = "ready"
    APPLIED = "applied"
    REJECTED = "rejected"
    EXPIRED = "expired"


# processing -> discovered reverts a job whose tailoring failed;
# ready -> processing regenerates the PDF of a reviewed job.
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.DISCOVERED: frozenset(
        {JobStatus.PROCESSING, JobStatus.REJECTED, JobStatus.EXPIRED}
    ),
    JobStatus.PROCESSING: frozenset(
        {JobStatus.READY, JobStatus.REJECTED, JobStatus.DISCOVERED}
    ),
    JobStatus.READY: frozenset(
        {JobStatus.APPLIED, JobStatus.REJECTED, JobStatus.EXPIRED, JobStatus.PROCESSING}
    ),
    JobStatus.APPLIED: frozenset(),
    JobStatus.REJECTED: frozenset(),
    JobStatus.EXPIRED: frozenset(),
}


def can_transition(current: JobStatus, target: JobStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


class PipelineRunStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class JobInput:
    """A posting as produced by the crawler, before it is stored."""

    source: str
    title: str
    employer: str
    job_url: str
    employer_url: str | None = None
    application_link: str | None = None
    location: str | None = None
    salary: str | None = None
    deadline: str | None = None
    disciplines: str | None = None
    degree_required: str | None = None
    starting: str | None = None
    job_description: str | None = None


@dataclass
class Job:
    id: str
    source: str
    title: str
    employer: str
    job_url: str
    employer_url: str | None = None
    application_link: str | None = None
    location: str | None = None
    salary: str | None = None
    deadline: str | None = None
    disciplines: str | None = None
    degree_required: str | None = None
    starting: str | None = None
    job_description: str | None = None
    status: JobStatus = JobStatus.DISCOVERED
    suitability_score: float | None = None
    suitability_reason: str | None = None
    tailored_summary: str | None = None
    tailored_headline: str | None = None
    tailored_skills: list[dict[str, Any]] | None = None
    selected_project_ids: list[str] | None = None
    pdf_path: str | None = None
    discovered_at: str = ""
    processed_at: str | None = None
    applied_at: str | None = None
    created_at: str = ""
    updated_at: str = ""


@dataclass
class PipelineRun:
    id: str
    started_at: str
    status: PipelineRunStatus = PipelineRunStatus.RUNNING
    jobs_discovered: int = 0
    jobs_processed: int = 0
    completed_at: str | None = None
    error_message: str | None = None


@dataclass
class ImportResult:
    created: int = 0
    skipped: int = 0


@dataclass
class ScoreResult:
    score: float
    reason: str = ""


@dataclass
class TailoredContent:
    """AI-generated deltas applied onto the base resume."""

    summary: str | None = None
    headline: str | None = None
    skills: list[dict[str, Any]] | None = None


@dataclass
class ResumeProjectCatalogItem:
    id: str
    name: str
    description: str
    date: str
    is_visible_in_base: bool


@dataclass
class ResumeProjectSelectionItem(ResumeProjectCatalogItem):
    summary_text: str = ""


@dataclass
class ResumeProjectsSettings:
    locked_project_ids: list[str] = field(default_factory=list)
    ai_selectable_project_ids: list[str] = field(default_factory=list)
    max_projects: int = 0
