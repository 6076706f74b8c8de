"""
Job pipeline orchestrator.

Runs: crawl → import → score → (top N) tailor resume → export PDF → mark ready.

Only one run may be in flight per process. Runs are synchronous; progress is
published through :mod:`jobops.progress` as each step starts.
"""
from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable

from jobops.config import (
    DATA_DIR,
    PipelineConfig,
    get_env,
    load_pipeline_config,
    load_profile,
    load_settings,
    resume_projects_settings,
)
from jobops.crawler import Crawler
from jobops.errors import AlreadyRunningError, CrawlError, PipelineCancelledError
from jobops.log import get_logger, run_context
from jobops.models import Job, JobStatus, PipelineRunStatus, TailoredContent
from jobops.pdf import ResumePdfGenerator, prepare_tailored_resume
from jobops.progress import ProgressBroadcaster, progress as default_progress
from jobops.repository import JobRepository, PipelineRunRepository
from jobops.rxresume.store import RxResumeStore
from jobops.scorer import Scorer, get_scorer, score_and_rank
from jobops.sources import get_sources
from jobops.summary import SummaryGenerator

log = get_logger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass
class PipelineResult:
    success: bool
    run_id: str
    jobs_discovered: int = 0
    jobs_processed: int = 0
    error: str | None = None


@dataclass
class ProcessResult:
    success: bool
    pdf_path: str | None = None
    error: str | None = None


class CancellationToken:
    """Cooperative stop flag, checked between pipeline steps."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def reset(self) -> None:
        self._event.clear()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelledError()


class PipelineOrchestrator:
    """Coordinates one pipeline run at a time.

    ``process_job`` is not gated by the run lock: processing a job by hand
    while a run is tailoring the same job is possible and is left to the
    caller to avoid.
    """

    def __init__(
        self,
        jobs: JobRepository,
        runs: PipelineRunRepository,
        crawler: Crawler,
        scorer: Scorer,
        summarizer: SummaryGenerator,
        store: RxResumeStore,
        pdf_factory: Callable[[Path], ResumePdfGenerator] | None = None,
        progress: ProgressBroadcaster | None = None,
        *,
        config: PipelineConfig | None = None,
        profile_loader: Callable[[], dict[str, Any]] = load_profile,
        projects_settings: dict[str, Any] | None = None,
    ) -> None:
        self.jobs = jobs
        self.runs = runs
        self.crawler = crawler
        self.scorer = scorer
        self.summarizer = summarizer
        self.store = store
        self.pdf_factory = pdf_factory or (lambda output_dir: ResumePdfGenerator(store, output_dir))
        self.progress = progress or default_progress
        self.config = config or PipelineConfig()
        self.profile_loader = profile_loader
        self.projects_settings = projects_settings
        self.cancellation = CancellationToken()
        self._run_lock = threading.Lock()
        self._run_owner: int | None = None

    # --- single-flight -------------------------------------------------------

    def try_acquire(self) -> bool:
        if not self._run_lock.acquire(blocking=False):
            return False
        self._run_owner = threading.get_ident()
        return True

    def release(self) -> None:
        """Release the run lock; only the thread that acquired it may do so."""
        if self._run_owner != threading.get_ident():
            log.warning("Ignoring run lock release from a thread that does not hold it")
            return
        self._run_owner = None
        self._run_lock.release()

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    def status(self) -> dict[str, Any]:
        last = self.runs.latest()
        last_run = None
        if last is not None:
            last_run = asdict(last)
            last_run["status"] = last.status.value
        return {"is_running": self.is_running, "last_run": last_run}

    def cancel_pipeline(self) -> bool:
        """Ask the running pipeline to stop at its next checkpoint."""
        if not self.is_running:
            return False
        log.info("Cancellation requested")
        self.cancellation.cancel()
        return True

    # --- full run ------------------------------------------------------------

    def run_pipeline(self, config: PipelineConfig | None = None) -> PipelineResult:
        if not self.try_acquire():
            raise AlreadyRunningError()
        try:
            self.cancellation.reset()
            run = self.runs.create()
            with run_context(run.id):
                log.info("Pipeline run %s started", run.id)
                return self._run(run.id, config or self.config)
        finally:
            self.release()

    def _run(self, run_id: str, config: PipelineConfig) -> PipelineResult:
        discovered = 0
        processed = 0
        try:
            profile = self.profile_loader()

            # 1. Crawl
            self.progress.start_crawling()
            try:
                inputs = self.crawler.crawl(config.sources or None)
            except CrawlError:
                raise
            except Exception as exc:
                raise CrawlError(f"Crawler failed: {exc}") from exc
            self.progress.crawling_complete(len(inputs))

            # 2. Import
            imported = self.jobs.bulk_import(inputs)
            discovered = imported.created
            self.progress.import_complete(imported.created, imported.skipped)
            log.info("Imported %d new jobs (%d duplicates)", imported.created, imported.skipped)
            self.cancellation.raise_if_cancelled()

            # 3. Score, persisting each result as it arrives
            candidates = self.jobs.jobs_for_processing(config.max_jobs_to_score)

            def on_scored(index: int, job: Job, result) -> None:
                self.jobs.update_fields(
                    job.id,
                    suitability_score=result.score,
                    suitability_reason=result.reason,
                )
                self.progress.scoring_job(index, len(candidates), job.title)

            ranked = score_and_rank(candidates, profile, self.scorer, on_scored)
            self.cancellation.raise_if_cancelled()

            # 4. Keep the best matches above the threshold
            top = [
                job for job, result in ranked
                if result.score >= config.min_suitability_score
            ][: config.top_n]
            self.progress.scoring_complete(len(ranked), len(top))
            log.info("%d of %d jobs above %s; processing top %d",
                     len(top), len(ranked), config.min_suitability_score, len(top))

            # 5. Tailor and export one job at a time
            for index, job in enumerate(top, start=1):
                self.cancellation.raise_if_cancelled()
                self.progress.processing_job(
                    index, len(top),
                    {"id": job.id, "title": job.title, "employer": job.employer},
                    processed,
                )
                result = self._process(job, profile, config.output_dir)
                if result.success:
                    processed += 1
                    self.progress.job_complete(processed, len(top))

            self.runs.update(
                run_id,
                status=PipelineRunStatus.COMPLETED,
                completed_at=_now(),
                jobs_discovered=discovered,
                jobs_processed=processed,
            )
            self.progress.complete(discovered, processed)
            log.info("Run complete — discovered=%d, processed=%d", discovered, processed)
            return PipelineResult(True, run_id, discovered, processed)

        except PipelineCancelledError as exc:
            log.warning("Pipeline run %s cancelled", run_id)
            self._finish_failed(run_id, str(exc), discovered, processed)
            self.progress.cancelled()
            return PipelineResult(False, run_id, discovered, processed, str(exc))
        except Exception as exc:
            log.exception("Pipeline run %s failed", run_id)
            self._finish_failed(run_id, str(exc), discovered, processed)
            self.progress.failed(str(exc))
            return PipelineResult(False, run_id, discovered, processed, str(exc))

    def _finish_failed(self, run_id: str, message: str, discovered: int, processed: int) -> None:
        self.runs.update(
            run_id,
            status=PipelineRunStatus.FAILED,
            completed_at=_now(),
            error_message=message,
            jobs_discovered=discovered,
            jobs_processed=processed,
        )

    # --- single job ----------------------------------------------------------

    def process_job(self, job_id: str, force: bool = False) -> ProcessResult:
        """Tailor and export one job outside of a run.

        An existing tailored summary is reused unless *force* is set.
        """
        job = self.jobs.get(job_id)
        if job is None:
            return ProcessResult(False, error=f"Job not found: {job_id}")
        try:
            profile = self.profile_loader()
        except Exception as exc:
            log.error("Could not load profile: %s", exc)
            return ProcessResult(False, error=str(exc))
        return self._process(job, profile, self.config.output_dir, force=force)

    def _process(
        self,
        job: Job,
        profile: dict[str, Any],
        output_dir: Path,
        force: bool = False,
    ) -> ProcessResult:
        previous_status = job.status
        try:
            job = self.jobs.update_status(job.id, JobStatus.PROCESSING)
        except Exception as exc:
            log.error("Cannot process job %s: %s", job.id, exc)
            return ProcessResult(False, error=str(exc))

        try:
            content = self._tailored_content(job, profile, force)
            self.progress.generating_pdf(job.title)
            base = self.store.get_base_resume()
            prepared = prepare_tailored_resume(
                base["data"],
                content,
                self.summarizer.pick_project_ids,
                mode=self.store.mode,
                job_description=job.job_description or "",
                projects_settings=self.projects_settings,
            )
            pdf_path = self.pdf_factory(Path(output_dir)).generate(job.id, prepared)
            self.jobs.update_status(
                job.id,
                JobStatus.READY,
                pdf_path=str(pdf_path),
                selected_project_ids=prepared.selected_project_ids,
            )
            log.info("Job %s ready: %s @ %s", job.id, job.title, job.employer)
            return ProcessResult(True, pdf_path=str(pdf_path))
        except Exception as exc:
            log.error("Failed to process job %s (%s): %s", job.id, job.title, exc)
            # A reviewed job keeps its previous PDF; anything else is retried later.
            revert_to = JobStatus.READY if previous_status == JobStatus.READY else JobStatus.DISCOVERED
            try:
                self.jobs.update_status(job.id, revert_to)
            except Exception as revert_exc:
                log.error("Could not revert job %s to %s: %s", job.id, revert_to.value, revert_exc)
            self.progress.job_failed(job.title, str(exc))
            return ProcessResult(False, error=str(exc))

    def _tailored_content(self, job: Job, profile: dict[str, Any], force: bool) -> TailoredContent:
        if job.tailored_summary and not force:
            log.debug("Reusing tailored summary for job %s", job.id)
            return TailoredContent(
                summary=job.tailored_summary,
                headline=job.tailored_headline,
                skills=job.tailored_skills,
            )
        self.progress.generating_summary(job.title)
        content = self.summarizer.generate(job.job_description or "", profile)
        self.jobs.update_fields(
            job.id,
            tailored_summary=content.summary,
            tailored_headline=content.headline,
            tailored_skills=content.skills,
        )
        return content


def build_orchestrator(
    data_dir: Path = DATA_DIR,
    settings: dict[str, Any] | None = None,
) -> PipelineOrchestrator:
    """Default wiring: CSV stores under *data_dir*, registered sources, Groq, Reactive Resume."""
    settings = settings if settings is not None else load_settings()
    config = load_pipeline_config(settings=settings)
    profile = load_profile()
    crawler = Crawler(
        get_sources(profile, get_env),
        query=" OR ".join(profile.get("preferred_roles", [])),
        locations=profile.get("locations", []),
    )
    store = RxResumeStore(settings=settings)
    return PipelineOrchestrator(
        jobs=JobRepository(Path(data_dir) / "jobs.csv"),
        runs=PipelineRunRepository(Path(data_dir) / "pipeline_runs.csv"),
        crawler=crawler,
        scorer=get_scorer(),
        summarizer=SummaryGenerator(),
        store=store,
        config=config,
        projects_settings=resume_projects_settings(settings),
    )
