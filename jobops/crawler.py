"""Discover postings across the configured job sources."""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from contextvars import copy_context

from jobops.errors import CrawlError
from jobops.log import get_logger
from jobops.models import JobInput
from jobops.sources import JobSource

log = get_logger(__name__)


class Crawler:
    """Fans a search out to every source and merges the results by URL.

    A single failing source is logged and skipped; the crawl only fails as a
    whole when no source succeeded.
    """

    def __init__(
        self,
        sources: dict[str, JobSource],
        query: str = "",
        locations: list[str] | None = None,
        limit_per_source: int = 30,
    ) -> None:
        self.sources = sources
        self.query = query
        self.locations = locations or []
        self.limit_per_source = limit_per_source

    def _search(self, name: str, source: JobSource) -> list[JobInput]:
        results = source.search(self.query, self.locations, limit=self.limit_per_source)
        log.info("[%s] returned %d jobs", name, len(results))
        return results

    def crawl(self, source_names: list[str] | None = None) -> list[JobInput]:
        if source_names:
            unknown = [n for n in source_names if n not in self.sources]
            if unknown:
                raise CrawlError(f"Unknown job source(s): {', '.join(unknown)}")
            selected = {n: self.sources[n] for n in source_names}
        else:
            selected = dict(self.sources)
        if not selected:
            raise CrawlError("No job sources configured")

        jobs: list[JobInput] = []
        seen: set[str] = set()
        failures: dict[str, str] = {}

        log.info("Searching %d source(s) in parallel...", len(selected))
        with ThreadPoolExecutor(max_workers=len(selected)) as pool:
            futures = {
                pool.submit(copy_context().run, self._search, name, source): name
                for name, source in selected.items()
            }
            for future in as_completed(futures):
                name = futures[future]
                try:
                    batch = future.result()
                except Exception as exc:
                    log.error("[%s] FAILED: %s", name, exc)
                    failures[name] = str(exc)
                    continue
                for job in batch:
                    if job.job_url and job.job_url not in seen:
                        seen.add(job.job_url)
                        jobs.append(job)

        if len(failures) == len(selected):
            detail = "; ".join(f"{n}: {msg}" for n, msg in sorted(failures.items()))
            raise CrawlError(f"Crawler failed: {detail}")

        log.info("Total unique jobs from sources: %d", len(jobs))
        return jobs
