"""JSearch API (RapidAPI) — aggregated job listings."""
from __future__ import annotations

import requests

from jobops.log import get_logger
from jobops.models import JobInput
from jobops.retry import retry
from jobops.sources.base import JobSource

log = get_logger(__name__)


class JSearchSource(JobSource):
    name = "jsearch"
    BASE = "https://jsearch.p.rapidapi.com"

    def __init__(self, profile: dict, env_getter) -> None:
        self.profile = profile
        self.api_key: str = env_getter("JSEARCH_API_KEY")

    @retry(max_attempts=3, base_delay=2.0, retryable=(requests.RequestException, OSError))
    def _fetch_location(self, query: str, loc: str, limit: int) -> list[JobInput]:
        r = requests.get(
            f"{self.BASE}/search",
            params={"query": f"{query} {loc}".strip(), "num_pages": "1"},
            headers={
                "X-RapidAPI-Key": self.api_key,
                "X-RapidAPI-Host": "jsearch.p.rapidapi.com",
            },
            timeout=15,
        )
        r.raise_for_status()
        data = r.json()
        jobs: list[JobInput] = []
        for hit in data.get("data", [])[:limit]:
            url = hit.get("job_apply_link") or hit.get("job_google_link") or ""
            if not url:
                continue
            jobs.append(
                JobInput(
                    source=self.name,
                    title=hit.get("job_title", "") or "Unknown Title",
                    employer=hit.get("employer_name", "") or "Unknown Employer",
                    employer_url=hit.get("employer_website"),
                    job_url=url,
                    application_link=hit.get("job_apply_link"),
                    location=hit.get("job_city") or hit.get("job_country"),
                    deadline=hit.get("job_offer_expiration_datetime_utc"),
                    job_description=hit.get("job_description", ""),
                )
            )
        return jobs

    def search(self, query: str, locations: list[str], limit: int = 20) -> list[JobInput]:
        jobs: list[JobInput] = []
        errors: list[Exception] = []
        targets = locations[:3] or [""]
        for loc in targets:
            try:
                batch = self._fetch_location(query, loc, limit)
            except Exception as exc:
                log.warning("JSearch loc=%r error: %s", loc, exc)
                errors.append(exc)
                continue
            jobs.extend(batch)
            log.debug("JSearch loc=%r returned %d jobs", loc, len(batch))
        if errors and len(errors) == len(targets):
            raise errors[-1]
        return jobs[:limit]
