"""Remotive — free API for remote tech jobs (no API key required).

Docs: https://remotive.com/api/remote-jobs
"""
from __future__ import annotations

import requests

from jobops.log import get_logger
from jobops.models import JobInput
from jobops.retry import retry
from jobops.sources.base import JobSource

log = get_logger(__name__)

API_URL = "https://remotive.com/api/remote-jobs"

_GENERIC_WORDS = {
    "senior", "junior", "lead", "staff", "principal", "manager",
    "engineer", "specialist", "consultant", "graduate", "ii", "iii", "iv",
}


class RemotiveSource(JobSource):
    name = "remotive"

    def __init__(self, profile: dict, env_getter=None) -> None:
        self.profile = profile

    @retry(max_attempts=2, base_delay=1.5, retryable=(requests.RequestException, OSError))
    def _fetch(self, search: str, limit: int) -> list[JobInput]:
        params: dict = {"limit": limit}
        if search:
            params["search"] = search

        r = requests.get(API_URL, params=params, timeout=15)
        r.raise_for_status()
        data = r.json()

        jobs: list[JobInput] = []
        for hit in data.get("jobs", []):
            url = hit.get("url", "")
            if not url:
                continue
            desc = hit.get("description", "")
            tags = hit.get("tags", [])
            if tags:
                desc += " " + " ".join(tags)
            jobs.append(
                JobInput(
                    source=self.name,
                    title=hit.get("title", "") or "Unknown Title",
                    employer=hit.get("company_name", "") or "Unknown Employer",
                    job_url=url,
                    location=hit.get("candidate_required_location", "Remote"),
                    salary=hit.get("salary") or None,
                    starting=hit.get("publication_date"),
                    job_description=desc,
                )
            )
        return jobs

    def _search_terms(self, query: str) -> list[str]:
        # Remotive works best with short, broad terms rather than full role titles.
        terms: list[str] = []
        for role in self.profile.get("core_roles", [])[:2]:
            distinctive = [w for w in role.lower().split() if w not in _GENERIC_WORDS]
            if distinctive:
                terms.append(distinctive[0])
        if not terms:
            terms.append(query.split()[0] if query else "engineer")
        return list(dict.fromkeys(terms))

    def search(self, query: str, locations: list[str], limit: int = 20) -> list[JobInput]:
        all_jobs: list[JobInput] = []
        seen: set[str] = set()
        errors: list[Exception] = []
        terms = self._search_terms(query)
        for term in terms:
            try:
                batch = self._fetch(term, limit=limit)
            except Exception as exc:
                log.warning("Remotive search=%r error: %s", term, exc)
                errors.append(exc)
                continue
            for j in batch:
                if j.job_url not in seen:
                    seen.add(j.job_url)
                    all_jobs.append(j)
            log.debug("Remotive search=%r returned %d jobs", term, len(batch))

        if errors and len(errors) == len(terms):
            raise errors[-1]
        return all_jobs[:limit]
