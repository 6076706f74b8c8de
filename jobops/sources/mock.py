"""Mock job source for local runs and tests."""
from __future__ import annotations

from datetime import datetime, timezone

from jobops.log import get_logger
from jobops.models import JobInput
from jobops.sources.base import JobSource

log = get_logger(__name__)


def _mock_url(suffix: str) -> str:
    """Date-based URL so mock postings are treated as new each day."""
    return f"https://example.com/jobs/{datetime.now(timezone.utc).strftime('%Y-%m-%d')}/{suffix}"


class MockSource(JobSource):
    name = "mock"

    def __init__(self, profile: dict, env_getter=None) -> None:
        self.profile = profile

    def search(self, query: str, locations: list[str], limit: int = 20) -> list[JobInput]:
        roles = (self.profile.get("core_roles") or self.profile.get("preferred_roles", []))[:3]
        log.info("MockSource generating sample jobs")
        mock_jobs = [
            JobInput(
                source=self.name,
                title=roles[0] if roles else "Graduate Software Engineer",
                employer="TechCorp",
                job_url=_mock_url("1"),
                location="London",
                job_description="Python, Kubernetes, cloud platforms. Graduate scheme.",
            ),
            JobInput(
                source=self.name,
                title="Data Engineer",
                employer="CloudScale",
                job_url=_mock_url("2"),
                location="Remote",
                job_description="SQL, Python, data pipelines, Airflow.",
            ),
            JobInput(
                source=self.name,
                title="Embedded Systems Engineer",
                employer="Widget Labs",
                job_url=_mock_url("3"),
                location="Cambridge",
                job_description="C, RTOS, microcontrollers, hardware bring-up.",
            ),
        ]
        return mock_jobs[:limit]
