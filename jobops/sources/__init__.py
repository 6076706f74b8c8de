from .base import JobSource
from .dataset import DatasetSource
from .jsearch import JSearchSource
from .mock import MockSource
from .remotive import RemotiveSource

from jobops.log import get_logger

log = get_logger(__name__)

__all__ = [
    "JobSource", "DatasetSource", "JSearchSource", "MockSource",
    "RemotiveSource", "get_sources",
]


def get_sources(profile: dict, env_getter) -> dict[str, JobSource]:
    """Every source whose configuration is present, keyed by name."""
    sources: dict[str, JobSource] = {}

    if env_getter("JOBOPS_CRAWLER_CMD"):
        sources["dataset"] = DatasetSource(profile, env_getter)
        log.info("Registered source: external crawler dataset")

    if env_getter("JSEARCH_API_KEY"):
        sources["jsearch"] = JSearchSource(profile, env_getter)
        log.info("Registered source: JSearch")

    # Remotive needs no key; include it when the profile targets remote work
    profile_locations = [loc.lower() for loc in profile.get("locations", [])]
    if "remote" in profile_locations:
        sources["remotive"] = RemotiveSource(profile)
        log.info("Registered source: Remotive (free, remote jobs)")

    if not sources or env_getter("JOBOPS_ENABLE_MOCK_SOURCE").lower() in ("1", "true", "yes"):
        sources["mock"] = MockSource(profile)
        log.info("Registered source: MockSource")

    return sources
