from abc import ABC, abstractmethod

from jobops.models import JobInput


class JobSource(ABC):
    name: str = "unknown"

    @abstractmethod
    def search(self, query: str, locations: list[str], limit: int = 20) -> list[JobInput]:
        """Return postings; raise when the source could not be queried at all."""
