"""Run an external crawler command and read the JSON dataset it writes.

The crawler is treated as a black box: it is started as a subprocess and is
expected to leave one JSON object per posting in ``dataset_dir``.
"""
from __future__ import annotations

import json
import shlex
import shutil
import subprocess
from pathlib import Path

from jobops.log import get_logger
from jobops.models import JobInput
from jobops.sources.base import JobSource

log = get_logger(__name__)

DEFAULT_TIMEOUT = 30 * 60


class DatasetSource(JobSource):
    name = "dataset"

    def __init__(self, profile: dict, env_getter) -> None:
        self.profile = profile
        self.command: str = env_getter("JOBOPS_CRAWLER_CMD")
        self.workdir = Path(env_getter("JOBOPS_CRAWLER_DIR") or ".")
        dataset = env_getter("JOBOPS_CRAWLER_DATASET") or "storage/datasets/default"
        self.dataset_dir = (self.workdir / dataset).resolve()
        self.timeout = int(env_getter("JOBOPS_CRAWLER_TIMEOUT") or DEFAULT_TIMEOUT)

    def _clear_dataset(self) -> None:
        if self.dataset_dir.exists():
            shutil.rmtree(self.dataset_dir)

    def _run_crawler(self) -> None:
        log.info("Starting crawler: %s (cwd=%s)", self.command, self.workdir)
        proc = subprocess.run(
            shlex.split(self.command),
            cwd=self.workdir,
            capture_output=True,
            text=True,
            timeout=self.timeout,
        )
        if proc.returncode != 0:
            tail = (proc.stderr or proc.stdout or "").strip()[-500:]
            raise RuntimeError(f"Crawler exited with code {proc.returncode}: {tail}")

    def read_dataset(self) -> list[JobInput]:
        if not self.dataset_dir.exists():
            return []
        jobs: list[JobInput] = []
        for path in sorted(self.dataset_dir.glob("*.json")):
            data = json.loads(path.read_text(encoding="utf-8"))
            url = data.get("url") or data.get("jobUrl")
            if not url:
                log.debug("Skipping %s: no url", path.name)
                continue
            jobs.append(
                JobInput(
                    source=data.get("source") or self.name,
                    title=data.get("title") or "Unknown Title",
                    employer=data.get("employer") or "Unknown Employer",
                    employer_url=data.get("employerUrl"),
                    job_url=url,
                    application_link=data.get("applicationLink"),
                    disciplines=data.get("disciplines"),
                    deadline=data.get("deadline"),
                    salary=data.get("salary"),
                    location=data.get("location"),
                    degree_required=data.get("degreeRequired"),
                    starting=data.get("starting"),
                    job_description=data.get("jobDescription"),
                )
            )
        return jobs

    def search(self, query: str, locations: list[str], limit: int = 20) -> list[JobInput]:
        self._clear_dataset()
        self._run_crawler()
        jobs = self.read_dataset()
        log.info("Crawler completed. Found %d jobs.", len(jobs))
        return jobs
