"""Shared fixtures: sample v4/v5 resumes, temp stores and fake collaborators."""
import os
import tempfile

os.environ.setdefault("JOBOPS_LOG_TO_FILE", "0")
os.environ.setdefault("JOBOPS_DATA_DIR", tempfile.mkdtemp(prefix="jobops-test-"))

from pathlib import Path
from unittest.mock import MagicMock

import pytest

from jobops.models import JobInput, ScoreResult, TailoredContent
from jobops.progress import ProgressBroadcaster
from jobops.repository import JobRepository, PipelineRunRepository


# ===== RESUME DOCUMENTS =====


def _v5_project(pid, name, hidden=False):
    return {
        "id": pid,
        "hidden": hidden,
        "name": name,
        "period": "2023",
        "website": {"url": "", "label": ""},
        "description": f"<p>{name} built with <b>Python</b></p>",
        "options": {"showLinkInTitle": False},
    }


def _v4_project(pid, name, visible=True):
    return {
        "id": pid,
        "visible": visible,
        "name": name,
        "description": f"{name} description",
        "date": "2022",
        "summary": f"<p>{name} summary</p>",
        "keywords": ["python"],
        "url": {"label": "", "href": ""},
    }


def make_v5_resume(projects=None):
    if projects is None:
        projects = [
            _v5_project("proj-a", "Alpha"),
            _v5_project("proj-b", "Bravo"),
            _v5_project("proj-c", "Charlie", hidden=True),
            _v5_project("proj-d", "Delta", hidden=True),
        ]
    return {
        "picture": {"url": "", "size": 80},
        "basics": {
            "name": "Alex Taylor",
            "headline": "Software Engineer",
            "email": "alex@example.com",
            "phone": "",
            "location": "London",
            "website": {"url": "", "label": ""},
            "customFields": [],
        },
        "summary": {"title": "Summary", "columns": 1, "hidden": False, "content": "<p>Base summary</p>"},
        "sections": {
            "projects": {"title": "Projects", "columns": 1, "hidden": False, "items": projects},
            "skills": {
                "title": "Skills",
                "columns": 1,
                "hidden": False,
                "items": [
                    {
                        "id": "skill-py",
                        "hidden": False,
                        "icon": "code",
                        "name": "Python",
                        "proficiency": "Advanced",
                        "level": 4,
                        "keywords": ["Django", "FastAPI"],
                    },
                ],
            },
        },
        "customSections": [],
        "metadata": {"template": "onyx", "layout": {"pages": []}, "notes": "keep me"},
    }


def make_v4_resume(projects=None):
    if projects is None:
        projects = [
            _v4_project("p1", "Alpha"),
            _v4_project("p2", "Bravo"),
            _v4_project("p3", "Charlie", visible=False),
        ]
    section = {"columns": 1, "separateLinks": True, "visible": True}
    return {
        "basics": {
            "name": "Alex Taylor",
            "headline": "Software Engineer",
            "email": "alex@example.com",
            "phone": "",
            "location": "London",
            "url": {"label": "", "href": ""},
            "customFields": [],
            "picture": {"url": "", "size": 64},
        },
        "sections": {
            "summary": {**section, "id": "summary", "name": "Summary", "content": "<p>Base</p>"},
            "skills": {
                **section,
                "id": "skills",
                "name": "Skills",
                "items": [
                    {
                        "id": "s1",
                        "visible": True,
                        "name": "Python",
                        "description": "Advanced",
                        "level": 4,
                        "keywords": ["Django"],
                    },
                ],
            },
            "projects": {**section, "id": "projects", "name": "Projects", "items": projects},
        },
        "metadata": {"template": "rhyhorn", "css": {"value": "", "visible": False}},
    }


@pytest.fixture
def v5_resume():
    return make_v5_resume()


@pytest.fixture
def v4_resume():
    return make_v4_resume()


# ===== STORES =====


@pytest.fixture
def job_repo(tmp_path):
    return JobRepository(tmp_path / "jobs.csv")


@pytest.fixture
def run_repo(tmp_path):
    return PipelineRunRepository(tmp_path / "pipeline_runs.csv")


@pytest.fixture
def progress():
    return ProgressBroadcaster()


# ===== COLLABORATORS =====


def make_input(n, title=None, description="Python engineer role in London"):
    return JobInput(
        source="mock",
        title=title or f"Job {n}",
        employer=f"Employer {n}",
        job_url=f"https://jobs.example.com/{n}",
        location="London",
        job_description=description,
    )


class FakeScorer:
    """Scores by title from a lookup table; unknown titles score 0."""

    def __init__(self, scores):
        self.scores = scores
        self.calls = []

    def score(self, job, profile):
        self.calls.append(job.title)
        return ScoreResult(score=self.scores.get(job.title, 0), reason=f"fake score for {job.title}")


class FakeStore:
    mode = "v5"

    def __init__(self, data=None):
        self.data = data or make_v5_resume()

    def get_base_resume(self):
        return {"id": "base", "mode": self.mode, "data": self.data}


class FakePdfGenerator:
    """Writes a placeholder PDF, or raises for job titles listed in ``fail_titles``."""

    def __init__(self, output_dir, jobs, fail_titles=()):
        self.output_dir = Path(output_dir)
        self.jobs = jobs
        self.fail_titles = set(fail_titles)
        self.prepared = {}

    def generate(self, job_id, prepared):
        job = self.jobs.get(job_id)
        if job.title in self.fail_titles:
            raise RuntimeError(f"export failed for {job.title}")
        self.prepared[job_id] = prepared
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.output_dir / f"resume_{job_id}.pdf"
        path.write_bytes(b"%PDF-1.4 fake")
        return path


@pytest.fixture
def summarizer():
    mock = MagicMock()
    mock.generate.return_value = TailoredContent(
        summary="Tailored summary",
        headline="Graduate Engineer",
        skills=[{"name": "Python", "keywords": ["FastAPI"]}],
    )
    mock.pick_project_ids.return_value = []
    return mock


@pytest.fixture
def profile():
    return {
        "profile": {
            "name": "Alex Taylor",
            "summary": "CS graduate.",
            "skills": ["Python", "SQL", "Docker"],
            "level": "graduate",
        },
        "core_roles": ["Software Engineer"],
        "stretch_roles": ["Data Engineer"],
        "preferred_roles": ["Software Engineer", "Data Engineer"],
        "locations": ["London"],
    }
