"""Tests for the crawler fan-out and the job sources it drives."""
import json
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from conftest import make_input
from jobops.crawler import Crawler
from jobops.errors import CrawlError
from jobops.log import current_run_id, run_context
from jobops.sources import DatasetSource, JSearchSource, MockSource, get_sources


def _source(name, results=None, error=None):
    source = MagicMock()
    source.name = name
    if error is not None:
        source.search.side_effect = error
    else:
        source.search.return_value = results or []
    return source


class TestCrawler:
    def test_merges_and_dedupes_by_url(self):
        crawler = Crawler({
            "a": _source("a", [make_input(1), make_input(2)]),
            "b": _source("b", [make_input(2), make_input(3)]),
        }, query="engineer", locations=["London"])

        jobs = crawler.crawl()

        assert sorted(j.job_url for j in jobs) == [
            "https://jobs.example.com/1",
            "https://jobs.example.com/2",
            "https://jobs.example.com/3",
        ]

    def test_one_failing_source_is_skipped(self):
        crawler = Crawler({
            "good": _source("good", [make_input(1)]),
            "bad": _source("bad", error=RuntimeError("rate limited")),
        })
        assert [j.title for j in crawler.crawl()] == ["Job 1"]

    def test_all_sources_failing(self):
        crawler = Crawler({
            "a": _source("a", error=RuntimeError("down")),
            "b": _source("b", error=ValueError("bad json")),
        })
        with pytest.raises(CrawlError, match="Crawler failed: a: down; b: bad json"):
            crawler.crawl()

    def test_sources_see_the_current_run(self):
        seen = []

        class Recording:
            name = "rec"

            def search(self, query, locations, limit=20):
                seen.append(current_run_id())
                return [make_input(1)]

        with run_context("run-9"):
            Crawler({"rec": Recording()}).crawl()
        assert seen == ["run-9"]

    def test_selected_sources_only(self):
        a, b = _source("a", [make_input(1)]), _source("b", [make_input(2)])
        Crawler({"a": a, "b": b}).crawl(["b"])
        a.search.assert_not_called()
        b.search.assert_called_once()

    def test_unknown_source(self):
        with pytest.raises(CrawlError, match="Unknown job source"):
            Crawler({"a": _source("a")}).crawl(["nope"])

    def test_no_sources(self):
        with pytest.raises(CrawlError, match="No job sources"):
            Crawler({}).crawl()


class TestDatasetSource:
    def _env(self, tmp_path, **extra):
        values = {
            "JOBOPS_CRAWLER_CMD": "npm start",
            "JOBOPS_CRAWLER_DIR": str(tmp_path),
            "JOBOPS_CRAWLER_DATASET": "dataset",
            **extra,
        }
        return lambda key, default="": values.get(key, default)

    def test_reads_dataset_files(self, tmp_path):
        dataset = tmp_path / "dataset"
        dataset.mkdir()
        (dataset / "000001.json").write_text(json.dumps({
            "title": "Graduate Engineer",
            "employer": "Acme",
            "url": "https://acme.example.com/jobs/1",
            "degreeRequired": "2:1",
            "jobDescription": "Build things",
        }))
        (dataset / "000002.json").write_text(json.dumps({"title": "No url"}))

        jobs = DatasetSource({}, self._env(tmp_path)).read_dataset()

        assert len(jobs) == 1
        assert jobs[0].source == "dataset"
        assert jobs[0].degree_required == "2:1"
        assert jobs[0].job_description == "Build things"

    def test_search_runs_crawler_and_clears_old_results(self, tmp_path):
        stale = tmp_path / "dataset"
        stale.mkdir()
        (stale / "old.json").write_text(json.dumps({"url": "https://old"}))
        source = DatasetSource({}, self._env(tmp_path))

        def run(*args, **kwargs):
            stale.mkdir(exist_ok=True)
            (stale / "new.json").write_text(json.dumps({"url": "https://new", "title": "New"}))
            return subprocess.CompletedProcess(args[0], 0, "", "")

        with patch("jobops.sources.dataset.subprocess.run", side_effect=run) as mock_run:
            jobs = source.search("", [])

        assert [j.job_url for j in jobs] == ["https://new"]
        assert mock_run.call_args.args[0] == ["npm", "start"]

    def test_crawler_exit_code(self, tmp_path):
        source = DatasetSource({}, self._env(tmp_path))
        failed = subprocess.CompletedProcess(["npm"], 1, "", "boom")
        with patch("jobops.sources.dataset.subprocess.run", return_value=failed):
            with pytest.raises(RuntimeError, match="exited with code 1: boom"):
                source.search("", [])


class TestGetSources:
    def test_mock_when_nothing_configured(self):
        sources = get_sources({"locations": ["London"]}, lambda key, default="": "")
        assert list(sources) == ["mock"]

    def test_registered_from_env(self):
        env = {"JSEARCH_API_KEY": "k", "JOBOPS_CRAWLER_CMD": "npm start"}
        sources = get_sources({"locations": ["Remote"]}, lambda key, default="": env.get(key, default))
        assert set(sources) == {"dataset", "jsearch", "remotive"}


def test_mock_source_uses_profile_roles():
    jobs = MockSource({"core_roles": ["Data Scientist"]}).search("", [], limit=2)
    assert len(jobs) == 2
    assert jobs[0].title == "Data Scientist"
    assert jobs[0].job_url != jobs[1].job_url


class TestJSearchSource:
    def _source(self):
        return JSearchSource({}, lambda key, default="": "rapid-key")

    def test_maps_hits(self):
        response = MagicMock()
        response.json.return_value = {"data": [
            {"job_title": "Engineer", "employer_name": "Acme",
             "job_apply_link": "https://acme/apply", "job_city": "London",
             "job_description": "Python"},
            {"job_title": "No link"},
        ]}
        with patch("jobops.sources.jsearch.requests.get", return_value=response) as get:
            jobs = self._source().search("engineer", ["London"])

        assert [(j.title, j.job_url, j.location) for j in jobs] == [
            ("Engineer", "https://acme/apply", "London"),
        ]
        assert get.call_args.kwargs["headers"]["X-RapidAPI-Key"] == "rapid-key"

    def test_raises_when_every_location_fails(self):
        with patch("jobops.sources.jsearch.requests.get", side_effect=ValueError("bad json")):
            with pytest.raises(ValueError):
                self._source().search("engineer", ["London", "Remote"])
