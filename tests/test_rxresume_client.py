"""Tests for the Reactive Resume HTTP clients and the mode-dispatching store."""
from unittest.mock import MagicMock

import pytest
import requests

from jobops.errors import (
    AuthError,
    ConfigurationError,
    RemoteNotFoundError,
    RxResumeAuthConfigError,
    RxResumeRequestError,
    SchemaValidationError,
    UpstreamError,
    classify_request_error,
)
from jobops.rxresume.client import V4Client, V5Client, clean_base_url
from jobops.rxresume.store import RxResumeStore


# ===== HELPERS =====


def fake_response(status=200, payload=None, text=""):
    response = MagicMock(spec=requests.Response)
    response.status_code = status
    response.ok = 200 <= status < 400
    response.reason = "Reason"
    response.text = text
    if payload is not None:
        response.headers = {"content-type": "application/json; charset=utf-8"}
        response.json.return_value = payload
    else:
        response.headers = {"content-type": "text/plain"}
        response.json.side_effect = ValueError("no json")
    return response


def fake_session(*responses):
    session = MagicMock(spec=requests.Session)
    session.request.side_effect = list(responses)
    return session


@pytest.fixture(autouse=True)
def _no_rxresume_env(monkeypatch):
    for key in (
        "RXRESUME_MODE", "RXRESUME_URL", "RXRESUME_API_KEY", "RXRESUME_EMAIL",
        "RXRESUME_PASSWORD", "RXRESUME_BASE_RESUME_ID", "RXRESUME_BASE_RESUME_ID_V4",
        "RXRESUME_BASE_RESUME_ID_V5",
    ):
        monkeypatch.delenv(key, raising=False)


# ===== ERROR CLASSIFICATION =====


class TestClassifyRequestError:
    @pytest.mark.parametrize("status, error_type", [
        (401, AuthError),
        (404, RemoteNotFoundError),
        (0, UpstreamError),
        (502, UpstreamError),
    ])
    def test_status_mapping(self, status, error_type):
        error = classify_request_error("msg", status)
        assert type(error) is error_type
        assert error.status == status

    def test_client_errors_stay_generic(self):
        error = classify_request_error("bad payload", 422)
        assert type(error) is RxResumeRequestError


def test_clean_base_url():
    assert clean_base_url("https://rxresu.me/api/openapi/") == "https://rxresu.me"
    assert clean_base_url(" https://v4.rxresu.me/api ") == "https://v4.rxresu.me"


# ===== V5 =====


class TestV5Client:
    def test_sends_api_key_header(self):
        session = fake_session(fake_response(200, [{"id": "r1"}]))
        client = V5Client("https://rxresu.me", "key-1", session=session)

        assert client.list_resumes() == [{"id": "r1"}]
        method, url = session.request.call_args.args
        assert (method, url) == ("GET", "https://rxresu.me/api/openapi/resumes")
        assert session.request.call_args.kwargs["headers"] == {"x-api-key": "key-1"}

    def test_falls_back_to_next_key_on_401(self):
        session = fake_session(
            fake_response(401, {"message": "Invalid key"}),
            fake_response(200, {"url": "https://cdn/resume.pdf"}),
        )
        client = V5Client("https://rxresu.me", "old-key, new-key", session=session)

        assert client.export_pdf("r1") == "https://cdn/resume.pdf"
        used = [c.kwargs["headers"]["x-api-key"] for c in session.request.call_args_list]
        assert used == ["old-key", "new-key"]

    def test_last_key_401_is_auth_error(self):
        session = fake_session(fake_response(401, {"message": "Invalid key"}))
        client = V5Client("https://rxresu.me", "only-key", session=session)
        with pytest.raises(AuthError, match="Invalid key"):
            client.list_resumes()

    def test_not_found(self):
        session = fake_session(fake_response(404, text="Resume not found"))
        client = V5Client("https://rxresu.me", "k", session=session)
        with pytest.raises(RemoteNotFoundError) as exc_info:
            client.get_resume("missing")
        assert "Reactive Resume API error (404): Resume not found" in str(exc_info.value)

    def test_network_error_is_upstream(self):
        session = MagicMock(spec=requests.Session)
        session.request.side_effect = requests.ConnectionError("refused")
        client = V5Client("https://rxresu.me", "k", session=session)
        with pytest.raises(UpstreamError) as exc_info:
            client.list_resumes()
        assert exc_info.value.status == 0

    def test_import_accepts_bare_id_or_object(self):
        session = fake_session(fake_response(200, "r-1"), fake_response(200, {"id": "r-2"}))
        client = V5Client("https://rxresu.me", "k", session=session)
        assert client.import_resume({"basics": {}}, name="Tailored") == "r-1"
        assert client.import_resume({"basics": {}}) == "r-2"


# ===== V4 =====


class TestV4Client:
    def test_logs_in_then_requests(self):
        session = fake_session(fake_response(200, {"user": {}}), fake_response(200, []))
        client = V4Client("https://v4.rxresu.me", "a@b.c", "pw", session=session)

        assert client.list_resumes() == []
        login, listing = session.request.call_args_list
        assert login.args == ("POST", "https://v4.rxresu.me/api/auth/login")
        assert login.kwargs["json"] == {"identifier": "a@b.c", "password": "pw"}
        assert listing.args == ("GET", "https://v4.rxresu.me/api/resume")

    def test_refreshes_once_on_401(self):
        session = fake_session(
            fake_response(200, {"user": {}}),
            fake_response(401, {"message": "expired"}),
            fake_response(200, {"ok": True}),
            fake_response(200, {"id": "r1", "data": {}}),
        )
        client = V4Client("https://v4.rxresu.me", "a@b.c", "pw", session=session)

        assert client.get_resume("r1")["id"] == "r1"
        urls = [c.args[1] for c in session.request.call_args_list]
        assert urls[2] == "https://v4.rxresu.me/api/auth/refresh"
        assert urls[3] == "https://v4.rxresu.me/api/resume/r1"

    def test_relogin_when_refresh_fails(self):
        session = fake_session(
            fake_response(200, {"user": {}}),
            fake_response(401, {"message": "expired"}),
            fake_response(401, {"message": "refresh expired"}),
            fake_response(200, {"user": {}}),
            fake_response(200, []),
        )
        client = V4Client("https://v4.rxresu.me", "a@b.c", "pw", session=session)

        assert client.list_resumes() == []
        urls = [c.args[1] for c in session.request.call_args_list]
        assert urls.count("https://v4.rxresu.me/api/auth/login") == 2

    def test_second_401_is_raised(self):
        session = fake_session(
            fake_response(200, {"user": {}}),
            fake_response(401, {"message": "expired"}),
            fake_response(200, {"ok": True}),
            fake_response(401, {"message": "still expired"}),
        )
        client = V4Client("https://v4.rxresu.me", "a@b.c", "pw", session=session)
        with pytest.raises(AuthError):
            client.list_resumes()

    def test_missing_credentials(self):
        client = V4Client("https://v4.rxresu.me", "", "", session=fake_session())
        with pytest.raises(RxResumeAuthConfigError):
            client.list_resumes()


# ===== STORE =====


class TestRxResumeStore:
    def test_missing_v5_key(self):
        store = RxResumeStore("v5", settings={})
        with pytest.raises(RxResumeAuthConfigError) as exc_info:
            store.list_resumes()
        assert isinstance(exc_info.value, ConfigurationError)
        assert exc_info.value.mode == "v5"

    def test_v5_does_not_use_v4_credentials(self):
        store = RxResumeStore("v5", email="a@b.c", password="pw", settings={})
        with pytest.raises(RxResumeAuthConfigError):
            store.client()

    def test_mode_and_url_from_settings(self):
        store = RxResumeStore(settings={"rxresume": {"mode": "v4", "url": "https://cv.local/api"}})
        assert store.mode == "v4"
        assert store.base_url == "https://cv.local/api"
        assert RxResumeStore(settings={}).base_url == "https://rxresu.me"

    def test_validate_credentials_reports_instead_of_raising(self):
        check = RxResumeStore("v4", settings={}).validate_credentials()
        assert not check.ok
        assert check.status == 400

        session = fake_session(fake_response(401, {"message": "nope"}))
        check = RxResumeStore("v5", api_key="k", settings={}, session=session).validate_credentials()
        assert not check.ok
        assert check.status == 401

    def test_list_resumes_normalizes_names(self):
        session = fake_session(fake_response(200, [{"id": "r1", "title": "Main"}, {"id": "r2"}]))
        store = RxResumeStore("v5", api_key="k", settings={}, session=session)
        assert [(r["name"], r["title"]) for r in store.list_resumes()] == [
            ("Main", "Main"), ("r2", "r2"),
        ]

    def test_get_resume_validates_data(self, v4_resume):
        session = fake_session(fake_response(200, {"id": "r1", "name": "Main", "data": v4_resume}))
        store = RxResumeStore("v5", api_key="k", settings={}, session=session)
        with pytest.raises(SchemaValidationError):
            store.get_resume("r1")

    def test_get_base_resume_requires_id(self):
        store = RxResumeStore("v5", api_key="k", settings={})
        with pytest.raises(ConfigurationError, match="Base resume not configured"):
            store.get_base_resume()

    def test_get_base_resume_prefers_mode_specific_id(self, v5_resume):
        session = fake_session(fake_response(200, {"id": "new", "data": v5_resume}))
        settings = {"rxresume": {"base_resume_id": "legacy", "base_resume_id_v5": "new"}}
        store = RxResumeStore("v5", api_key="k", settings=settings, session=session)

        resume = store.get_base_resume()

        assert resume["mode"] == "v5"
        assert session.request.call_args.args[1].endswith("/resumes/new")

    def test_v5_import_accepts_v4_payload(self, v4_resume):
        session = fake_session(fake_response(200, {"id": "tmp-1"}))
        store = RxResumeStore("v5", api_key="k", settings={}, session=session)

        assert store.import_resume(v4_resume) == "tmp-1"
        body = session.request.call_args.kwargs["json"]
        assert body["name"] == "JobOps Tailored Resume"
        assert body["data"] == v4_resume

    def test_import_rejects_invalid_payload(self):
        store = RxResumeStore("v4", email="a@b.c", password="pw", settings={}, session=fake_session())
        with pytest.raises(SchemaValidationError):
            store.import_resume({"basics": {}})

    def test_unexpected_payload_shape(self):
        session = fake_session(fake_response(200, {"unexpected": True}))
        store = RxResumeStore("v5", api_key="k", settings={}, session=session)
        with pytest.raises(RxResumeRequestError, match="unexpected export response"):
            store.export_pdf("r1")
