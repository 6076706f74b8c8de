"""HTTP clients for the two Reactive Resume API generations.

v5 authenticates every request with an ``x-api-key`` header; v4 logs in with
email/password and keeps the session cookies, refreshing them on expiry.
Both raise the same error classes from :mod:`jobops.errors`.
"""
from __future__ import annotations

from typing import Any

import requests

from jobops.errors import (
    AuthError,
    RxResumeAuthConfigError,
    UpstreamError,
    classify_request_error,
)
from jobops.log import get_logger

log = get_logger(__name__)

MAX_ERROR_SNIPPET = 300
DEFAULT_TIMEOUT = 30


def clean_base_url(base_url: str) -> str:
    normalized = base_url.strip().rstrip("/")
    if normalized.endswith("/api/openapi"):
        normalized = normalized[: -len("/api/openapi")]
    elif normalized.endswith("/api"):
        normalized = normalized[: -len("/api")]
    return normalized


def extract_error_message(response: requests.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        data = response.text
    if isinstance(data, str) and data.strip():
        return data.strip()[:MAX_ERROR_SNIPPET]
    if isinstance(data, dict):
        for key in ("message", "error", "statusMessage"):
            value = data.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()[:MAX_ERROR_SNIPPET]
    return (response.reason or "Request failed")[:MAX_ERROR_SNIPPET]


def _decode(response: requests.Response) -> Any:
    if "application/json" in (response.headers.get("content-type") or ""):
        return response.json()
    return response.text


def _raise_for_response(response: requests.Response) -> None:
    message = extract_error_message(response)
    raise classify_request_error(
        f"Reactive Resume API error ({response.status_code}): {message}",
        response.status_code,
    )


def _send(session: requests.Session, method: str, url: str, **kwargs: Any) -> requests.Response:
    try:
        return session.request(method, url, timeout=kwargs.pop("timeout", DEFAULT_TIMEOUT), **kwargs)
    except requests.RequestException as exc:
        raise UpstreamError(f"Reactive Resume is unavailable: {exc}", 0) from exc


class V5Client:
    """OpenAPI client. ``api_key`` may hold several comma-separated keys."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = clean_base_url(base_url)
        self.api_keys = [k.strip() for k in (api_key or "").split(",") if k.strip()]
        self.session = session or requests.Session()
        self.timeout = timeout

    def request(self, method: str, path: str, payload: Any = None) -> Any:
        if not self.api_keys:
            raise RxResumeAuthConfigError("v5", "RXRESUME_API_KEY not configured in environment")

        url = f"{self.base_url}/api/openapi{path}"
        for attempt, key in enumerate(self.api_keys, start=1):
            headers = {"x-api-key": key}
            response = _send(
                self.session, method, url,
                headers=headers, json=payload, timeout=self.timeout,
            )
            if response.ok:
                return _decode(response)
            if response.status_code == 401 and attempt < len(self.api_keys):
                log.warning("Reactive Resume rejected API key %d/%d, trying next",
                            attempt, len(self.api_keys))
                continue
            _raise_for_response(response)
        raise AuthError("All Reactive Resume API keys failed.", 401)

    def list_resumes(self) -> Any:
        return self.request("GET", "/resumes")

    def get_resume(self, resume_id: str) -> Any:
        return self.request("GET", f"/resumes/{resume_id}")

    def import_resume(self, data: dict[str, Any], name: str = "", slug: str = "") -> str:
        result = self.request("POST", "/resumes/import", {"name": name, "slug": slug, "data": data})
        # Some installs answer with the bare id, others with the created resume.
        return result if isinstance(result, str) else str(result["id"])

    def export_pdf(self, resume_id: str) -> str:
        return str(self.request("GET", f"/resumes/{resume_id}/pdf")["url"])

    def delete_resume(self, resume_id: str) -> None:
        self.request("DELETE", f"/resumes/{resume_id}", {})

    def verify(self) -> None:
        payload = self.list_resumes()
        if not isinstance(payload, list):
            raise UpstreamError(
                "Reactive Resume v5 validation failed: unexpected response payload.", None
            )


class V4Client:
    """Session client; logs in lazily and refreshes once per request on 401."""

    def __init__(
        self,
        base_url: str,
        email: str,
        password: str,
        session: requests.Session | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self.base_url = clean_base_url(base_url)
        self.email = email
        self.password = password
        self.session = session or requests.Session()
        self.timeout = timeout
        self._authenticated = False

    def login(self) -> None:
        if not self.email or not self.password:
            raise RxResumeAuthConfigError(
                "v4", "Reactive Resume v4 credentials are not configured."
            )
        response = _send(
            self.session, "POST", f"{self.base_url}/api/auth/login",
            json={"identifier": self.email, "password": self.password},
            timeout=self.timeout,
        )
        if not response.ok:
            _raise_for_response(response)
        self._authenticated = True
        log.debug("Logged in to Reactive Resume v4 as %s", self.email)

    def refresh(self) -> None:
        """Refresh the session, falling back to a fresh login."""
        response = _send(
            self.session, "POST", f"{self.base_url}/api/auth/refresh",
            timeout=self.timeout,
        )
        if response.ok:
            return
        log.info("Reactive Resume v4 session refresh failed (%d); logging in again",
                 response.status_code)
        self.login()

    def request(self, method: str, path: str, payload: Any = None) -> Any:
        if not self._authenticated:
            self.login()
        url = f"{self.base_url}/api{path}"
        response = _send(self.session, method, url, json=payload, timeout=self.timeout)
        if response.status_code == 401:
            self.refresh()
            response = _send(self.session, method, url, json=payload, timeout=self.timeout)
        if not response.ok:
            _raise_for_response(response)
        return _decode(response)

    def list_resumes(self) -> Any:
        return self.request("GET", "/resume")

    def get_resume(self, resume_id: str) -> Any:
        return self.request("GET", f"/resume/{resume_id}")

    def import_resume(self, data: dict[str, Any], name: str = "", slug: str = "") -> str:
        payload: dict[str, Any] = {"data": data}
        if name:
            payload["title"] = name
        if slug:
            payload["slug"] = slug
        result = self.request("POST", "/resume/import", payload)
        return result if isinstance(result, str) else str(result["id"])

    def export_pdf(self, resume_id: str) -> str:
        return str(self.request("GET", f"/resume/print/{resume_id}")["url"])

    def delete_resume(self, resume_id: str) -> None:
        self.request("DELETE", f"/resume/{resume_id}")

    def verify(self) -> None:
        self.login()
