"""Mode-dispatching facade over the v4 and v5 Reactive Resume clients."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import requests

from jobops.config import (
    DEFAULT_RXRESUME_URLS,
    get_setting,
    load_settings,
    resolve_base_resume_id,
    resolve_rxresume_mode,
)
from jobops.errors import (
    ConfigurationError,
    RxResumeAuthConfigError,
    RxResumeError,
    RxResumeRequestError,
    UpstreamError,
)
from jobops.log import get_logger
from jobops.rxresume.client import V4Client, V5Client
from jobops.rxresume.schema import ResumeDocument, ResumeMode, is_valid, validate_payload

log = get_logger(__name__)

DEFAULT_IMPORT_NAME = "JobOps Tailored Resume"


@dataclass
class CredentialCheck:
    ok: bool
    mode: str
    status: int = 0
    message: str = ""


class RxResumeStore:
    """list/get/import/export/delete against whichever API generation is configured.

    The two auth schemes are mutually exclusive: a v5 store never falls back to
    v4 credentials at runtime, and vice versa.
    """

    def __init__(
        self,
        mode: ResumeMode | None = None,
        *,
        api_key: str | None = None,
        email: str | None = None,
        password: str | None = None,
        base_url: str | None = None,
        settings: dict[str, Any] | None = None,
        session: requests.Session | None = None,
    ) -> None:
        self.settings = settings if settings is not None else load_settings()
        self.mode: ResumeMode = mode or resolve_rxresume_mode(self.settings)
        self._api_key = api_key
        self._email = email
        self._password = password
        self._base_url = base_url
        self._session = session
        self._client: V4Client | V5Client | None = None

    # --- credentials ---------------------------------------------------------

    def _setting(self, env_key: str, settings_key: str, override: str | None) -> str:
        if override is not None and override.strip():
            return override.strip()
        return get_setting(env_key, settings_key, self.settings)

    @property
    def base_url(self) -> str:
        return self._setting("RXRESUME_URL", "url", self._base_url) or DEFAULT_RXRESUME_URLS[self.mode]

    def client(self) -> V4Client | V5Client:
        if self._client is not None:
            return self._client
        if self.mode == "v5":
            api_key = self._setting("RXRESUME_API_KEY", "api_key", self._api_key)
            if not api_key:
                raise RxResumeAuthConfigError(
                    "v5",
                    "Reactive Resume v5 API key is not configured. Set RXRESUME_API_KEY "
                    "or rxresume.api_key in settings.yaml.",
                )
            self._client = V5Client(self.base_url, api_key, session=self._session)
        else:
            email = self._setting("RXRESUME_EMAIL", "email", self._email)
            password = self._setting("RXRESUME_PASSWORD", "password", self._password)
            if not email or not password:
                raise RxResumeAuthConfigError(
                    "v4",
                    "Reactive Resume v4 credentials are not configured. Set RXRESUME_EMAIL "
                    "and RXRESUME_PASSWORD or rxresume.email/password in settings.yaml.",
                )
            self._client = V4Client(self.base_url, email, password, session=self._session)
        return self._client

    def _call(self, operation: str, fn) -> Any:
        client = self.client()
        try:
            return fn(client)
        except RxResumeError:
            raise
        except requests.RequestException as exc:
            raise UpstreamError(f"Reactive Resume is unavailable: {exc}", 0) from exc
        except (KeyError, TypeError, ValueError) as exc:
            raise RxResumeRequestError(
                f"Reactive Resume {self.mode} returned an unexpected {operation} response: {exc}"
            ) from exc

    # --- operations ----------------------------------------------------------

    def list_resumes(self) -> list[dict[str, Any]]:
        payload = self._call("list", lambda c: c.list_resumes())
        if not isinstance(payload, list):
            raise RxResumeRequestError(
                f"Reactive Resume {self.mode} returned an unexpected resume list response shape."
            )
        resumes: list[dict[str, Any]] = []
        for item in payload:
            if not isinstance(item, dict):
                raise RxResumeRequestError(
                    f"Reactive Resume {self.mode} returned an invalid resume list item."
                )
            rid = str(item.get("id") or "")
            name = item.get("name") or item.get("title") or rid
            resumes.append({**item, "id": rid, "name": name, "title": name})
        return resumes

    def get_resume(self, resume_id: str) -> dict[str, Any]:
        """Fetch a resume; ``data`` is validated against the store's mode."""
        resume = self._call("get", lambda c: c.get_resume(resume_id))
        if not isinstance(resume, dict):
            raise RxResumeRequestError(
                f"Reactive Resume {self.mode} returned an unexpected resume response shape."
            )
        if resume.get("data") is not None:
            validate_payload(self.mode, resume["data"])
        title = resume.get("name") or resume.get("title") or resume.get("slug") or resume.get("id")
        return {**resume, "mode": self.mode, "title": title}

    def get_base_resume(self) -> dict[str, Any]:
        resume_id = resolve_base_resume_id(self.mode, self.settings)
        if not resume_id:
            raise ConfigurationError(
                "Base resume not configured. Select a base resume from your Reactive Resume "
                f"account (rxresume.base_resume_id_{self.mode} in settings.yaml)."
            )
        resume = self.get_resume(resume_id)
        if not isinstance(resume.get("data"), dict):
            raise ConfigurationError("Reactive Resume base resume is empty or invalid.")
        return resume

    def import_resume(
        self,
        document: ResumeDocument | dict[str, Any],
        name: str = "",
        slug: str = "",
    ) -> str:
        data = document.data if not isinstance(document, dict) else document
        if self.mode == "v5":
            # The v5 import endpoint still accepts the legacy v4 shape.
            if not is_valid("v5", data) and not is_valid("v4", data):
                validate_payload("v5", data)
        else:
            validate_payload("v4", data)
        name = name.strip() or DEFAULT_IMPORT_NAME
        resume_id = self._call("import", lambda c: c.import_resume(data, name, slug.strip()))
        log.debug("Imported temporary resume %s (%s)", resume_id, self.mode)
        return resume_id

    def export_pdf(self, resume_id: str) -> str:
        return self._call("export", lambda c: c.export_pdf(resume_id))

    def delete_resume(self, resume_id: str) -> None:
        self._call("delete", lambda c: c.delete_resume(resume_id))

    def validate_credentials(self) -> CredentialCheck:
        try:
            self._call("verify", lambda c: c.verify())
        except RxResumeAuthConfigError as exc:
            return CredentialCheck(ok=False, mode=self.mode, status=400, message=str(exc))
        except RxResumeRequestError as exc:
            return CredentialCheck(ok=False, mode=self.mode, status=exc.status or 0, message=str(exc))
        return CredentialCheck(ok=True, mode=self.mode)


