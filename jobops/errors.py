"""Exception hierarchy shared by the pipeline, repositories and Reactive Resume adapters."""
from __future__ import annotations


class JobOpsError(Exception):
    """Base class for every error raised by jobops."""


class AlreadyRunningError(JobOpsError):
    def __init__(self, message: str = "Pipeline is already running") -> None:
        super().__init__(message)


class ConfigurationError(JobOpsError):
    """A required setting (base resume, credentials, profile) is missing."""


class CrawlError(JobOpsError):
    """The crawl phase failed as a whole."""


class PipelineCancelledError(JobOpsError):
    def __init__(self, message: str = "Pipeline cancelled") -> None:
        super().__init__(message)


class NotFoundError(JobOpsError):
    pass


class InvalidTransitionError(JobOpsError):
    def __init__(self, job_id: str, current: str, target: str) -> None:
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(f"Job {job_id}: cannot move from '{current}' to '{target}'")


class SchemaValidationError(JobOpsError):
    """Resume payload does not match the schema of its mode.

    ``path`` is the dotted location of the first failing field (empty for the
    root).
    """

    def __init__(self, path: str, message: str) -> None:
        self.path = path
        self.detail = message
        if path:
            text = f'Resume schema validation failed at "{path}": {message}'
        else:
            text = f"Resume schema validation failed: {message}"
        super().__init__(text)


# --- Reactive Resume ---------------------------------------------------------


class RxResumeError(JobOpsError):
    pass


class RxResumeAuthConfigError(RxResumeError, ConfigurationError):
    """Credentials for the selected mode are missing. Never retried."""

    def __init__(self, mode: str, message: str) -> None:
        self.mode = mode
        super().__init__(message)


class RxResumeRequestError(RxResumeError):
    """A request to Reactive Resume failed.

    ``status`` is the HTTP status, ``0`` for a network-level failure and
    ``None`` when unknown.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        self.status = status
        super().__init__(message)


class AuthError(RxResumeRequestError):
    pass


class RemoteNotFoundError(RxResumeRequestError, NotFoundError):
    pass


class UpstreamError(RxResumeRequestError):
    pass


def classify_request_error(message: str, status: int | None) -> RxResumeRequestError:
    """Map an HTTP status onto the matching request error class."""
    if status == 401:
        return AuthError(message, status)
    if status == 404:
        return RemoteNotFoundError(message, status)
    if status == 0 or (status is not None and status >= 500):
        return UpstreamError(message, status)
    return RxResumeRequestError(message, status)
