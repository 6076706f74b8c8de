"""Logging for pipeline runs.

Every record carries the id of the pipeline run it was emitted under
(``-`` outside a run), so one run can be followed through the crawler,
scorer and Reactive Resume calls in ``logs/jobops_<date>.log``.
"""
from __future__ import annotations

import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime
from pathlib import Path
from typing import Iterator

LOG_DIR: Path = Path(
    os.environ.get("JOBOPS_LOG_DIR") or Path(__file__).resolve().parent.parent / "logs"
)
_FORMAT = "%(asctime)s  %(levelname)-8s  [%(run_id)s]  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"
# Client libraries that log every request at INFO.
_QUIET_LOGGERS = ("urllib3", "httpx", "httpcore", "openai")
_configured = False

_run_id: ContextVar[str] = ContextVar("jobops_run_id", default="-")


class RunIdFilter(logging.Filter):
    """Stamps ``record.run_id`` with the pipeline run active in this context."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = _run_id.get()
        return True


def current_run_id() -> str:
    return _run_id.get()


@contextmanager
def run_context(run_id: str) -> Iterator[None]:
    """Tag log records emitted inside the block with *run_id*."""
    token = _run_id.set(run_id)
    try:
        yield
    finally:
        _run_id.reset(token)


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; configures root handlers on first call."""
    global _configured
    if not _configured:
        _configure()
        _configured = True
    return logging.getLogger(name)


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATE_FMT))
    handler.addFilter(RunIdFilter())
    return handler


def _configure() -> None:
    level_name = os.environ.get("LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if root.handlers:
        return

    root.addHandler(_handler(logging.StreamHandler(sys.stdout), level))

    if os.environ.get("JOBOPS_LOG_TO_FILE", "true").lower() not in ("1", "true", "yes"):
        return
    try:
        LOG_DIR.mkdir(parents=True, exist_ok=True)
        log_file = LOG_DIR / f"jobops_{datetime.now().strftime('%Y-%m-%d')}.log"
        root.addHandler(_handler(logging.FileHandler(log_file, encoding="utf-8"), logging.DEBUG))
    except OSError:
        pass
