"""
Generate tailored PDF resumes through Reactive Resume.

Flow per job:
  1. Prepare the base resume: tailored skills/summary/headline, project selection.
  2. Import it as a temporary remote resume.
  3. Request a PDF export URL and stream the file to ``resume_<job id>.pdf``.
  4. Delete the temporary remote resume, whatever happened in 3.
"""
from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator

import requests

from jobops.config import PDF_DIR
from jobops.errors import SchemaValidationError
from jobops.log import get_logger
from jobops.models import ResumeProjectCatalogItem, TailoredContent
from jobops.retry import retry
from jobops.rxresume.projects import (
    ProjectPicker,
    extract_projects,
    resolve_projects_settings,
    select_and_apply,
)
from jobops.rxresume.schema import ResumeDocument, ResumeMode, clone_document, infer_mode, parse_resume
from jobops.rxresume.store import RxResumeStore
from jobops.rxresume.tailoring import apply_tailored_content

log = get_logger(__name__)

DOWNLOAD_CHUNK = 64 * 1024


@dataclass
class PreparedResume:
    mode: ResumeMode
    document: ResumeDocument
    catalog: list[ResumeProjectCatalogItem] = field(default_factory=list)
    selected_project_ids: list[str] = field(default_factory=list)


def prepare_tailored_resume(
    base_data: Any,
    content: TailoredContent,
    picker: ProjectPicker,
    *,
    mode: ResumeMode | None = None,
    job_description: str = "",
    projects_settings: dict[str, Any] | None = None,
    selected_project_ids: str | list[str] | None = None,
    force_visible_projects_section: bool = True,
) -> PreparedResume:
    """Build the per-job document from the base resume without touching the original."""
    mode = mode or infer_mode(base_data)
    if mode is None:
        raise SchemaValidationError(
            "", "base resume matches neither the v5 nor the v4 schema."
        )
    document = clone_document(parse_resume(mode, base_data))
    apply_tailored_content(document, content)

    catalog, _ = extract_projects(document)
    policy = resolve_projects_settings(catalog, projects_settings)
    selected = select_and_apply(
        document,
        policy,
        picker,
        job_description=job_description,
        selected_project_ids=selected_project_ids,
        force_visible_section=force_visible_projects_section,
    )
    return PreparedResume(
        mode=mode, document=document, catalog=catalog, selected_project_ids=selected,
    )


def pdf_path_for(job_id: str, output_dir: Path = PDF_DIR) -> Path:
    return Path(output_dir) / f"resume_{job_id}.pdf"


def pdf_exists(job_id: str, output_dir: Path = PDF_DIR) -> bool:
    return pdf_path_for(job_id, output_dir).is_file()


@retry(max_attempts=3, base_delay=1.0, retryable=(requests.ConnectionError, requests.Timeout))
def download_file(url: str, output_path: Path, timeout: float = 60) -> None:
    """Stream *url* to *output_path*, replacing any previous file.

    Bytes land in a sibling ``.part`` file that only replaces *output_path*
    once the download has finished, so a failed download keeps the old PDF.
    """
    output_path = Path(output_path)
    part_path = output_path.with_name(output_path.name + ".part")
    try:
        with requests.get(url, stream=True, timeout=timeout) as r:
            if not r.ok:
                raise RuntimeError(f"Failed to download PDF: HTTP {r.status_code} {r.reason}")
            with open(part_path, "wb") as f:
                for chunk in r.iter_content(chunk_size=DOWNLOAD_CHUNK):
                    if chunk:
                        f.write(chunk)
        os.replace(part_path, output_path)
    finally:
        part_path.unlink(missing_ok=True)


@contextmanager
def temporary_remote_resume(
    store: RxResumeStore, document: ResumeDocument, name: str
) -> Iterator[str]:
    """Import *document* for the duration of the block, then delete it.

    A delete failure is logged; it never masks an error from inside the block
    and is not raised after a successful one.
    """
    resume_id = store.import_resume(document, name=name)
    try:
        yield resume_id
    finally:
        try:
            store.delete_resume(resume_id)
        except Exception as exc:
            log.warning("Failed to delete temporary resume %s: %s", resume_id, exc)


class ResumePdfGenerator:
    """Export one prepared resume per job through a Reactive Resume store."""

    def __init__(self, store: RxResumeStore, output_dir: Path = PDF_DIR) -> None:
        self.store = store
        self.output_dir = Path(output_dir)

    def generate(self, job_id: str, prepared: PreparedResume | ResumeDocument) -> Path:
        document = prepared.document if isinstance(prepared, PreparedResume) else prepared
        self.output_dir.mkdir(parents=True, exist_ok=True)
        output_path = pdf_path_for(job_id, self.output_dir)

        log.info("Generating PDF resume for job %s", job_id)
        with temporary_remote_resume(
            self.store, document, name=f"JobOps Tailored Resume {job_id}"
        ) as resume_id:
            log.debug("Requesting PDF export for temporary resume %s", resume_id)
            url = self.store.export_pdf(resume_id)
            log.debug("Downloading generated PDF for job %s", job_id)
            download_file(url, output_path)

        log.info("PDF generated → %s", output_path)
        return output_path
