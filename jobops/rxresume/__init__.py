from .schema import (
    ResumeDocument,
    ResumeV4Document,
    ResumeV5Document,
    clone_document,
    infer_mode,
    parse_resume,
    validate_resume,
)
from .store import CredentialCheck, RxResumeStore
from .tailoring import apply_tailored_content, sanitize_skills
from .projects import (
    apply_project_visibility,
    extract_projects,
    resolve_projects_settings,
    select_and_apply,
)

__all__ = [
    "ResumeDocument", "ResumeV4Document", "ResumeV5Document",
    "clone_document", "infer_mode", "parse_resume", "validate_resume",
    "CredentialCheck", "RxResumeStore",
    "apply_tailored_content", "sanitize_skills",
    "apply_project_visibility", "extract_projects",
    "resolve_projects_settings", "select_and_apply",
]
