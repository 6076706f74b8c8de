"""Reactive Resume v4/v5 document schemas.

Only the fields the tailoring engine reads or writes are declared; every
model allows extra keys. Validation never rewrites the payload: a parsed
document keeps a deep copy of the raw mapping, so fields unknown to jobops
survive a round trip unchanged.
"""
from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from typing import Any, ClassVar, Literal, Union

from pydantic import BaseModel, ConfigDict, ValidationError

from jobops.errors import SchemaValidationError

ResumeMode = Literal["v4", "v5"]


class _Loose(BaseModel):
    model_config = ConfigDict(extra="allow", strict=True)


# --- v5 ----------------------------------------------------------------------


class V5Url(_Loose):
    url: str
    label: str


class V5ProjectItem(_Loose):
    id: str
    hidden: bool
    name: str
    period: str
    website: V5Url
    description: str


class V5SkillItem(_Loose):
    id: str
    hidden: bool
    icon: str
    name: str
    proficiency: str
    level: float
    keywords: list[str]


class V5SectionBase(_Loose):
    title: str
    columns: float
    hidden: bool


class V5ProjectsSection(V5SectionBase):
    items: list[V5ProjectItem]


class V5SkillsSection(V5SectionBase):
    items: list[V5SkillItem]


class V5SummarySection(V5SectionBase):
    content: str


class V5Basics(_Loose):
    name: str
    headline: str
    email: str
    phone: str
    location: str
    website: V5Url
    customFields: list[dict[str, Any]]


class V5Sections(_Loose):
    projects: V5ProjectsSection
    skills: V5SkillsSection


class V5ResumeData(_Loose):
    picture: dict[str, Any]
    basics: V5Basics
    summary: V5SummarySection
    sections: V5Sections
    customSections: list[dict[str, Any]]
    metadata: dict[str, Any]


# --- v4 ----------------------------------------------------------------------


class V4Url(_Loose):
    label: str
    href: str


class V4ProjectItem(_Loose):
    id: str
    visible: bool
    name: str
    description: str
    date: str
    summary: str
    keywords: list[str]
    url: V4Url


class V4SkillItem(_Loose):
    id: str
    visible: bool
    name: str
    description: str
    level: float
    keywords: list[str]


class V4SectionBase(_Loose):
    id: str
    name: str
    columns: float
    separateLinks: bool
    visible: bool


class V4SummarySection(V4SectionBase):
    content: str


class V4ProjectsSection(V4SectionBase):
    items: list[V4ProjectItem]


class V4SkillsSection(V4SectionBase):
    items: list[V4SkillItem]


class V4Basics(_Loose):
    name: str
    headline: str
    email: str
    phone: str
    location: str
    url: V4Url
    customFields: list[dict[str, Any]]
    picture: dict[str, Any]


class V4Sections(_Loose):
    summary: V4SummarySection
    skills: V4SkillsSection
    projects: V4ProjectsSection


class V4ResumeData(_Loose):
    basics: V4Basics
    sections: V4Sections
    metadata: dict[str, Any]


SCHEMAS: dict[str, type[BaseModel]] = {"v4": V4ResumeData, "v5": V5ResumeData}


# --- documents ---------------------------------------------------------------


@dataclass
class ResumeV4Document:
    data: dict[str, Any]
    mode: ClassVar[ResumeMode] = "v4"

    def to_json(self) -> str:
        return json.dumps(self.data, ensure_ascii=False)


@dataclass
class ResumeV5Document:
    data: dict[str, Any]
    mode: ClassVar[ResumeMode] = "v5"

    def to_json(self) -> str:
        return json.dumps(self.data, ensure_ascii=False)


ResumeDocument = Union[ResumeV4Document, ResumeV5Document]

_DOCUMENT_TYPES: dict[str, type] = {"v4": ResumeV4Document, "v5": ResumeV5Document}


def _first_issue(exc: ValidationError) -> SchemaValidationError:
    errors = exc.errors()
    if not errors:
        return SchemaValidationError("", "invalid payload")
    issue = errors[0]
    path = ".".join(str(p) for p in issue.get("loc", ()))
    return SchemaValidationError(path, issue.get("msg", "invalid value"))


def _check_mode(mode: str) -> None:
    if mode not in SCHEMAS:
        raise ValueError(f"Unknown resume mode: {mode!r} (expected v4 or v5)")


def validate_payload(mode: ResumeMode, raw: Any) -> None:
    """Raise SchemaValidationError when *raw* does not match *mode*."""
    _check_mode(mode)
    if not isinstance(raw, dict):
        raise SchemaValidationError("", "root payload must be an object.")
    try:
        SCHEMAS[mode].model_validate(raw)
    except ValidationError as exc:
        raise _first_issue(exc) from exc


def parse_resume(mode: ResumeMode, raw: Any) -> ResumeDocument:
    validate_payload(mode, raw)
    return _DOCUMENT_TYPES[mode](copy.deepcopy(raw))


def is_valid(mode: ResumeMode, raw: Any) -> bool:
    try:
        validate_payload(mode, raw)
    except SchemaValidationError:
        return False
    return True


def infer_mode(raw: Any) -> ResumeMode | None:
    """v5 is tried first; None when neither schema accepts the payload."""
    if is_valid("v5", raw):
        return "v5"
    if is_valid("v4", raw):
        return "v4"
    return None


@dataclass
class ValidationOutcome:
    ok: bool
    mode: ResumeMode
    document: ResumeDocument | None = None
    message: str = ""


def validate_resume(mode: ResumeMode, raw: Any) -> ValidationOutcome:
    """Non-raising form of :func:`parse_resume` for callers that report a message."""
    try:
        return ValidationOutcome(ok=True, mode=mode, document=parse_resume(mode, raw))
    except SchemaValidationError as exc:
        return ValidationOutcome(ok=False, mode=mode, message=str(exc))


def clone_document(document: ResumeDocument) -> ResumeDocument:
    return type(document)(copy.deepcopy(document.data))
