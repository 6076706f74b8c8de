"""Apply AI-generated headline, summary and skills onto a parsed resume document.

Every function mutates ``document.data`` in place and is a no-op when the
tailored value is empty, so existing content is never cleared.
"""
from __future__ import annotations

import json
import random
import string
import uuid
from dataclasses import dataclass
from typing import Any, Callable

from jobops.log import get_logger
from jobops.models import TailoredContent
from jobops.rxresume.schema import ResumeDocument, ResumeV4Document, ResumeV5Document

log = get_logger(__name__)

Record = dict[str, Any]


@dataclass(frozen=True)
class SkillCapabilities:
    """Which skill fields a schema variant requires, and their repair defaults.

    ``inherited`` lists optional fields that are only written when the item
    being overwritten already declares them. ``None`` means every field is
    always written.
    """

    defaults: dict[str, Any]
    inherited: tuple[str, ...] | None


SKILL_CAPABILITIES: dict[str, SkillCapabilities] = {
    "v4": SkillCapabilities(
        defaults={
            "id": None,
            "visible": True,
            "name": "",
            "description": "",
            "level": 1,
            "keywords": [],
        },
        inherited=None,
    ),
    "v5": SkillCapabilities(
        defaults={
            "id": None,
            "hidden": False,
            "icon": "",
            "name": "",
            "proficiency": "",
            "level": 0,
            "keywords": [],
        },
        inherited=("description", "proficiency", "level", "hidden", "visible", "icon"),
    ),
}


def create_id() -> str:
    """cuid2-shaped id: a lowercase letter followed by 23 lowercase hex chars."""
    return random.choice(string.ascii_lowercase) + uuid.uuid4().hex[:23]


def _as_record(value: Any) -> Record | None:
    return value if isinstance(value, dict) else None


def _as_list(value: Any) -> list | None:
    return value if isinstance(value, list) else None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _keywords(value: Any) -> list[str] | None:
    if not isinstance(value, list):
        return None
    return [k for k in value if isinstance(k, str)]


def _skills_section(document: ResumeDocument) -> Record | None:
    sections = _as_record(document.data.get("sections"))
    return _as_record(sections.get("skills")) if sections else None


def parse_tailored_skills(skills: Any) -> list[Record] | None:
    """Accept a list of ``{name, keywords}`` mappings or its JSON encoding."""
    if not skills:
        return None
    if isinstance(skills, str):
        try:
            skills = json.loads(skills)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Tailored skills are not valid JSON: {exc}") from exc
    if not isinstance(skills, list):
        return None
    return [s for s in skills if isinstance(s, dict)]


# --- headline / summary ------------------------------------------------------


def apply_tailored_headline(document: ResumeDocument, headline: str | None) -> None:
    if not headline:
        return
    basics = _as_record(document.data.get("basics"))
    if basics is None:
        return
    basics["headline"] = headline
    # Older templates still render basics.label.
    basics["label"] = headline


def apply_tailored_summary(document: ResumeDocument, summary: str | None) -> None:
    if not summary:
        return
    data = document.data

    if isinstance(document, ResumeV5Document):
        top = _as_record(data.get("summary"))
        if top is not None:
            if "content" not in top or isinstance(top["content"], str):
                top["content"] = summary
                return
            if "value" not in top or isinstance(top["value"], str):
                top["value"] = summary
                return
    elif not isinstance(document, ResumeV4Document):
        raise TypeError(f"Unsupported resume document: {type(document).__name__}")

    sections = _as_record(data.get("sections"))
    summary_section = _as_record(sections.get("summary")) if sections else None
    if summary_section is not None:
        summary_section["content"] = summary
        return

    basics = _as_record(data.get("basics"))
    if basics is not None:
        basics["summary"] = summary


# --- skills ------------------------------------------------------------------


def sanitize_skills(document: ResumeDocument) -> None:
    """Fill in required fields missing from existing skill items."""
    section = _skills_section(document)
    items = _as_list(section.get("items")) if section else None
    if section is None or items is None:
        return
    caps = SKILL_CAPABILITIES[document.mode]

    repaired: list[Record] = []
    for raw in items:
        skill = dict(_as_record(raw) or {})
        for key, default in caps.defaults.items():
            value = skill.get(key)
            if key == "id":
                skill["id"] = value if isinstance(value, str) and value else create_id()
            elif key == "keywords":
                skill["keywords"] = _keywords(value) or []
            elif isinstance(default, bool):
                skill[key] = value if isinstance(value, bool) else default
            elif _is_number(default):
                skill[key] = value if _is_number(value) else default
            else:
                skill[key] = value if isinstance(value, str) else default
        repaired.append(skill)
    section["items"] = repaired


def _merge_skill_v4(new: Record, match: Record | None) -> Record:
    source = match or {}
    new_visible = new.get("visible")
    return {
        "id": _str(new.get("id")) or _str(source.get("id")) or create_id(),
        "visible": new_visible if isinstance(new_visible, bool)
        else source.get("visible") if isinstance(source.get("visible"), bool)
        else True,
        "name": _str(new.get("name")) or _str(source.get("name")),
        "description": new["description"] if isinstance(new.get("description"), str)
        else _str(source.get("description")),
        "level": new["level"] if _is_number(new.get("level"))
        else source["level"] if _is_number(source.get("level"))
        else 0,
        "keywords": _keywords(new.get("keywords"))
        if _keywords(new.get("keywords")) is not None
        else _keywords(source.get("keywords")) or [],
    }


_KEEP = object()


def _v5_description(new: Record, source: Record, matched: bool) -> Any:
    if isinstance(new.get("description"), str):
        return new["description"]
    return _str(source.get("description"))


def _v5_proficiency(new: Record, source: Record, matched: bool) -> Any:
    if isinstance(new.get("proficiency"), str):
        return new["proficiency"]
    if isinstance(new.get("description"), str):
        return new["description"]
    return _str(source.get("proficiency"))


def _v5_level(new: Record, source: Record, matched: bool) -> Any:
    if _is_number(new.get("level")):
        return new["level"]
    return _KEEP if matched else SKILL_CAPABILITIES["v5"].defaults["level"]


def _v5_flag(key: str, default: bool) -> Callable[[Record, Record, bool], Any]:
    def resolve(new: Record, source: Record, matched: bool) -> Any:
        if isinstance(new.get(key), bool):
            return new[key]
        return _KEEP if matched else default
    return resolve


def _v5_icon(new: Record, source: Record, matched: bool) -> Any:
    return _KEEP if matched else _str(new.get("icon"))


# Value for each inherited v5 field; _KEEP leaves the overwritten item's value.
_V5_INHERITED_RULES: dict[str, Callable[[Record, Record, bool], Any]] = {
    "description": _v5_description,
    "proficiency": _v5_proficiency,
    "level": _v5_level,
    "hidden": _v5_flag("hidden", False),
    "visible": _v5_flag("visible", True),
    "icon": _v5_icon,
}


def _merge_skill_v5(
    new: Record, match: Record | None, template: Record, caps: SkillCapabilities
) -> Record:
    source = match or {}
    item: Record = dict(match if match is not None else template)

    if "id" in item:
        item["id"] = _str(new.get("id")) or _str(source.get("id")) or create_id()
    if "name" in item:
        item["name"] = _str(new.get("name")) or _str(source.get("name"))
    if "keywords" in item:
        new_keywords = _keywords(new.get("keywords"))
        item["keywords"] = new_keywords if new_keywords is not None else (
            _keywords(source.get("keywords")) or []
        )

    for key in caps.inherited or ():
        if key not in item:
            continue
        value = _V5_INHERITED_RULES[key](new, source, match is not None)
        if value is not _KEEP:
            item[key] = value
    return item


def apply_tailored_skills(document: ResumeDocument, skills: Any) -> None:
    """Replace the skills list with the tailored one, in the AI-provided order.

    Entries are matched to existing items by ``name``; unmatched entries get
    schema-valid defaults. The sanitize pass runs even without input.
    """
    sanitize_skills(document)
    parsed = parse_tailored_skills(skills)
    if not parsed:
        return

    section = _skills_section(document)
    if section is None:
        return
    existing = [i for i in (_as_list(section.get("items")) or []) if isinstance(i, dict)]

    def find(name: Any) -> Record | None:
        return next((i for i in existing if i.get("name") == name), None)

    if isinstance(document, ResumeV4Document):
        section["items"] = [_merge_skill_v4(s, find(s.get("name"))) for s in parsed]
    elif isinstance(document, ResumeV5Document):
        if not existing:
            log.debug("v5 skills section has no template item; skipping skills")
            return
        template = existing[0]
        section["items"] = [
            _merge_skill_v5(s, find(s.get("name")), template, SKILL_CAPABILITIES[document.mode])
            for s in parsed
        ]
    else:
        raise TypeError(f"Unsupported resume document: {type(document).__name__}")


def apply_tailored_content(document: ResumeDocument, content: TailoredContent) -> None:
    apply_tailored_skills(document, content.skills)
    apply_tailored_summary(document, content.summary)
    apply_tailored_headline(document, content.headline)
