"""Project catalog extraction and per-job project selection."""
from __future__ import annotations

import re
from html import unescape
from typing import Any, Callable, Iterable, Sequence

from jobops.log import get_logger
from jobops.models import (
    ResumeProjectCatalogItem,
    ResumeProjectSelectionItem,
    ResumeProjectsSettings,
)
from jobops.rxresume.schema import ResumeDocument, ResumeV4Document, ResumeV5Document

log = get_logger(__name__)

# (job_description, eligible items, desired count) -> picked ids
ProjectPicker = Callable[[str, list[ResumeProjectSelectionItem], int], list[str]]

_TAG_RE = re.compile(r"<[^>]*>")


def strip_html(text: str) -> str:
    return re.sub(r"\s+", " ", unescape(_TAG_RE.sub(" ", text or ""))).strip()


def _projects_section(document: ResumeDocument) -> dict[str, Any] | None:
    sections = document.data.get("sections")
    if not isinstance(sections, dict):
        return None
    section = sections.get("projects")
    return section if isinstance(section, dict) else None


def _unique(ids: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(i for i in ids if i))


def extract_projects(
    document: ResumeDocument,
) -> tuple[list[ResumeProjectCatalogItem], list[ResumeProjectSelectionItem]]:
    section = _projects_section(document)
    items = section.get("items") if section else None
    if not isinstance(items, list):
        return [], []

    catalog: list[ResumeProjectCatalogItem] = []
    selection: list[ResumeProjectSelectionItem] = []
    for item in items:
        if not isinstance(item, dict):
            continue
        pid = item.get("id")
        if not isinstance(pid, str) or not pid:
            continue
        name = item["name"] if isinstance(item.get("name"), str) else pid
        description = item["description"] if isinstance(item.get("description"), str) else ""

        if isinstance(document, ResumeV5Document):
            date = item["period"] if isinstance(item.get("period"), str) else ""
            hidden = item["hidden"] if isinstance(item.get("hidden"), bool) else False
            visible = not hidden
            summary_raw = description
        elif isinstance(document, ResumeV4Document):
            date = item["date"] if isinstance(item.get("date"), str) else ""
            visible = bool(item.get("visible"))
            summary_raw = item["summary"] if isinstance(item.get("summary"), str) else ""
        else:
            raise TypeError(f"Unsupported resume document: {type(document).__name__}")

        catalog.append(ResumeProjectCatalogItem(
            id=pid, name=name, description=description, date=date,
            is_visible_in_base=visible,
        ))
        selection.append(ResumeProjectSelectionItem(
            id=pid, name=name, description=description, date=date,
            is_visible_in_base=visible, summary_text=strip_html(summary_raw),
        ))
    return catalog, selection


def resolve_projects_settings(
    catalog: Sequence[ResumeProjectCatalogItem],
    raw: dict[str, Any] | None = None,
) -> ResumeProjectsSettings:
    """Turn the user's ``resume_projects`` block into a consistent policy.

    Defaults: nothing locked, every catalog project AI-selectable, and as many
    slots as the base resume shows. Ids missing from the catalog are dropped and
    ``max_projects`` is clamped to ``[len(locked), len(catalog)]``.
    """
    raw = raw or {}
    known = [p.id for p in catalog]
    known_set = set(known)

    locked = [i for i in _unique(raw.get("locked_project_ids") or []) if i in known_set]
    if "ai_selectable_project_ids" in raw:
        selectable = _unique(raw.get("ai_selectable_project_ids") or [])
    else:
        selectable = list(known)
    selectable = [i for i in selectable if i in known_set and i not in locked]

    if raw.get("max_projects") is not None:
        max_projects = int(raw["max_projects"])
    else:
        max_projects = sum(1 for p in catalog if p.is_visible_in_base)
    max_projects = max(len(locked), min(max_projects, len(catalog)))

    return ResumeProjectsSettings(
        locked_project_ids=locked,
        ai_selectable_project_ids=selectable,
        max_projects=max_projects,
    )


def select_project_ids(
    settings: ResumeProjectsSettings,
    selection_items: Sequence[ResumeProjectSelectionItem],
    picker: ProjectPicker,
    job_description: str = "",
) -> list[str]:
    """Locked projects plus at most ``max_projects - len(locked)`` AI picks."""
    locked = _unique(settings.locked_project_ids)
    remaining = max(0, settings.max_projects - len(locked))
    locked_set = set(locked)
    eligible_ids = [i for i in _unique(settings.ai_selectable_project_ids) if i not in locked_set]
    eligible_set = set(eligible_ids)
    eligible = [p for p in selection_items if p.id in eligible_set]

    picked: list[str] = []
    if remaining and eligible:
        raw_picked = picker(job_description, eligible, remaining) or []
        picked = [i for i in _unique(raw_picked) if i in eligible_set]
        if len(picked) < len(raw_picked):
            log.warning("Picker returned ids outside the eligible pool; dropped %d",
                        len(raw_picked) - len(picked))
        picked = picked[:remaining]

    return _unique([*locked, *picked])


def parse_selected_project_ids(value: str | Iterable[str] | None) -> list[str] | None:
    """None means "not supplied"; an empty string means "show no projects"."""
    if value is None:
        return None
    if isinstance(value, str):
        return _unique(s.strip() for s in value.split(","))
    return _unique(s.strip() for s in value if isinstance(s, str))


def apply_project_visibility(
    document: ResumeDocument,
    selected_ids: Iterable[str],
    force_visible_section: bool = True,
) -> None:
    section = _projects_section(document)
    items = section.get("items") if section else None
    if section is None or not isinstance(items, list):
        return
    selected = set(selected_ids)

    for item in items:
        if not isinstance(item, dict):
            continue
        pid = item.get("id")
        if not isinstance(pid, str) or not pid:
            continue
        if isinstance(document, ResumeV5Document):
            if "hidden" in item:
                item["hidden"] = pid not in selected
            elif "visible" in item:
                item["visible"] = pid in selected
        elif isinstance(document, ResumeV4Document):
            item["visible"] = pid in selected
        else:
            raise TypeError(f"Unsupported resume document: {type(document).__name__}")

    # A selected project inside a hidden section would not render.
    if force_visible_section:
        if isinstance(document, ResumeV5Document):
            if "hidden" in section:
                section["hidden"] = False
            elif "visible" in section:
                section["visible"] = True
        else:
            section["visible"] = True


def select_and_apply(
    document: ResumeDocument,
    settings: ResumeProjectsSettings,
    picker: ProjectPicker,
    job_description: str = "",
    selected_project_ids: str | Iterable[str] | None = None,
    force_visible_section: bool = True,
) -> list[str]:
    """Compute the visible project set and flip visibility flags accordingly.

    An explicit ``selected_project_ids`` bypasses the policy and the picker.
    """
    explicit = parse_selected_project_ids(selected_project_ids)
    if explicit is not None:
        selected = explicit
    else:
        _, selection_items = extract_projects(document)
        selected = select_project_ids(settings, selection_items, picker, job_description)
    apply_project_visibility(document, selected, force_visible_section)
    return selected
