"""Tests for project catalog extraction, selection policy and visibility."""
from unittest.mock import MagicMock

from jobops.models import ResumeProjectsSettings
from jobops.rxresume.projects import (
    apply_project_visibility,
    extract_projects,
    parse_selected_project_ids,
    resolve_projects_settings,
    select_and_apply,
    select_project_ids,
    strip_html,
)
from jobops.rxresume.schema import parse_resume


def _v5_hidden(document):
    return {p["id"]: p["hidden"] for p in document.data["sections"]["projects"]["items"]}


def _v4_visible(document):
    return {p["id"]: p["visible"] for p in document.data["sections"]["projects"]["items"]}


class TestExtractProjects:
    def test_v5_catalog(self, v5_resume):
        catalog, selection = extract_projects(parse_resume("v5", v5_resume))
        assert [p.id for p in catalog] == ["proj-a", "proj-b", "proj-c", "proj-d"]
        assert [p.is_visible_in_base for p in catalog] == [True, True, False, False]
        assert catalog[0].date == "2023"
        assert selection[0].summary_text == "Alpha built with Python"

    def test_v4_catalog_uses_summary_text(self, v4_resume):
        catalog, selection = extract_projects(parse_resume("v4", v4_resume))
        assert [p.is_visible_in_base for p in catalog] == [True, True, False]
        assert selection[1].summary_text == "Bravo summary"

    def test_missing_section(self, v5_resume):
        document = parse_resume("v5", v5_resume)
        del document.data["sections"]["projects"]
        assert extract_projects(document) == ([], [])


class TestResolveSettings:
    def test_defaults(self, v5_resume):
        catalog, _ = extract_projects(parse_resume("v5", v5_resume))
        settings = resolve_projects_settings(catalog, None)
        assert settings.locked_project_ids == []
        assert settings.ai_selectable_project_ids == ["proj-a", "proj-b", "proj-c", "proj-d"]
        assert settings.max_projects == 2

    def test_unknown_ids_dropped_and_max_clamped(self, v5_resume):
        catalog, _ = extract_projects(parse_resume("v5", v5_resume))
        settings = resolve_projects_settings(catalog, {
            "locked_project_ids": ["ghost", "proj-a", "proj-b"],
            "ai_selectable_project_ids": ["proj-a", "proj-c", "nope"],
            "max_projects": 1,
        })
        assert settings.locked_project_ids == ["proj-a", "proj-b"]
        assert settings.ai_selectable_project_ids == ["proj-c"]
        assert settings.max_projects == 2

        assert resolve_projects_settings(catalog, {"max_projects": 99}).max_projects == 4


class TestSelectProjectIds:
    def test_locked_plus_single_pick(self, v5_resume):
        document = parse_resume("v5", v5_resume)
        catalog, selection = extract_projects(document)
        settings = resolve_projects_settings(catalog, {
            "locked_project_ids": ["proj-a"],
            "ai_selectable_project_ids": ["proj-b", "proj-c", "proj-d"],
            "max_projects": 4,
        })
        picker = MagicMock(return_value=["proj-c"])

        selected = select_and_apply(document, settings, picker, job_description="ML role")

        assert selected == ["proj-a", "proj-c"]
        job_description, eligible, desired = picker.call_args.args
        assert job_description == "ML role"
        assert [p.id for p in eligible] == ["proj-b", "proj-c", "proj-d"]
        assert desired == 3
        assert _v5_hidden(document) == {
            "proj-a": False, "proj-b": True, "proj-c": False, "proj-d": True,
        }

    def test_picks_outside_pool_dropped_and_truncated(self, v5_resume):
        _, selection = extract_projects(parse_resume("v5", v5_resume))
        settings = ResumeProjectsSettings(
            locked_project_ids=["proj-a"],
            ai_selectable_project_ids=["proj-b", "proj-c"],
            max_projects=2,
        )
        picker = MagicMock(return_value=["ghost", "proj-a", "proj-c", "proj-b"])

        assert select_project_ids(settings, selection, picker) == ["proj-a", "proj-c"]

    def test_picker_not_called_without_free_slots(self, v5_resume):
        _, selection = extract_projects(parse_resume("v5", v5_resume))
        settings = ResumeProjectsSettings(
            locked_project_ids=["proj-a", "proj-b"],
            ai_selectable_project_ids=["proj-c"],
            max_projects=2,
        )
        picker = MagicMock()
        assert select_project_ids(settings, selection, picker) == ["proj-a", "proj-b"]
        picker.assert_not_called()

    def test_selection_never_exceeds_max(self, v5_resume):
        _, selection = extract_projects(parse_resume("v5", v5_resume))
        ids = [p.id for p in selection]
        for max_projects in range(0, 5):
            settings = ResumeProjectsSettings([], ids, max_projects)
            picked = select_project_ids(settings, selection, lambda jd, eligible, n: ids)
            assert len(picked) <= max_projects


class TestVisibility:
    def test_v4_flags_and_forced_section(self, v4_resume):
        v4_resume["sections"]["projects"]["visible"] = False
        document = parse_resume("v4", v4_resume)

        apply_project_visibility(document, ["p3"])

        assert _v4_visible(document) == {"p1": False, "p2": False, "p3": True}
        assert document.data["sections"]["projects"]["visible"] is True

    def test_v5_hidden_section_left_alone_when_not_forced(self, v5_resume):
        v5_resume["sections"]["projects"]["hidden"] = True
        document = parse_resume("v5", v5_resume)

        apply_project_visibility(document, ["proj-d"], force_visible_section=False)

        assert document.data["sections"]["projects"]["hidden"] is True
        assert _v5_hidden(document)["proj-d"] is False

    def test_v5_section_forced_visible(self, v5_resume):
        v5_resume["sections"]["projects"]["hidden"] = True
        document = parse_resume("v5", v5_resume)
        apply_project_visibility(document, [])
        assert document.data["sections"]["projects"]["hidden"] is False
        assert all(_v5_hidden(document).values())

    def test_explicit_ids_bypass_picker(self, v4_resume):
        document = parse_resume("v4", v4_resume)
        picker = MagicMock()
        settings = ResumeProjectsSettings([], ["p1", "p2", "p3"], 3)

        selected = select_and_apply(document, settings, picker, selected_project_ids="")

        assert selected == []
        assert not any(_v4_visible(document).values())
        picker.assert_not_called()


def test_parse_selected_project_ids():
    assert parse_selected_project_ids(None) is None
    assert parse_selected_project_ids("") == []
    assert parse_selected_project_ids(" a, b ,a,,c") == ["a", "b", "c"]
    assert parse_selected_project_ids(["x", "", "y"]) == ["x", "y"]


def test_strip_html():
    assert strip_html("<p>Hello&nbsp;<b>world</b></p>\n<ul><li>x</li></ul>") == "Hello world x"
