"""Tests for permit checklists."""

from __future__ import annotations

from datetime import date

import pytest

from homeflow.core.permits import (
    find_checklist,
    load_bundled_checklists,
    load_checklist,
    permit_task_drafts,
)
from homeflow.core.templates import ConfigurationError
from homeflow.models.permit import ChecklistItem, PermitChecklist


@pytest.fixture
def checklist() -> PermitChecklist:
    return PermitChecklist(
        municipality_key="toronto",
        municipality_name="City of Toronto",
        title="Garden Suite Permit Checklist",
        checklist_items=(
            ChecklistItem(title="Zoning Review Application", typical_timeline_days=14),
            ChecklistItem(title="Arborist Report", description="Near a protected tree."),
        ),
    )


def test_drafts_use_typical_timeline(checklist: PermitChecklist):
    drafts = permit_task_drafts(checklist, [], date(2024, 1, 1))
    assert [d.title for d in drafts] == ["Zoning Review Application", "Arborist Report"]
    assert drafts[0].due_date == date(2024, 1, 15)


def test_missing_timeline_uses_default(checklist: PermitChecklist):
    drafts = permit_task_drafts(checklist, [], date(2024, 1, 1))
    assert drafts[1].due_date == date(2024, 1, 8)
    assert drafts[1].description == "Near a protected tree."


def test_custom_default_days(checklist: PermitChecklist):
    drafts = permit_task_drafts(checklist, [], date(2024, 1, 1), default_days=3)
    assert drafts[1].due_date == date(2024, 1, 4)


def test_existing_titles_skipped_case_insensitive(checklist: PermitChecklist):
    drafts = permit_task_drafts(checklist, ["arborist REPORT"], date(2024, 1, 1))
    assert [d.title for d in drafts] == ["Zoning Review Application"]


def test_bundled_checklists():
    checklists = load_bundled_checklists()
    keys = {c.municipality_key for c in checklists}
    assert {"toronto", "kawartha lakes"} <= keys


def test_find_checklist():
    checklists = load_bundled_checklists()
    found = find_checklist(checklists, "  Toronto ")
    assert found is not None
    assert found.municipality_name == "City of Toronto"
    assert find_checklist(checklists, "Toronto", project_type="pool") is None
    assert find_checklist(checklists, "Atlantis") is None


def test_load_checklist(tmp_path):
    path = tmp_path / "town.yaml"
    path.write_text(
        "municipality_key: smalltown\n"
        "municipality_name: Smalltown\n"
        "title: ADU Checklist\n"
        "checklist_items:\n"
        "  - title: Building Permit Application\n"
        "    typical_timeline_days: 21\n"
    )
    checklist = load_checklist(path)
    assert checklist.project_type == "adu"
    assert checklist.checklist_items[0].typical_timeline_days == 21


def test_load_invalid_checklist(tmp_path):
    path = tmp_path / "broken.yaml"
    path.write_text("municipality_key: smalltown\n")
    with pytest.raises(ConfigurationError):
        load_checklist(path)
