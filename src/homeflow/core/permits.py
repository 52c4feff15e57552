"""Municipal permit checklists and their conversion into tasks."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from importlib import resources
from pathlib import Path

import yaml
from pydantic import ValidationError

from homeflow.core.dates import add_days
from homeflow.core.templates import ConfigurationError
from homeflow.models.permit import PermitChecklist
from homeflow.models.template import TaskDraft

logger = logging.getLogger(__name__)

DEFAULT_TIMELINE_DAYS = 7


def _parse(data: object, origin: str) -> PermitChecklist:
    if not isinstance(data, dict):
        raise ConfigurationError(f"Permit checklist {origin} must be a mapping")
    try:
        return PermitChecklist(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid permit checklist {origin}: {e}") from e


def load_checklist(path: Path) -> PermitChecklist:
    with open(path) as f:
        return _parse(yaml.safe_load(f), str(path))


def load_bundled_checklists() -> list[PermitChecklist]:
    """Load every checklist shipped in ``homeflow/data/permits``."""
    folder = resources.files("homeflow.data").joinpath("permits")
    checklists = []
    for entry in sorted(folder.iterdir(), key=lambda p: p.name):
        if entry.name.endswith((".yaml", ".yml")):
            checklists.append(_parse(yaml.safe_load(entry.read_text()), entry.name))
    return checklists


def find_checklist(
    checklists: Iterable[PermitChecklist],
    municipality: str,
    project_type: str = "adu",
) -> PermitChecklist | None:
    key = municipality.strip().lower()
    for checklist in checklists:
        if checklist.municipality_key == key and checklist.project_type == project_type:
            return checklist
    return None


def permit_task_drafts(
    checklist: PermitChecklist,
    existing_titles: Iterable[str],
    today: date,
    *,
    default_days: int = DEFAULT_TIMELINE_DAYS,
) -> list[TaskDraft]:
    """Drafts for checklist items not already on the project.

    Titles are compared case-insensitively. Items without a typical
    timeline are due ``default_days`` from today.
    """
    seen = {title.lower() for title in existing_titles}
    drafts = []
    for item in checklist.checklist_items:
        if item.title.lower() in seen:
            continue
        seen.add(item.title.lower())
        drafts.append(
            TaskDraft(
                title=item.title,
                description=item.description,
                due_date=add_days(today, item.typical_timeline_days or default_days),
            )
        )
    logger.debug(
        "Checklist '%s': %d new task(s) of %d item(s)",
        checklist.title,
        len(drafts),
        len(checklist.checklist_items),
    )
    return drafts
