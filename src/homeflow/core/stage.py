"""Stage Classifier.

Derives a project's lifecycle stage from its task list when no explicit
override is stored. Stages are scanned in ascending order, so the earliest
phase with unresolved work wins regardless of task order.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from types import MappingProxyType
from typing import Any

from homeflow.models.stage import STAGE_ORDER, ProjectStage
from homeflow.models.task import Task

logger = logging.getLogger(__name__)

STAGE_KEYWORDS: Mapping[ProjectStage, tuple[str, ...]] = MappingProxyType(
    {
        ProjectStage.FEASIBILITY: ("feasibility", "survey", "assessment", "zoning"),
        ProjectStage.DESIGN: ("design", "schematic", "development", "construction documents"),
        ProjectStage.PERMITTING: ("permit", "application", "review", "approval"),
        ProjectStage.PROCUREMENT: ("tender", "procurement", "contractor", "quote", "rfc"),
        ProjectStage.CONSTRUCTION: (
            "construction",
            "foundation",
            "framing",
            "inspection",
            "rough-in",
        ),
        ProjectStage.CLOSEOUT: ("closeout", "final", "occupancy", "handover"),
    }
)

STAGE_INFO: Mapping[ProjectStage, tuple[str, str]] = MappingProxyType(
    {
        ProjectStage.IDEA: ("Idea", "Exploring your ADU concept"),
        ProjectStage.FEASIBILITY: ("Feasibility", "Assessing site & zoning"),
        ProjectStage.DESIGN: ("Design", "Creating architectural plans"),
        ProjectStage.PERMITTING: ("Permitting", "Applying for permits"),
        ProjectStage.PROCUREMENT: ("Procurement", "Selecting contractors"),
        ProjectStage.CONSTRUCTION: ("Construction", "Building underway"),
        ProjectStage.CLOSEOUT: ("Closeout", "Final inspections & handover"),
    }
)

TaskLike = Task | Mapping[str, Any]


def _field(task: TaskLike, name: str) -> Any:
    if isinstance(task, Mapping):
        return task.get(name)
    return getattr(task, name, None)


def _title(task: TaskLike) -> str:
    title = _field(task, "title")
    return title.lower() if isinstance(title, str) else ""


def _is_complete(task: TaskLike) -> bool:
    return bool(_field(task, "completed"))


def compute_stage(
    explicit_stage: ProjectStage | str | None,
    tasks: Iterable[TaskLike],
) -> ProjectStage:
    """Return the project's current stage.

    Args:
        explicit_stage: Stored override; returned unchanged when set
        tasks: Snapshot of the project's tasks (models or mappings)

    Returns:
        The explicit stage, else the lowest stage with a matching
        incomplete task, else ``closeout`` when every task is done,
        else ``idea``.

    Raises:
        ValueError: If explicit_stage is a string that names no stage
    """
    if explicit_stage is not None:
        return ProjectStage(explicit_stage)

    tasks = list(tasks)
    if not tasks:
        return ProjectStage.IDEA

    open_titles = [_title(t) for t in tasks if not _is_complete(t)]

    for stage in STAGE_ORDER[1:]:
        keywords = STAGE_KEYWORDS[stage]
        if any(kw in title for title in open_titles for kw in keywords):
            return stage

    if not open_titles:
        return ProjectStage.CLOSEOUT

    # Open tasks exist but none carry a stage keyword.
    logger.debug("No stage keywords in %d open task(s); defaulting to idea", len(open_titles))
    return ProjectStage.IDEA


def stage_index(stage: ProjectStage | str) -> int:
    return STAGE_ORDER.index(ProjectStage(stage))


def next_stage(stage: ProjectStage | str) -> ProjectStage | None:
    """The stage after ``stage``, or None at closeout."""
    idx = stage_index(stage)
    if idx + 1 >= len(STAGE_ORDER):
        return None
    return STAGE_ORDER[idx + 1]


def describe_stage(stage: ProjectStage | str) -> dict[str, Any]:
    """Label, description, position and next-stage hint for display."""
    stage = ProjectStage(stage)
    label, description = STAGE_INFO[stage]
    following = next_stage(stage)
    return {
        "stage": stage.value,
        "label": label,
        "description": description,
        "position": stage_index(stage) + 1,
        "total": len(STAGE_ORDER),
        "next": STAGE_INFO[following][0] if following else None,
    }
