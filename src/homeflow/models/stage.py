"""Project lifecycle stages."""

from __future__ import annotations

from enum import StrEnum


class ProjectStage(StrEnum):
    """Lifecycle phase of a residential build, in scan order."""

    IDEA = "idea"
    FEASIBILITY = "feasibility"
    DESIGN = "design"
    PERMITTING = "permitting"
    PROCUREMENT = "procurement"
    CONSTRUCTION = "construction"
    CLOSEOUT = "closeout"


STAGE_ORDER: tuple[ProjectStage, ...] = tuple(ProjectStage)
