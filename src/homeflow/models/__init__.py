"""HomeFlow data models."""

from homeflow.models.milestone import Milestone, MilestoneStatus
from homeflow.models.permit import ChecklistItem, PermitChecklist
from homeflow.models.project import Project, TeamMember
from homeflow.models.stage import STAGE_ORDER, ProjectStage
from homeflow.models.task import Resource, Task
from homeflow.models.template import (
    MilestoneDraft,
    MilestoneSkeleton,
    PlanDraft,
    PlanTemplate,
    TaskDraft,
    TaskSkeleton,
)

__all__ = [
    "STAGE_ORDER",
    "ChecklistItem",
    "Milestone",
    "MilestoneDraft",
    "MilestoneSkeleton",
    "MilestoneStatus",
    "PermitChecklist",
    "PlanDraft",
    "PlanTemplate",
    "Project",
    "ProjectStage",
    "Resource",
    "Task",
    "TaskDraft",
    "TaskSkeleton",
    "TeamMember",
]
