"""Plan template schema and the drafts produced by expanding one."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, ConfigDict, Field, field_validator

from homeflow.models.milestone import Milestone, MilestoneStatus
from homeflow.models.task import Resource, Task


def _require_title(value: str) -> str:
    if not value or not value.strip():
        raise ValueError("title cannot be empty")
    return value.strip()


class TaskSkeleton(BaseModel):
    """An undated task definition inside a template."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str
    offset_days: int = 0
    description: str | None = None
    diy_guidance: str | None = None
    cost_savings: str | None = None
    resources: tuple[Resource, ...] | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        return _require_title(value)


class MilestoneSkeleton(BaseModel):
    """An undated milestone definition inside a template."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    title: str
    offset_days: int = 0
    status: MilestoneStatus | None = None
    amount: float | None = None

    @field_validator("title")
    @classmethod
    def title_not_blank(cls, value: str) -> str:
        return _require_title(value)


class PlanTemplate(BaseModel):
    """A named, immutable bundle of task and milestone skeletons."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str
    label: str | None = None
    description: str | None = None
    tasks: tuple[TaskSkeleton, ...] = ()
    milestones: tuple[MilestoneSkeleton, ...] = ()

    def to_response(self) -> dict:
        return {
            "_v": "1.0",
            "name": self.name,
            "label": self.label,
            "description": self.description,
            "tasks": len(self.tasks),
            "milestones": len(self.milestones),
        }


class TaskDraft(BaseModel):
    """A dated task ready for bulk insertion."""

    project_id: str | None = None
    title: str
    description: str | None = None
    due_date: dt.date
    completed: bool = False
    diy_guidance: str | None = None
    cost_savings: str | None = None
    resources: list[Resource] | None = None

    def materialize(self, project_id: str | None = None) -> Task:
        data = self.model_dump(exclude={"project_id"})
        return Task(project_id=project_id or self.project_id, **data)


class MilestoneDraft(BaseModel):
    """A dated milestone ready for bulk insertion."""

    project_id: str | None = None
    title: str
    date: dt.date
    amount: float | None = None
    status: MilestoneStatus = MilestoneStatus.PENDING

    def materialize(self, project_id: str | None = None) -> Milestone:
        data = self.model_dump(exclude={"project_id"})
        return Milestone(project_id=project_id or self.project_id, **data)


class PlanDraft(BaseModel):
    """Result of expanding a template against a reference date."""

    template: str
    reference_date: dt.date
    tasks: list[TaskDraft] = Field(default_factory=list)
    milestones: list[MilestoneDraft] = Field(default_factory=list)
