"""Project health scoring and next-step recommendation."""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date

from homeflow.models.project import Project
from homeflow.models.task import Task

OVERDUE_PENALTY = 15

_PERMIT_PATTERN = re.compile(r"permit|application|zoning", re.IGNORECASE)


@dataclass(frozen=True)
class Health:
    score: int
    label: str
    message: str
    overdue: int = 0

    def to_response(self) -> dict:
        return {
            "_v": "1.0",
            "score": self.score,
            "label": self.label,
            "message": self.message,
            "overdue": self.overdue,
        }


@dataclass(frozen=True)
class NextStep:
    """A single recommended action for the homeowner."""

    kind: str
    message: str
    task: Task | None = None

    def to_response(self) -> dict:
        return {
            "_v": "1.0",
            "kind": self.kind,
            "message": self.message,
            "task": self.task.to_response() if self.task else None,
        }


def project_health(tasks: Sequence[Task], today: date) -> Health:
    """Score a project by how many open tasks are past due."""
    if not tasks:
        return Health(100, "Excellent", "No active tasks.")

    overdue = sum(1 for t in tasks if t.is_overdue(today))
    if overdue == 0:
        return Health(100, "Excellent", "Your project is on track.")

    score = max(0, 100 - overdue * OVERDUE_PENALTY)
    if score < 50:
        return Health(score, "Critical", "Significant delays detected.", overdue)
    if score < 70:
        return Health(score, "At Risk", f"Multiple tasks overdue ({overdue}).", overdue)
    return Health(score, "Good", f"{overdue} task(s) overdue.", overdue)


def recommend_next_step(project: Project | None, tasks: Sequence[Task]) -> NextStep:
    """Pick the highest-priority next action.

    Permit-related open tasks are preferred over other open tasks; tasks are
    considered in the order given (normally by due date).
    """
    if project is None:
        return NextStep("create_project", "Create your first project to get started.")

    if not tasks:
        return NextStep(
            "generate_plan",
            "Generate a starter plan tailored to your project and municipality.",
        )

    open_tasks = [t for t in tasks if not t.completed]
    for task in open_tasks:
        if _PERMIT_PATTERN.search(task.title):
            return NextStep(
                "permit_task",
                "Complete the permit task below to keep approvals moving.",
                task,
            )

    if open_tasks:
        return NextStep(
            "next_task", "Tackle your next task to keep progress steady.", open_tasks[0]
        )

    return NextStep(
        "browse_contractors",
        "Invite or browse contractors to get quotes and move to construction.",
    )
