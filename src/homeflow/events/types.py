"""Event names emitted by the HomeFlow engines."""

from enum import StrEnum


class EventType(StrEnum):
    PROJECT_CREATED = "project.created"
    PROJECT_UPDATED = "project.updated"
    STAGE_CHANGED = "project.stage_changed"

    PLAN_GENERATED = "plan.generated"

    TASK_CREATED = "task.created"
    TASK_UPDATED = "task.updated"

    MEMBER_ADDED = "team.member_added"
