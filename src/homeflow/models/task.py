"""Task model."""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from typing import Any

from pydantic import BaseModel, Field


class Resource(BaseModel):
    """A named link attached to a task."""

    name: str
    url: str


class Task(BaseModel):
    """A dated unit of work belonging to exactly one project."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    project_id: str
    title: str
    description: str | None = None
    due_date: date | None = None
    completed: bool = False
    diy_guidance: str | None = None
    cost_savings: str | None = None
    resources: list[Resource] | None = None
    created_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    updated_at: str | None = None

    def is_overdue(self, today: date) -> bool:
        return not self.completed and self.due_date is not None and self.due_date < today

    def to_storage(self) -> dict:
        return self.model_dump(mode="json")

    def to_response(self, *, detail: str = "summary") -> dict[str, Any]:
        data: dict[str, Any] = {
            "_v": "1.0",
            "id": self.id,
            "title": self.title,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "completed": self.completed,
        }
        if detail != "summary":
            data.update(
                {
                    "project_id": self.project_id,
                    "description": self.description,
                    "diy_guidance": self.diy_guidance,
                    "cost_savings": self.cost_savings,
                    "resources": [r.model_dump() for r in self.resources or []],
                    "created_at": self.created_at,
                    "updated_at": self.updated_at,
                }
            )
        return data
