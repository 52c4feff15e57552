"""Municipal permit checklist model."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class ChecklistItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = Field(min_length=1)
    description: str | None = None
    docs_required: str | None = None
    typical_timeline_days: int | None = None


class PermitChecklist(BaseModel):
    """Permit requirements for one project type in one municipality."""

    model_config = ConfigDict(frozen=True)

    municipality_key: str
    municipality_name: str
    project_type: str = "adu"
    title: str
    checklist_items: tuple[ChecklistItem, ...] = ()
