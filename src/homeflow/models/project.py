"""Project and team membership models."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from homeflow.models.stage import ProjectStage

VALID_STATUSES = {"Planning", "Permitting", "Construction", "Completed"}
VALID_ROLES = {"owner", "contractor", "viewer"}


class Project(BaseModel):
    """A homeowner's build, with an optional explicit stage override."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    user_id: str
    name: str
    address: str = ""
    status: str = "Planning"
    progress: int = Field(default=0, ge=0, le=100)
    stage: ProjectStage | None = None
    permit_number: str | None = None
    inspection_phone: str | None = None
    created_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    updated_at: str | None = None

    def to_storage(self) -> dict:
        return self.model_dump(mode="json")

    def to_response(self, *, detail: str = "summary") -> dict:
        data = {
            "_v": "1.0",
            "id": self.id,
            "name": self.name,
            "status": self.status,
            "stage": self.stage.value if self.stage else None,
        }
        if detail != "summary":
            data.update(
                {
                    "user_id": self.user_id,
                    "address": self.address,
                    "progress": self.progress,
                    "permit_number": self.permit_number,
                    "inspection_phone": self.inspection_phone,
                    "created_at": self.created_at,
                    "updated_at": self.updated_at,
                }
            )
        return data


class TeamMember(BaseModel):
    """A user's role on a project team."""

    project_id: str
    user_id: str
    role: str = "contractor"
    joined_at: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
