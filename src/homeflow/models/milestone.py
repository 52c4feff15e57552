"""Milestone model."""

from __future__ import annotations

import datetime as dt
import uuid
from enum import StrEnum

from pydantic import BaseModel, Field


class MilestoneStatus(StrEnum):
    PAID = "Paid"
    DUE_SOON = "Due Soon"
    UPCOMING = "Upcoming"
    APPROVAL_NEEDED = "Approval Needed"
    COMPLETED = "Completed"
    PENDING = "Pending"


class Milestone(BaseModel):
    """A dated checkpoint, optionally tied to a payment."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4())[:8])
    project_id: str
    title: str
    date: dt.date
    amount: float | None = None
    status: MilestoneStatus = MilestoneStatus.PENDING
    created_at: str = Field(default_factory=lambda: dt.datetime.now(dt.UTC).isoformat())

    def to_storage(self) -> dict:
        return self.model_dump(mode="json")

    def to_response(self) -> dict:
        return {
            "_v": "1.0",
            "id": self.id,
            "title": self.title,
            "date": self.date.isoformat(),
            "amount": self.amount,
            "status": self.status.value,
        }
