"""Abstract storage interface for HomeFlow."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class StorageBackend(ABC):
    """Record store for projects, tasks, milestones and team memberships."""

    @abstractmethod
    async def initialize(self) -> None:
        """Initialize database schema and connections."""

    @abstractmethod
    async def close(self) -> None:
        """Close all connections."""

    # --- Project operations ---

    @abstractmethod
    async def insert_project(self, project: dict[str, Any]) -> dict[str, Any]:
        """Insert a project. Returns the inserted project."""

    @abstractmethod
    async def get_project(self, project_id: str) -> dict[str, Any] | None:
        """Get a project by ID."""

    @abstractmethod
    async def update_project(
        self, project_id: str, updates: dict[str, Any]
    ) -> dict[str, Any] | None:
        """Patch a project. Returns the updated project or None if missing."""

    @abstractmethod
    async def list_projects(self, *, user_id: str | None = None) -> list[dict[str, Any]]:
        """List projects, newest first, optionally for one owner."""

    # --- Task operations ---

    @abstractmethod
    async def insert_task(self, task: dict[str, Any]) -> dict[str, Any]:
        """Insert a single task."""

    @abstractmethod
    async def insert_tasks(self, tasks: list[dict[str, Any]]) -> int:
        """Bulk-insert tasks. Returns the number inserted."""

    @abstractmethod
    async def get_task(self, task_id: str) -> dict[str, Any] | None:
        """Get a task by ID."""

    @abstractmethod
    async def update_task(self, task_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        """Patch a task. Returns the updated task or None if missing."""

    @abstractmethod
    async def list_tasks(self, project_id: str) -> list[dict[str, Any]]:
        """List a project's tasks ordered by due date."""

    # --- Milestone operations ---

    @abstractmethod
    async def insert_milestones(self, milestones: list[dict[str, Any]]) -> int:
        """Bulk-insert milestones. Returns the number inserted."""

    @abstractmethod
    async def list_milestones(self, project_id: str) -> list[dict[str, Any]]:
        """List a project's milestones ordered by date."""

    # --- Plan operations ---

    @abstractmethod
    async def insert_plan(
        self, tasks: list[dict[str, Any]], milestones: list[dict[str, Any]]
    ) -> tuple[int, int]:
        """Insert an expanded plan's tasks and milestones in one transaction."""

    @abstractmethod
    async def replace_plan(
        self,
        project_id: str,
        tasks: list[dict[str, Any]],
        milestones: list[dict[str, Any]],
    ) -> tuple[int, int]:
        """Swap a project's tasks and milestones for a new plan in one transaction.

        Returns the deleted task and milestone counts.
        """

    # --- Team operations ---

    @abstractmethod
    async def add_member(self, project_id: str, user_id: str, role: str) -> dict[str, Any]:
        """Add or replace a team membership."""

    @abstractmethod
    async def get_member_role(self, project_id: str, user_id: str) -> str | None:
        """Return a user's role on a project, or None."""

    @abstractmethod
    async def list_members(self, project_id: str) -> list[dict[str, Any]]:
        """List a project's team."""

    # --- Stats ---

    @abstractmethod
    async def get_stats(self) -> dict[str, Any]:
        """Return record counts for the workspace."""
