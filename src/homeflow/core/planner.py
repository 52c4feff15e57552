"""Project planner: the engine behind plan generation and stage display.

Wraps the pure stage classifier and template expander with persistence,
write gating and lifecycle events.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import Any

from homeflow.auth.permissions import can_edit_tasks, can_manage, can_read
from homeflow.core.dates import parse_date, today as local_today
from homeflow.core.insights import Health, NextStep, project_health, recommend_next_step
from homeflow.core.permits import DEFAULT_TIMELINE_DAYS, permit_task_drafts
from homeflow.core.stage import compute_stage
from homeflow.core.templates import DEFAULT_TEMPLATE, TemplateSource, expand_template
from homeflow.events.bus import EventBus
from homeflow.events.types import EventType
from homeflow.models.milestone import Milestone
from homeflow.models.permit import PermitChecklist
from homeflow.models.project import VALID_ROLES, VALID_STATUSES, Project, TeamMember
from homeflow.models.stage import ProjectStage
from homeflow.models.task import Task
from homeflow.storage.base import StorageBackend

logger = logging.getLogger(__name__)


class ProjectPlanner:
    """Manages projects, their generated plans and their lifecycle stage."""

    def __init__(
        self,
        store: StorageBackend,
        event_bus: EventBus,
        templates: TemplateSource,
        *,
        default_plan: str = DEFAULT_TEMPLATE,
        permit_default_days: int = DEFAULT_TIMELINE_DAYS,
    ) -> None:
        """Initialize ProjectPlanner.

        Args:
            store: Storage backend for persistence
            event_bus: Event bus for emitting events
            templates: Source of plan templates
            default_plan: Plan type used when none is requested
            permit_default_days: Due offset for checklist items without a timeline
        """
        self._store = store
        self._event_bus = event_bus
        self._templates = templates
        self._default_plan = default_plan
        self._permit_default_days = permit_default_days

    @property
    def templates(self) -> TemplateSource:
        return self._templates

    # --- Projects ---

    async def create_project(self, *, user_id: str, name: str, address: str = "") -> Project:
        """Create a new project owned by user_id.

        Raises:
            ValueError: If name or user_id is empty
        """
        if not name or not name.strip():
            raise ValueError("Project name cannot be empty")
        if not user_id or not user_id.strip():
            raise ValueError("user_id cannot be empty")

        project = Project(user_id=user_id, name=name.strip(), address=address.strip())
        await self._store.insert_project(project.to_storage())
        logger.info("Created project: %s (id=%s)", project.name, project.id)

        await self._event_bus.emit(
            EventType.PROJECT_CREATED,
            {"project_id": project.id, "name": project.name, "user_id": user_id},
        )
        return project

    async def get_project(self, project_id: str) -> Project | None:
        data = await self._store.get_project(project_id)
        if not data:
            return None
        return Project(**data)

    async def list_projects(self, *, user_id: str | None = None) -> list[Project]:
        rows = await self._store.list_projects(user_id=user_id)
        return [Project(**row) for row in rows]

    async def current_project(self, user_id: str) -> Project | None:
        """The user's most recently created project."""
        projects = await self.list_projects(user_id=user_id)
        return projects[0] if projects else None

    async def update_project(
        self, project_id: str, *, actor: str | None = None, **updates: Any
    ) -> Project | None:
        """Patch project fields.

        Raises:
            ValueError: If status, progress or stage is invalid
            PermissionError: If actor may not manage the project
        """
        project = await self.get_project(project_id)
        if project is None:
            return None
        await self._authorize(project, actor, can_manage, "update")

        if "status" in updates and updates["status"] not in VALID_STATUSES:
            raise ValueError(
                f"Invalid status: {updates['status']}. Must be one of {sorted(VALID_STATUSES)}"
            )
        if "progress" in updates:
            progress = int(updates["progress"])
            if not 0 <= progress <= 100:
                raise ValueError(f"Progress must be between 0 and 100, got {progress}")
            updates["progress"] = progress
        if updates.get("stage") is not None:
            updates["stage"] = ProjectStage(updates["stage"]).value

        updates["updated_at"] = datetime.now(UTC).isoformat()
        data = await self._store.update_project(project_id, updates)
        if not data:
            return None

        updated = Project(**data)
        logger.info("Updated project: %s (id=%s)", updated.name, project_id)
        await self._event_bus.emit(EventType.PROJECT_UPDATED, {"project_id": project_id})
        return updated

    # --- Team ---

    async def role_for(self, project: Project, user_id: str | None) -> str | None:
        """Resolve a user's role; the project's creator is always owner."""
        if user_id is None:
            return None
        if user_id == project.user_id:
            return "owner"
        return await self._store.get_member_role(project.id, user_id)

    async def add_member(
        self, project_id: str, user_id: str, role: str = "contractor", *, actor: str | None = None
    ) -> TeamMember | None:
        """Add someone to a project's team.

        Raises:
            ValueError: If role is unknown
            PermissionError: If actor is not an owner
        """
        if role not in VALID_ROLES:
            raise ValueError(f"Invalid role: {role}. Must be one of {sorted(VALID_ROLES)}")
        project = await self.get_project(project_id)
        if project is None:
            return None
        await self._authorize(project, actor, can_manage, "manage team of")

        member = TeamMember(project_id=project_id, user_id=user_id, role=role)
        await self._store.add_member(project_id, user_id, role)
        logger.info("Added %s to project %s as %s", user_id, project_id, role)
        await self._event_bus.emit(
            EventType.MEMBER_ADDED,
            {"project_id": project_id, "user_id": user_id, "role": role},
        )
        return member

    async def can_view(self, project_id: str, user_id: str | None) -> bool:
        project = await self.get_project(project_id)
        if project is None:
            return False
        if user_id is None:
            return True
        return can_read(await self.role_for(project, user_id))

    # --- Plans ---

    async def generate_plan(
        self,
        project_id: str,
        plan_type: str | None = None,
        *,
        today: date | None = None,
        reset: bool = False,
        actor: str | None = None,
    ) -> tuple[list[Task], list[Milestone]] | None:
        """Expand a plan template into the project's tasks and milestones.

        Tasks and milestones are written in a single transaction. With
        ``reset`` the project's existing plan is deleted in that same
        transaction.

        Returns:
            The inserted tasks and milestones, or None if the project is missing

        Raises:
            TemplateNotFoundError: If no template (including the default) exists
            PermissionError: If actor may not manage the project
        """
        project = await self.get_project(project_id)
        if project is None:
            return None
        await self._authorize(project, actor, can_manage, "generate a plan for")

        draft = expand_template(
            plan_type or self._default_plan,
            today or local_today(),
            self._templates,
            project_id=project_id,
        )
        tasks = [d.materialize() for d in draft.tasks]
        milestones = [d.materialize() for d in draft.milestones]

        task_rows = [t.to_storage() for t in tasks]
        milestone_rows = [m.to_storage() for m in milestones]
        if reset:
            removed = await self._store.replace_plan(project_id, task_rows, milestone_rows)
            logger.info(
                "Reset plan for project %s: removed %d task(s), %d milestone(s)",
                project_id,
                *removed,
            )
        else:
            await self._store.insert_plan(task_rows, milestone_rows)
        logger.info(
            "Generated '%s' plan for project %s: %d task(s), %d milestone(s)",
            draft.template,
            project_id,
            len(tasks),
            len(milestones),
        )

        await self._event_bus.emit(
            EventType.PLAN_GENERATED,
            {
                "project_id": project_id,
                "template": draft.template,
                "tasks": len(tasks),
                "milestones": len(milestones),
            },
        )
        return tasks, milestones

    # --- Stage ---

    async def get_stage(self, project_id: str) -> ProjectStage | None:
        """Explicit stage if stored, otherwise inferred from the task list."""
        project = await self.get_project(project_id)
        if project is None:
            return None
        if project.stage is not None:
            return project.stage
        return compute_stage(None, await self.list_tasks(project_id))

    async def set_stage(
        self,
        project_id: str,
        stage: ProjectStage | str | None,
        *,
        actor: str | None = None,
    ) -> Project | None:
        """Store an explicit stage override; None returns to inference.

        Raises:
            ValueError: If stage names no known stage
            PermissionError: If actor may not manage the project
        """
        value = ProjectStage(stage) if stage is not None else None
        project = await self.get_project(project_id)
        if project is None:
            return None
        await self._authorize(project, actor, can_manage, "change the stage of")

        data = await self._store.update_project(
            project_id,
            {
                "stage": value.value if value else None,
                "updated_at": datetime.now(UTC).isoformat(),
            },
        )
        if not data:
            return None
        logger.info("Stage for project %s set to %s", project_id, value or "auto")

        await self._event_bus.emit(
            EventType.STAGE_CHANGED,
            {"project_id": project_id, "stage": value.value if value else None},
        )
        return Project(**data)

    # --- Tasks ---

    async def add_task(
        self,
        project_id: str,
        *,
        title: str,
        due_date: date | str | None = None,
        description: str | None = None,
        actor: str | None = None,
    ) -> Task | None:
        """Create a single task.

        Raises:
            ValueError: If title is empty or due_date is malformed
            PermissionError: If actor may not edit tasks
        """
        if not title or not title.strip():
            raise ValueError("Task title cannot be empty")
        project = await self.get_project(project_id)
        if project is None:
            return None
        await self._authorize(project, actor, can_edit_tasks, "add tasks to")

        task = Task(
            project_id=project_id,
            title=title.strip(),
            description=description,
            due_date=parse_date(due_date) if due_date else None,
        )
        await self._store.insert_task(task.to_storage())
        logger.info("Created task %s on project %s: %s", task.id, project_id, task.title)

        await self._event_bus.emit(
            EventType.TASK_CREATED,
            {"project_id": project_id, "task_id": task.id, "title": task.title},
        )
        return task

    async def get_task(self, task_id: str) -> Task | None:
        data = await self._store.get_task(task_id)
        if not data:
            return None
        return Task(**data)

    async def list_tasks(self, project_id: str) -> list[Task]:
        rows = await self._store.list_tasks(project_id)
        return [Task(**row) for row in rows]

    async def set_task_completed(
        self, task_id: str, completed: bool, *, actor: str | None = None
    ) -> Task | None:
        """Mark a task complete or incomplete.

        Raises:
            PermissionError: If actor may not edit tasks
        """
        task = await self.get_task(task_id)
        if task is None:
            return None
        project = await self.get_project(task.project_id)
        if project is None:
            return None
        await self._authorize(project, actor, can_edit_tasks, "edit tasks of")

        data = await self._store.update_task(
            task_id,
            {"completed": completed, "updated_at": datetime.now(UTC).isoformat()},
        )
        if not data:
            return None
        logger.info("Task %s marked %s", task_id, "complete" if completed else "open")

        await self._event_bus.emit(
            EventType.TASK_UPDATED,
            {"project_id": task.project_id, "task_id": task_id, "completed": completed},
        )
        return Task(**data)

    async def toggle_task(self, task_id: str, *, actor: str | None = None) -> Task | None:
        task = await self.get_task(task_id)
        if task is None:
            return None
        return await self.set_task_completed(task_id, not task.completed, actor=actor)

    async def list_milestones(self, project_id: str) -> list[Milestone]:
        rows = await self._store.list_milestones(project_id)
        return [Milestone(**row) for row in rows]

    # --- Permits ---

    async def add_permit_tasks(
        self,
        project_id: str,
        checklist: PermitChecklist,
        *,
        today: date | None = None,
        actor: str | None = None,
    ) -> list[Task] | None:
        """Add tasks for checklist items the project lacks and mark it permitting.

        Returns:
            The newly created tasks, or None if the project is missing
        """
        project = await self.get_project(project_id)
        if project is None:
            return None
        await self._authorize(project, actor, can_manage, "add permit tasks to")

        existing = await self.list_tasks(project_id)
        drafts = permit_task_drafts(
            checklist,
            [t.title for t in existing],
            today or local_today(),
            default_days=self._permit_default_days,
        )
        tasks = [d.materialize(project_id) for d in drafts]
        await self._store.insert_tasks([t.to_storage() for t in tasks])
        logger.info(
            "Added %d permit task(s) from '%s' to project %s",
            len(tasks),
            checklist.title,
            project_id,
        )
        for task in tasks:
            await self._event_bus.emit(
                EventType.TASK_CREATED,
                {"project_id": project_id, "task_id": task.id, "title": task.title},
            )

        await self.set_stage(project_id, ProjectStage.PERMITTING, actor=actor)
        return tasks

    # --- Insights ---

    async def health(self, project_id: str, *, today: date | None = None) -> Health:
        tasks = await self.list_tasks(project_id)
        return project_health(tasks, today or local_today())

    async def next_step(self, project_id: str | None) -> NextStep:
        project = await self.get_project(project_id) if project_id else None
        tasks = await self.list_tasks(project.id) if project else []
        return recommend_next_step(project, tasks)

    async def stats(self) -> dict[str, Any]:
        return await self._store.get_stats()

    # --- Helpers ---

    async def _authorize(self, project: Project, actor: str | None, check, verb: str) -> None:
        """Gate a write on the actor's project role.

        A None actor is a trusted local caller and is always allowed.
        """
        if actor is None:
            return
        role = await self.role_for(project, actor)
        if not check(role):
            logger.warning(
                "Denied: %s (role=%s) cannot %s project %s", actor, role, verb, project.id
            )
            raise PermissionError(f"User {actor} cannot {verb} project {project.id}")
