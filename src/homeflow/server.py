"""FastMCP server — project, plan and task tools plus a templates resource."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated, Any, Literal

from fastmcp import FastMCP
from pydantic import Field

from homeflow.auth.jwt import TokenExpiredError, TokenInvalidError, user_from_token
from homeflow.core.planner import ProjectPlanner
from homeflow.core.stage import describe_stage
from homeflow.core.templates import (
    ConfigurationError,
    TemplateLibrary,
    load_default_templates,
)
from homeflow.events.bus import EventBus
from homeflow.storage.sqlite_store import SQLiteStore

logger = logging.getLogger(__name__)


def _json(data: dict[str, Any]) -> str:
    return json.dumps(data, default=str)


def _ok(data: dict[str, Any]) -> str:
    """Return a versioned JSON success response."""
    return _json({**data, "_v": "1.0"})


def _err(msg: str) -> str:
    """Return a versioned JSON error response."""
    return _json({"_v": "1.0", "error": msg})


def create_server(
    db_path: str,
    *,
    templates_path: str | None = None,
    default_plan: str = "standard",
) -> FastMCP:
    """Create the FastMCP server over one workspace database.

    The store is opened on first use and closed when the server's session ends.
    """
    state: dict[str, Any] = {}
    _lock = asyncio.Lock()

    async def _close() -> None:
        async with _lock:
            state.pop("planner", None)
            store = state.pop("store", None)
            if store is not None:
                await store.close()

    @asynccontextmanager
    async def _lifespan(server: FastMCP) -> AsyncIterator[dict[str, Any]]:
        try:
            yield {}
        finally:
            await _close()

    mcp = FastMCP("homeflow", version="0.1.0", lifespan=_lifespan)

    async def _init() -> ProjectPlanner:
        async with _lock:
            if "init_failed" in state:
                raise RuntimeError(f"HomeFlow init previously failed for {db_path}")
            if "planner" not in state:
                try:
                    templates = (
                        TemplateLibrary.from_file(Path(templates_path))
                        if templates_path
                        else load_default_templates()
                    )
                    store = SQLiteStore(Path(db_path))
                    await store.initialize()
                except Exception as e:
                    state["init_failed"] = True
                    logger.error("Failed to initialize HomeFlow: %s", e)
                    raise RuntimeError(f"HomeFlow init failed: {db_path}") from e
                state["store"] = store
                state["planner"] = ProjectPlanner(
                    store, EventBus(), templates, default_plan=default_plan
                )
        return state["planner"]

    def _actor(token: str | None) -> str | None:
        return user_from_token(token) if token else None

    # ── hf_project ────────────────────────────────────────────

    @mcp.tool()
    async def hf_project(
        action: Annotated[
            Literal["create", "get", "list", "update", "stage"],
            Field(description="create | get | list | update | stage"),
        ],
        project_id: Annotated[
            str | None,
            Field(description="Project ID (get, update, stage)"),
        ] = None,
        user_id: Annotated[
            str | None,
            Field(description="Owner user ID (create, list; defaults to the token's user)"),
        ] = None,
        name: Annotated[str | None, Field(description="Project name (create, update)")] = None,
        address: Annotated[str | None, Field(description="Site address (create, update)")] = None,
        status: Annotated[
            str | None,
            Field(description="Planning|Permitting|Construction|Completed (update)"),
        ] = None,
        progress: Annotated[
            int | None,
            Field(description="Percent complete 0-100 (update)", ge=0, le=100),
        ] = None,
        stage: Annotated[
            str | None,
            Field(description="Stage override, or 'auto' to infer from tasks (stage)"),
        ] = None,
        token: Annotated[str | None, Field(description="Session token of the acting user")] = None,
    ) -> str:
        """Create, inspect and update projects, or override their lifecycle stage."""
        planner = await _init()
        try:
            actor = _actor(token)
        except (TokenExpiredError, TokenInvalidError) as e:
            return _err(str(e))

        if action == "create":
            owner = user_id or actor
            if not owner:
                return _err("user_id or token is required for create")
            if not name or not name.strip():
                return _err("name is required for create")
            try:
                project = await planner.create_project(
                    user_id=owner, name=name, address=address or ""
                )
            except ValueError as e:
                return _err(str(e))
            return _ok(project.to_response(detail="full"))

        if action == "list":
            if actor and user_id and user_id != actor:
                return _err("Cannot list another user's projects")
            projects = await planner.list_projects(user_id=user_id or actor)
            items = [p.to_response() for p in projects]
            return _ok({"count": len(items), "projects": items})

        if not project_id:
            return _err(f"project_id is required for {action}")

        if action == "get":
            if not await planner.can_view(project_id, actor):
                return _err(f"Project not found: {project_id}")
            project = await planner.get_project(project_id)
            current = await planner.get_stage(project_id)
            health = await planner.health(project_id)
            step = await planner.next_step(project_id)
            return _ok(
                {
                    **project.to_response(detail="full"),
                    "stage_source": "explicit" if project.stage else "inferred",
                    "current_stage": describe_stage(current),
                    "health": health.to_response(),
                    "next_step": step.to_response(),
                }
            )

        if action == "update":
            updates: dict[str, Any] = {}
            if name is not None:
                updates["name"] = name.strip()
            if address is not None:
                updates["address"] = address.strip()
            if status is not None:
                updates["status"] = status
            if progress is not None:
                updates["progress"] = progress
            if not updates:
                return _err("nothing to update")
            try:
                project = await planner.update_project(project_id, actor=actor, **updates)
            except (ValueError, PermissionError) as e:
                return _err(str(e))
            if project is None:
                return _err(f"Project not found: {project_id}")
            return _ok(project.to_response(detail="full"))

        if action == "stage":
            if stage is None:
                return _err("stage is required (a stage name or 'auto')")
            try:
                project = await planner.set_stage(
                    project_id, None if stage == "auto" else stage, actor=actor
                )
            except (ValueError, PermissionError) as e:
                return _err(str(e))
            if project is None:
                return _err(f"Project not found: {project_id}")
            current = await planner.get_stage(project_id)
            return _ok({"project_id": project_id, "current_stage": describe_stage(current)})

        return _err(f"Unknown action: {action}")

    # ── hf_plan ───────────────────────────────────────────────

    @mcp.tool()
    async def hf_plan(
        action: Annotated[
            Literal["generate", "templates", "milestones"],
            Field(description="generate | templates | milestones"),
        ],
        project_id: Annotated[
            str | None,
            Field(description="Project ID (generate, milestones)"),
        ] = None,
        plan_type: Annotated[
            str | None,
            Field(description="standard | catalogue | custom | other template (generate)"),
        ] = None,
        reset: Annotated[
            bool,
            Field(description="Delete the existing plan first (generate)"),
        ] = False,
        token: Annotated[str | None, Field(description="Session token of the acting user")] = None,
    ) -> str:
        """Generate a dated plan from a template, list templates, or list milestones."""
        planner = await _init()
        try:
            actor = _actor(token)
        except (TokenExpiredError, TokenInvalidError) as e:
            return _err(str(e))

        if action == "templates":
            items = [planner.templates.get(n).to_response() for n in planner.templates.names()]
            return _ok({"count": len(items), "templates": items})

        if not project_id:
            return _err(f"project_id is required for {action}")

        if not await planner.can_view(project_id, actor):
            return _err(f"Project not found: {project_id}")

        if action == "milestones":
            milestones = await planner.list_milestones(project_id)
            items = [m.to_response() for m in milestones]
            return _ok({"count": len(items), "milestones": items})

        if action == "generate":
            try:
                result = await planner.generate_plan(
                    project_id, plan_type, reset=reset, actor=actor
                )
            except (ConfigurationError, PermissionError) as e:
                return _err(str(e))
            if result is None:
                return _err(f"Project not found: {project_id}")
            tasks, milestones = result
            current = await planner.get_stage(project_id)
            return _ok(
                {
                    "project_id": project_id,
                    "tasks": [t.to_response() for t in tasks],
                    "milestones": [m.to_response() for m in milestones],
                    "current_stage": describe_stage(current),
                }
            )

        return _err(f"Unknown action: {action}")

    # ── hf_task ───────────────────────────────────────────────

    @mcp.tool()
    async def hf_task(
        action: Annotated[
            Literal["add", "list", "complete", "reopen", "toggle"],
            Field(description="add | list | complete | reopen | toggle"),
        ],
        project_id: Annotated[str | None, Field(description="Project ID (add, list)")] = None,
        task_id: Annotated[
            str | None,
            Field(description="Task ID (complete, reopen, toggle)"),
        ] = None,
        title: Annotated[str | None, Field(description="Task title (add)")] = None,
        due_date: Annotated[
            str | None,
            Field(description="Due date YYYY-MM-DD (add)"),
        ] = None,
        detail: Annotated[
            str,
            Field(description="summary or full (list, default: summary)"),
        ] = "summary",
        token: Annotated[str | None, Field(description="Session token of the acting user")] = None,
    ) -> str:
        """Add, list and complete project tasks."""
        planner = await _init()
        try:
            actor = _actor(token)
        except (TokenExpiredError, TokenInvalidError) as e:
            return _err(str(e))

        if action == "list":
            if not project_id:
                return _err("project_id is required for list")
            if not await planner.can_view(project_id, actor):
                return _err(f"Project not found: {project_id}")
            tasks = await planner.list_tasks(project_id)
            items = [t.to_response(detail=detail) for t in tasks]
            return _ok({"count": len(items), "tasks": items})

        if action == "add":
            if not project_id:
                return _err("project_id is required for add")
            if not title or not title.strip():
                return _err("title is required for add")
            try:
                task = await planner.add_task(
                    project_id, title=title, due_date=due_date, actor=actor
                )
            except (ValueError, PermissionError) as e:
                return _err(str(e))
            if task is None:
                return _err(f"Project not found: {project_id}")
            return _ok(task.to_response(detail="full"))

        if not task_id:
            return _err(f"task_id is required for {action}")
        try:
            if action == "toggle":
                task = await planner.toggle_task(task_id, actor=actor)
            else:
                task = await planner.set_task_completed(
                    task_id, action == "complete", actor=actor
                )
        except PermissionError as e:
            return _err(str(e))
        if task is None:
            return _err(f"Task not found: {task_id}")
        return _ok(task.to_response())

    # ── Resources ─────────────────────────────────────────────

    @mcp.resource("homeflow://templates")
    async def templates_resource() -> str:
        """Available plan templates."""
        planner = await _init()
        names = planner.templates.names()
        return _json({"templates": [planner.templates.get(n).to_response() for n in names]})

    return mcp
