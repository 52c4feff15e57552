"""CLI — init, status, serve, project, plan, task, permits."""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from datetime import date
from pathlib import Path
from typing import TypeVar

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from homeflow.auth.jwt import TokenExpiredError, TokenInvalidError, user_from_token
from homeflow.config import Config
from homeflow.core.dates import parse_date
from homeflow.core.permits import find_checklist, load_bundled_checklists, load_checklist
from homeflow.core.planner import ProjectPlanner
from homeflow.core.stage import describe_stage
from homeflow.core.templates import (
    ConfigurationError,
    TemplateLibrary,
    TemplateSource,
    load_default_templates,
)
from homeflow.events.bus import EventBus
from homeflow.models.stage import STAGE_ORDER
from homeflow.storage.sqlite_store import SQLiteStore

T = TypeVar("T")

console = Console()


def _templates(config: Config) -> TemplateSource:
    if config.templates_path:
        return TemplateLibrary.from_file(config.templates_path)
    return load_default_templates()


def _run(ctx: click.Context, fn: Callable[[ProjectPlanner], Awaitable[T]]) -> T:
    """Open the workspace store, run fn against a planner, and close."""
    config: Config = ctx.obj["config"]
    if not config.db_path.exists():
        click.echo(f"Error: No database at {config.db_path}. Run 'homeflow init' first.", err=True)
        sys.exit(1)

    async def _inner() -> T:
        store = SQLiteStore(config.db_path, wal_mode=config.wal_mode)
        await store.initialize()
        try:
            planner = ProjectPlanner(
                store,
                EventBus(),
                _templates(config),
                default_plan=config.default_plan,
                permit_default_days=config.permit_default_days,
            )
            return await fn(planner)
        finally:
            await store.close()

    try:
        return asyncio.run(_inner())
    except (ValueError, PermissionError, ConfigurationError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


def _date_option(ctx: click.Context, param: click.Parameter, value: str | None) -> date | None:
    if not value:
        return None
    try:
        return parse_date(value)
    except ValueError as e:
        raise click.BadParameter(f"expected YYYY-MM-DD, got {value!r}") from e


@click.group()
@click.version_option(package_name="homeflow")
@click.option(
    "--workspace",
    type=click.Path(),
    default=None,
    help="Workspace directory (default: ~/.homeflow or $HOMEFLOW_WORKSPACE)",
)
@click.option("--token", envvar="HOMEFLOW_TOKEN", default=None, help="Session token")
@click.pass_context
def main(ctx: click.Context, workspace: str | None, token: str | None) -> None:
    """HomeFlow — plan and track your ADU or addition."""
    config = Config.load(Path(workspace).expanduser().resolve() if workspace else None)
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    actor = None
    if token:
        try:
            actor = user_from_token(token)
        except (TokenExpiredError, TokenInvalidError) as e:
            click.echo(f"Authentication failed: {e}", err=True)
            sys.exit(1)

    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["actor"] = actor
    ctx.obj["user_id"] = actor or config.user_id


@main.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Initialize a new workspace."""
    config: Config = ctx.obj["config"]

    async def _init() -> None:
        store = SQLiteStore(config.db_path, wal_mode=config.wal_mode)
        await store.initialize()
        await store.close()
        config.save()

    asyncio.run(_init())
    click.echo(f"Initialized workspace at {config.workspace_path}")
    click.echo(f"Database: {config.db_path}")


@main.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show workspace record counts."""

    async def _status(planner: ProjectPlanner) -> dict:
        return await planner.stats()

    click.echo(json.dumps(_run(ctx, _status), indent=2))


@main.command()
@click.option("--transport", type=click.Choice(["stdio"]), default="stdio")
@click.pass_context
def serve(ctx: click.Context, transport: str) -> None:
    """Start the MCP server."""
    config: Config = ctx.obj["config"]
    if not config.db_path.exists():
        click.echo(f"Error: No database at {config.db_path}. Run 'homeflow init' first.", err=True)
        sys.exit(1)

    from homeflow.server import create_server

    server = create_server(
        str(config.db_path),
        templates_path=str(config.templates_path) if config.templates_path else None,
        default_plan=config.default_plan,
    )
    server.run(transport=transport)  # type: ignore[arg-type]


# ── project ───────────────────────────────────────────────────


@main.group()
def project() -> None:
    """Manage projects."""


@project.command("create")
@click.argument("name")
@click.option("--address", default="", help="Site address")
@click.pass_context
def project_create(ctx: click.Context, name: str, address: str) -> None:
    """Create a new project."""
    created = _run(
        ctx,
        lambda p: p.create_project(user_id=ctx.obj["user_id"], name=name, address=address),
    )
    console.print(
        Panel(
            f"[green]✓[/green] Project created: {created.name}\n"
            f"ID: {created.id}\n"
            f"Address: {created.address or '—'}",
            title="Project Created",
        )
    )


@project.command("list")
@click.pass_context
def project_list(ctx: click.Context) -> None:
    """List your projects."""
    projects = _run(ctx, lambda p: p.list_projects(user_id=ctx.obj["user_id"]))
    table = Table(title="Projects")
    table.add_column("ID")
    table.add_column("Name")
    table.add_column("Status")
    table.add_column("Stage override")
    for item in projects:
        table.add_row(item.id, item.name, item.status, item.stage or "auto")
    console.print(table)


@project.command("show")
@click.argument("project_id", required=False)
@click.pass_context
def project_show(ctx: click.Context, project_id: str | None) -> None:
    """Show stage, health and next step (defaults to your latest project)."""

    async def _show(planner: ProjectPlanner):
        found = (
            await planner.get_project(project_id)
            if project_id
            else await planner.current_project(ctx.obj["user_id"])
        )
        if found is None:
            return None
        return (
            found,
            await planner.get_stage(found.id),
            await planner.health(found.id),
            await planner.next_step(found.id),
        )

    result = _run(ctx, _show)
    if result is None:
        click.echo("No project found. Create one with 'homeflow project create'.", err=True)
        sys.exit(1)

    found, current, health, step = result
    info = describe_stage(current)
    bar = "".join("█" if i < info["position"] else "░" for i in range(len(STAGE_ORDER)))
    lines = [
        f"[bold]{found.name}[/bold]  ({found.status})",
        f"Stage {info['position']} of {info['total']}: [cyan]{info['label']}[/cyan]"
        f" — {info['description']}"
        + (" [dim](override)[/dim]" if found.stage else ""),
        bar,
    ]
    if info["next"]:
        lines.append(f"Next stage: {info['next']}")
    lines.append(f"Health: {health.score} {health.label} — {health.message}")
    lines.append(f"Next step: {step.message}")
    if step.task:
        lines.append(f"  {step.task.title} (due {step.task.due_date or '—'})")
    console.print(Panel("\n".join(lines), title=f"Project {found.id}"))


@project.command("stage")
@click.argument("project_id")
@click.argument("stage", type=click.Choice([s.value for s in STAGE_ORDER] + ["auto"]))
@click.pass_context
def project_stage(ctx: click.Context, project_id: str, stage: str) -> None:
    """Override a project's stage, or 'auto' to infer it from tasks."""

    async def _stage(planner: ProjectPlanner):
        updated = await planner.set_stage(
            project_id, None if stage == "auto" else stage, actor=ctx.obj["actor"]
        )
        if updated is None:
            return None
        return await planner.get_stage(project_id)

    current = _run(ctx, _stage)
    if current is None:
        click.echo(f"Error: Project {project_id} not found", err=True)
        sys.exit(1)
    click.echo(f"Stage: {current.value}" + (" (inferred)" if stage == "auto" else ""))


# ── plan ──────────────────────────────────────────────────────


@main.group()
def plan() -> None:
    """Generate plans from templates."""


@plan.command("generate")
@click.argument("project_id")
@click.option("--type", "plan_type", default=None, help="Template name (default from config)")
@click.option("--reset", is_flag=True, help="Delete the existing plan first")
@click.option(
    "--date",
    "reference",
    default=None,
    callback=_date_option,
    help="Reference date YYYY-MM-DD (default: today)",
)
@click.pass_context
def plan_generate(
    ctx: click.Context, project_id: str, plan_type: str | None, reset: bool, reference: date | None
) -> None:
    """Expand a plan template into tasks and milestones."""
    result = _run(
        ctx,
        lambda p: p.generate_plan(
            project_id, plan_type, today=reference, reset=reset, actor=ctx.obj["actor"]
        ),
    )
    if result is None:
        click.echo(f"Error: Project {project_id} not found", err=True)
        sys.exit(1)

    tasks, milestones = result
    table = Table(title=f"Plan for {project_id}")
    table.add_column("Kind")
    table.add_column("Title")
    table.add_column("Date")
    for task in tasks:
        table.add_row("task", task.title, str(task.due_date))
    for milestone in milestones:
        table.add_row(f"milestone ({milestone.status.value})", milestone.title, str(milestone.date))
    console.print(table)


@plan.command("templates")
@click.pass_context
def plan_templates(ctx: click.Context) -> None:
    """List available plan templates."""
    try:
        library = _templates(ctx.obj["config"])
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    table = Table(title="Plan Templates")
    table.add_column("Name")
    table.add_column("Label")
    table.add_column("Tasks", justify="right")
    table.add_column("Milestones", justify="right")
    for name in library.names():
        template = library.get(name)
        table.add_row(
            name, template.label or "", str(len(template.tasks)), str(len(template.milestones))
        )
    console.print(table)


# ── task ──────────────────────────────────────────────────────


@main.group()
def task() -> None:
    """Manage tasks."""


@task.command("add")
@click.argument("project_id")
@click.argument("title")
@click.option("--due", default=None, help="Due date YYYY-MM-DD")
@click.pass_context
def task_add(ctx: click.Context, project_id: str, title: str, due: str | None) -> None:
    """Add a task to a project."""
    created = _run(
        ctx, lambda p: p.add_task(project_id, title=title, due_date=due, actor=ctx.obj["actor"])
    )
    if created is None:
        click.echo(f"Error: Project {project_id} not found", err=True)
        sys.exit(1)
    click.echo(f"Created task {created.id}: {created.title}")


@task.command("list")
@click.argument("project_id")
@click.pass_context
def task_list(ctx: click.Context, project_id: str) -> None:
    """List a project's tasks by due date."""
    tasks = _run(ctx, lambda p: p.list_tasks(project_id))
    table = Table(title="Tasks")
    table.add_column("ID")
    table.add_column("Done")
    table.add_column("Title")
    table.add_column("Due")
    for item in tasks:
        table.add_row(
            item.id, "✓" if item.completed else "", item.title, str(item.due_date or "—")
        )
    console.print(table)


@task.command("done")
@click.argument("task_id")
@click.option("--undo", is_flag=True, help="Mark the task open again")
@click.pass_context
def task_done(ctx: click.Context, task_id: str, undo: bool) -> None:
    """Mark a task complete."""
    updated = _run(
        ctx, lambda p: p.set_task_completed(task_id, not undo, actor=ctx.obj["actor"])
    )
    if updated is None:
        click.echo(f"Error: Task {task_id} not found", err=True)
        sys.exit(1)
    click.echo(f"{updated.title}: {'complete' if updated.completed else 'open'}")


# ── permits ───────────────────────────────────────────────────


@main.group()
def permits() -> None:
    """Municipal permit checklists."""


@permits.command("add")
@click.argument("project_id")
@click.option("--municipality", default=None, help="Bundled checklist key, e.g. toronto")
@click.option("--file", "path", type=click.Path(exists=True), default=None, help="Checklist YAML")
@click.option("--project-type", default="adu", show_default=True)
@click.pass_context
def permits_add(
    ctx: click.Context,
    project_id: str,
    municipality: str | None,
    path: str | None,
    project_type: str,
) -> None:
    """Add permit checklist items as tasks and move the project to permitting."""
    if path:
        try:
            checklist = load_checklist(Path(path))
        except ConfigurationError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
    elif municipality:
        checklist = find_checklist(load_bundled_checklists(), municipality, project_type)
        if checklist is None:
            click.echo(f"Error: No {project_type} checklist for {municipality}", err=True)
            sys.exit(1)
    else:
        click.echo("Error: Provide --municipality or --file", err=True)
        sys.exit(1)

    created = _run(
        ctx, lambda p: p.add_permit_tasks(project_id, checklist, actor=ctx.obj["actor"])
    )
    if created is None:
        click.echo(f"Error: Project {project_id} not found", err=True)
        sys.exit(1)
    click.echo(f"Added {len(created)} permit task(s) from {checklist.title}")
