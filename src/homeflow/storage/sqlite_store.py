"""SQLite storage backend in WAL mode."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import aiosqlite

from homeflow.storage.base import StorageBackend

logger = logging.getLogger(__name__)

# Column whitelists per table — prevents SQL injection in UPDATE operations
_ALLOWED_COLUMNS: dict[str, set[str]] = {
    "projects": {
        "name",
        "address",
        "status",
        "progress",
        "stage",
        "permit_number",
        "inspection_phone",
        "updated_at",
    },
    "tasks": {
        "title",
        "description",
        "due_date",
        "completed",
        "diy_guidance",
        "cost_savings",
        "resources",
        "updated_at",
    },
}

_JSON_FIELDS = ("resources",)
_BOOL_FIELDS = ("completed",)

_INSERT_TASK = """INSERT INTO tasks (id, project_id, title, description, due_date,
    completed, diy_guidance, cost_savings, resources, created_at, updated_at)
    VALUES (:id, :project_id, :title, :description, :due_date,
    :completed, :diy_guidance, :cost_savings, :resources, :created_at, :updated_at)"""

_INSERT_MILESTONE = """INSERT INTO milestones (id, project_id, title, date, amount,
    status, created_at)
    VALUES (:id, :project_id, :title, :date, :amount, :status, :created_at)"""


def _validate_update_keys(table: str, updates: dict[str, Any]) -> dict[str, Any]:
    """Filter update dict to only allowed column names."""
    allowed = _ALLOWED_COLUMNS.get(table, set())
    filtered = {k: v for k, v in updates.items() if k in allowed}
    rejected = set(updates.keys()) - allowed - {"id"}
    if rejected:
        logger.warning("Rejected invalid column names for %s: %s", table, rejected)
    return filtered


class SQLiteStore(StorageBackend):
    """SQLite-based project store."""

    def __init__(self, db_path: Path, *, wal_mode: bool = True) -> None:
        self.db_path = db_path
        self.wal_mode = wal_mode
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Create database and apply schema."""
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db = await aiosqlite.connect(str(self.db_path))
        self._db.row_factory = aiosqlite.Row

        if self.wal_mode:
            await self._db.execute("PRAGMA journal_mode=WAL")
        await self._db.execute("PRAGMA foreign_keys=ON")

        await self._db.executescript(_load_sql("workspace.sql"))
        await self._db.commit()
        logger.info("Initialized SQLite store at %s", self.db_path)

    async def close(self) -> None:
        if self._db:
            await self._db.close()
            self._db = None
            logger.info("Closed SQLite store at %s", self.db_path)

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Store not initialized. Call initialize() first.")
        return self._db

    async def _update(
        self, table: str, record_id: str, updates: dict[str, Any]
    ) -> bool:
        updates = _serialize_json_fields(_validate_update_keys(table, updates))
        if not updates:
            return False
        set_clause = ", ".join(f"{key} = ?" for key in updates)
        await self.db.execute(
            f"UPDATE {table} SET {set_clause} WHERE id = ?",
            [*updates.values(), record_id],
        )
        await self.db.commit()
        return True

    # --- Project operations ---

    async def insert_project(self, project: dict[str, Any]) -> dict[str, Any]:
        await self.db.execute(
            """INSERT INTO projects (id, user_id, name, address, status, progress,
               stage, permit_number, inspection_phone, created_at, updated_at)
               VALUES (:id, :user_id, :name, :address, :status, :progress,
               :stage, :permit_number, :inspection_phone, :created_at, :updated_at)""",
            project,
        )
        await self.db.commit()
        return project

    async def get_project(self, project_id: str) -> dict[str, Any] | None:
        cursor = await self.db.execute("SELECT * FROM projects WHERE id = ?", (project_id,))
        row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def update_project(
        self, project_id: str, updates: dict[str, Any]
    ) -> dict[str, Any] | None:
        existing = await self.get_project(project_id)
        if not existing:
            return None
        if not await self._update("projects", project_id, updates):
            return existing
        return await self.get_project(project_id)

    async def list_projects(self, *, user_id: str | None = None) -> list[dict[str, Any]]:
        if user_id:
            cursor = await self.db.execute(
                "SELECT * FROM projects WHERE user_id = ? ORDER BY created_at DESC",
                (user_id,),
            )
        else:
            cursor = await self.db.execute("SELECT * FROM projects ORDER BY created_at DESC")
        rows = await cursor.fetchall()
        return [_row_to_dict(row) for row in rows]

    # --- Task operations ---

    async def insert_task(self, task: dict[str, Any]) -> dict[str, Any]:
        await self.db.execute(_INSERT_TASK, _serialize_json_fields(task))
        await self.db.commit()
        return task

    async def insert_tasks(self, tasks: list[dict[str, Any]]) -> int:
        if not tasks:
            return 0
        await self.db.executemany(_INSERT_TASK, [_serialize_json_fields(t) for t in tasks])
        await self.db.commit()
        return len(tasks)

    async def get_task(self, task_id: str) -> dict[str, Any] | None:
        cursor = await self.db.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
        row = await cursor.fetchone()
        return _row_to_dict(row) if row else None

    async def update_task(self, task_id: str, updates: dict[str, Any]) -> dict[str, Any] | None:
        existing = await self.get_task(task_id)
        if not existing:
            return None
        if not await self._update("tasks", task_id, updates):
            return existing
        return await self.get_task(task_id)

    async def list_tasks(self, project_id: str) -> list[dict[str, Any]]:
        cursor = await self.db.execute(
            """SELECT * FROM tasks WHERE project_id = ?
               ORDER BY due_date IS NULL, due_date ASC, created_at ASC""",
            (project_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_dict(row) for row in rows]

    # --- Milestone operations ---

    async def insert_milestones(self, milestones: list[dict[str, Any]]) -> int:
        if not milestones:
            return 0
        await self.db.executemany(_INSERT_MILESTONE, milestones)
        await self.db.commit()
        return len(milestones)

    async def list_milestones(self, project_id: str) -> list[dict[str, Any]]:
        cursor = await self.db.execute(
            "SELECT * FROM milestones WHERE project_id = ? ORDER BY date ASC, created_at ASC",
            (project_id,),
        )
        rows = await cursor.fetchall()
        return [_row_to_dict(row) for row in rows]

    # --- Plan operations ---

    async def _insert_plan_rows(
        self, tasks: list[dict[str, Any]], milestones: list[dict[str, Any]]
    ) -> None:
        if tasks:
            await self.db.executemany(_INSERT_TASK, [_serialize_json_fields(t) for t in tasks])
        if milestones:
            await self.db.executemany(_INSERT_MILESTONE, milestones)

    async def insert_plan(
        self, tasks: list[dict[str, Any]], milestones: list[dict[str, Any]]
    ) -> tuple[int, int]:
        try:
            await self._insert_plan_rows(tasks, milestones)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return len(tasks), len(milestones)

    async def replace_plan(
        self,
        project_id: str,
        tasks: list[dict[str, Any]],
        milestones: list[dict[str, Any]],
    ) -> tuple[int, int]:
        try:
            task_cursor = await self.db.execute(
                "DELETE FROM tasks WHERE project_id = ?", (project_id,)
            )
            milestone_cursor = await self.db.execute(
                "DELETE FROM milestones WHERE project_id = ?", (project_id,)
            )
            await self._insert_plan_rows(tasks, milestones)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
        return task_cursor.rowcount, milestone_cursor.rowcount

    # --- Team operations ---

    async def add_member(self, project_id: str, user_id: str, role: str) -> dict[str, Any]:
        await self.db.execute(
            """INSERT INTO project_team (project_id, user_id, role, joined_at)
               VALUES (?, ?, ?, datetime('now'))
               ON CONFLICT(project_id, user_id) DO UPDATE SET role = excluded.role""",
            (project_id, user_id, role),
        )
        await self.db.commit()
        return {"project_id": project_id, "user_id": user_id, "role": role}

    async def get_member_role(self, project_id: str, user_id: str) -> str | None:
        cursor = await self.db.execute(
            "SELECT role FROM project_team WHERE project_id = ? AND user_id = ?",
            (project_id, user_id),
        )
        row = await cursor.fetchone()
        return row["role"] if row else None

    async def list_members(self, project_id: str) -> list[dict[str, Any]]:
        cursor = await self.db.execute(
            "SELECT * FROM project_team WHERE project_id = ? ORDER BY joined_at",
            (project_id,),
        )
        rows = await cursor.fetchall()
        return [dict(row) for row in rows]

    # --- Stats ---

    async def get_stats(self) -> dict[str, Any]:
        counts: dict[str, Any] = {}
        for table in ("projects", "tasks", "milestones", "project_team"):
            cursor = await self.db.execute(f"SELECT COUNT(*) FROM {table}")
            row = await cursor.fetchone()
            counts[table] = row[0] if row else 0

        cursor = await self.db.execute("SELECT COUNT(*) FROM tasks WHERE completed = 1")
        row = await cursor.fetchone()
        counts["tasks_completed"] = row[0] if row else 0
        counts["db_path"] = str(self.db_path)
        return counts


# --- Helpers ---


def _load_sql(filename: str) -> str:
    """Load SQL file from the schema package."""
    schema_dir = Path(__file__).parent.parent / "schema"
    return (schema_dir / filename).read_text()


def _row_to_dict(row: aiosqlite.Row) -> dict[str, Any]:
    """Convert an aiosqlite Row to a dict, decoding JSON and boolean columns."""
    d = dict(row)
    for key in _JSON_FIELDS:
        if key in d and isinstance(d[key], str):
            try:
                d[key] = json.loads(d[key])
            except (json.JSONDecodeError, TypeError):
                pass
    for key in _BOOL_FIELDS:
        if key in d and d[key] is not None:
            d[key] = bool(d[key])
    return d


def _serialize_json_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Serialize list/dict fields to JSON strings for SQLite storage."""
    result = dict(data)
    for field in _JSON_FIELDS:
        if field in result and not isinstance(result[field], str) and result[field] is not None:
            result[field] = json.dumps(result[field])
    return result
