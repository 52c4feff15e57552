"""Tests for project health and next-step recommendations."""

from __future__ import annotations

from datetime import date

from homeflow.core.insights import project_health, recommend_next_step
from homeflow.models.project import Project
from homeflow.models.task import Task

TODAY = date(2024, 6, 1)


def _task(title: str, due: date | None = None, completed: bool = False) -> Task:
    return Task(project_id="p1", title=title, due_date=due, completed=completed)


def _overdue(n: int) -> list[Task]:
    return [_task(f"Late {i}", date(2024, 5, 1)) for i in range(n)]


class TestHealth:
    def test_no_tasks(self) -> None:
        health = project_health([], TODAY)
        assert health.score == 100
        assert health.label == "Excellent"
        assert health.message == "No active tasks."

    def test_on_track(self) -> None:
        tasks = [_task("Survey", date(2024, 7, 1)), _task("Undated")]
        health = project_health(tasks, TODAY)
        assert (health.score, health.label) == (100, "Excellent")
        assert health.overdue == 0

    def test_due_today_is_not_overdue(self) -> None:
        assert project_health([_task("Survey", TODAY)], TODAY).overdue == 0

    def test_completed_late_task_is_not_overdue(self) -> None:
        tasks = [_task("Survey", date(2024, 1, 1), completed=True)]
        assert project_health(tasks, TODAY).score == 100

    def test_good(self) -> None:
        health = project_health(_overdue(2), TODAY)
        assert (health.score, health.label) == (70, "Good")
        assert health.message == "2 task(s) overdue."

    def test_at_risk(self) -> None:
        health = project_health(_overdue(3), TODAY)
        assert (health.score, health.label) == (55, "At Risk")

    def test_critical(self) -> None:
        health = project_health(_overdue(4), TODAY)
        assert (health.score, health.label) == (40, "Critical")

    def test_score_floor(self) -> None:
        assert project_health(_overdue(10), TODAY).score == 0

    def test_response(self) -> None:
        data = project_health(_overdue(1), TODAY).to_response()
        assert data["_v"] == "1.0"
        assert data["overdue"] == 1


class TestNextStep:
    def test_no_project(self) -> None:
        assert recommend_next_step(None, []).kind == "create_project"

    def test_no_tasks(self) -> None:
        project = Project(user_id="u1", name="Garden Suite")
        assert recommend_next_step(project, []).kind == "generate_plan"

    def test_permit_task_preferred(self) -> None:
        project = Project(user_id="u1", name="Garden Suite")
        tasks = [_task("Order survey"), _task("Submit permit application")]
        step = recommend_next_step(project, tasks)
        assert step.kind == "permit_task"
        assert step.task is tasks[1]

    def test_first_open_task(self) -> None:
        project = Project(user_id="u1", name="Garden Suite")
        tasks = [_task("Order survey", completed=True), _task("Site plan")]
        step = recommend_next_step(project, tasks)
        assert step.kind == "next_task"
        assert step.task.title == "Site plan"

    def test_everything_done(self) -> None:
        project = Project(user_id="u1", name="Garden Suite")
        step = recommend_next_step(project, [_task("Survey", completed=True)])
        assert step.kind == "browse_contractors"
        assert step.to_response()["task"] is None
