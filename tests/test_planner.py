"""Tests for the project planner engine."""

from __future__ import annotations

from datetime import date

import pytest

from homeflow.core.planner import ProjectPlanner
from homeflow.core.templates import TemplateLibrary, TemplateNotFoundError
from homeflow.events.bus import EventBus
from homeflow.events.types import EventType
from homeflow.models.milestone import MilestoneStatus
from homeflow.models.permit import ChecklistItem, PermitChecklist
from homeflow.models.stage import ProjectStage

TODAY = date(2024, 1, 31)


async def _project(planner: ProjectPlanner, user_id: str = "owner-1"):
    return await planner.create_project(user_id=user_id, name="Garden Suite", address="12 Elm St")


class TestProjects:
    async def test_create_project(self, planner: ProjectPlanner, captured: list[dict]):
        project = await _project(planner)
        assert project.name == "Garden Suite"
        assert project.stage is None
        assert captured[0]["type"] == EventType.PROJECT_CREATED
        assert captured[0]["data"]["project_id"] == project.id

    async def test_create_requires_name(self, planner: ProjectPlanner):
        with pytest.raises(ValueError):
            await planner.create_project(user_id="owner-1", name="  ")

    async def test_current_project_is_latest(self, planner: ProjectPlanner):
        await _project(planner)
        latest = await planner.create_project(user_id="owner-1", name="Laneway House")
        current = await planner.current_project("owner-1")
        assert current.id == latest.id
        assert await planner.current_project("nobody") is None

    async def test_update_project(self, planner: ProjectPlanner):
        project = await _project(planner)
        updated = await planner.update_project(project.id, status="Permitting", progress=40)
        assert updated.status == "Permitting"
        assert updated.progress == 40

    async def test_update_rejects_bad_status(self, planner: ProjectPlanner):
        project = await _project(planner)
        with pytest.raises(ValueError):
            await planner.update_project(project.id, status="Dreaming")

    async def test_update_rejects_bad_progress(self, planner: ProjectPlanner):
        project = await _project(planner)
        with pytest.raises(ValueError):
            await planner.update_project(project.id, progress=150)

    async def test_update_missing_project(self, planner: ProjectPlanner):
        assert await planner.update_project("missing", status="Planning") is None


class TestPlanGeneration:
    async def test_generate_standard_plan(self, planner: ProjectPlanner, captured: list[dict]):
        project = await _project(planner)
        tasks, milestones = await planner.generate_plan(project.id, "standard", today=TODAY)
        assert len(tasks) == 10
        assert len(milestones) == 4
        assert tasks[0].due_date == date(2024, 2, 3)
        assert all(t.project_id == project.id for t in tasks)
        assert captured[-1]["type"] == EventType.PLAN_GENERATED
        assert captured[-1]["data"]["tasks"] == 10

        stored = await planner.list_tasks(project.id)
        assert len(stored) == 10
        assert stored[0].resources[0].name == "Toronto Zoning Map"

    async def test_default_plan_when_none_requested(self, planner: ProjectPlanner):
        project = await _project(planner)
        tasks, _ = await planner.generate_plan(project.id, today=TODAY)
        assert tasks[0].title == "1.1 Check Zoning & Setbacks"

    async def test_unknown_plan_falls_back(self, planner: ProjectPlanner):
        project = await _project(planner)
        tasks, _ = await planner.generate_plan(project.id, "mansion", today=TODAY)
        assert len(tasks) == 10

    async def test_missing_default_raises(self, store, event_bus: EventBus):
        planner = ProjectPlanner(store, event_bus, TemplateLibrary.from_mapping({}))
        project = await _project(planner)
        with pytest.raises(TemplateNotFoundError):
            await planner.generate_plan(project.id, "mansion", today=TODAY)
        assert await planner.list_tasks(project.id) == []

    async def test_generate_missing_project(self, planner: ProjectPlanner):
        assert await planner.generate_plan("missing", today=TODAY) is None

    async def test_custom_plan_is_empty(self, planner: ProjectPlanner):
        project = await _project(planner)
        tasks, milestones = await planner.generate_plan(project.id, "custom", today=TODAY)
        assert tasks == []
        assert milestones == []
        assert await planner.get_stage(project.id) == ProjectStage.IDEA

    async def test_generate_twice_appends(self, planner: ProjectPlanner):
        project = await _project(planner)
        await planner.generate_plan(project.id, "catalogue", today=TODAY)
        await planner.generate_plan(project.id, "catalogue", today=TODAY)
        assert len(await planner.list_tasks(project.id)) == 14

    async def test_reset_replaces_plan(self, planner: ProjectPlanner):
        project = await _project(planner)
        await planner.generate_plan(project.id, "standard", today=TODAY)
        await planner.generate_plan(project.id, "catalogue", today=TODAY, reset=True)
        assert len(await planner.list_tasks(project.id)) == 7
        assert len(await planner.list_milestones(project.id)) == 3

    async def test_milestones_stored_with_status(self, planner: ProjectPlanner):
        project = await _project(planner)
        await planner.generate_plan(project.id, "standard", today=TODAY)
        milestones = {m.title: m for m in await planner.list_milestones(project.id)}
        assert milestones["Design Approved"].status == MilestoneStatus.PENDING
        assert milestones["Permit Issued"].status == MilestoneStatus.APPROVAL_NEEDED


class TestStage:
    async def test_new_project_is_idea(self, planner: ProjectPlanner):
        project = await _project(planner)
        assert await planner.get_stage(project.id) == ProjectStage.IDEA

    async def test_fresh_plan_is_feasibility(self, planner: ProjectPlanner):
        project = await _project(planner)
        await planner.generate_plan(project.id, today=TODAY)
        assert await planner.get_stage(project.id) == ProjectStage.FEASIBILITY

    async def test_stage_advances_as_tasks_complete(self, planner: ProjectPlanner):
        project = await _project(planner)
        tasks, _ = await planner.generate_plan(project.id, "catalogue", today=TODAY)
        for task in tasks[:3]:
            await planner.set_task_completed(task.id, True)
        assert await planner.get_stage(project.id) == ProjectStage.PERMITTING

        for task in tasks:
            await planner.set_task_completed(task.id, True)
        assert await planner.get_stage(project.id) == ProjectStage.CLOSEOUT

    async def test_explicit_override(self, planner: ProjectPlanner, captured: list[dict]):
        project = await _project(planner)
        await planner.generate_plan(project.id, today=TODAY)
        updated = await planner.set_stage(project.id, "construction")
        assert updated.stage == ProjectStage.CONSTRUCTION
        assert await planner.get_stage(project.id) == ProjectStage.CONSTRUCTION
        assert captured[-1]["type"] == EventType.STAGE_CHANGED

    async def test_clear_override(self, planner: ProjectPlanner):
        project = await _project(planner)
        await planner.generate_plan(project.id, today=TODAY)
        await planner.set_stage(project.id, ProjectStage.CLOSEOUT)
        await planner.set_stage(project.id, None)
        assert await planner.get_stage(project.id) == ProjectStage.FEASIBILITY

    async def test_invalid_stage(self, planner: ProjectPlanner):
        project = await _project(planner)
        with pytest.raises(ValueError):
            await planner.set_stage(project.id, "demolition")

    async def test_missing_project_stage(self, planner: ProjectPlanner):
        assert await planner.get_stage("missing") is None


class TestTasks:
    async def test_add_task(self, planner: ProjectPlanner, captured: list[dict]):
        project = await _project(planner)
        task = await planner.add_task(project.id, title="Order survey", due_date="2024-02-10")
        assert task.due_date == date(2024, 2, 10)
        assert captured[-1]["type"] == EventType.TASK_CREATED

    async def test_add_task_requires_title(self, planner: ProjectPlanner):
        project = await _project(planner)
        with pytest.raises(ValueError):
            await planner.add_task(project.id, title="")

    async def test_add_task_bad_date(self, planner: ProjectPlanner):
        project = await _project(planner)
        with pytest.raises(ValueError):
            await planner.add_task(project.id, title="Order survey", due_date="soon")

    async def test_toggle(self, planner: ProjectPlanner):
        project = await _project(planner)
        task = await planner.add_task(project.id, title="Order survey")
        assert (await planner.toggle_task(task.id)).completed is True
        assert (await planner.toggle_task(task.id)).completed is False
        assert await planner.toggle_task("missing") is None


class TestPermissions:
    async def test_owner_may_generate(self, planner: ProjectPlanner):
        project = await _project(planner)
        result = await planner.generate_plan(project.id, today=TODAY, actor="owner-1")
        assert result is not None

    async def test_stranger_cannot_generate(self, planner: ProjectPlanner):
        project = await _project(planner)
        with pytest.raises(PermissionError):
            await planner.generate_plan(project.id, today=TODAY, actor="stranger")
        assert await planner.list_tasks(project.id) == []

    async def test_contractor_edits_tasks_but_not_stage(self, planner: ProjectPlanner):
        project = await _project(planner)
        await planner.add_member(project.id, "builder", "contractor", actor="owner-1")
        task = await planner.add_task(project.id, title="Framing walls", actor="builder")
        done = await planner.set_task_completed(task.id, True, actor="builder")
        assert done.completed is True
        with pytest.raises(PermissionError):
            await planner.set_stage(project.id, "closeout", actor="builder")

    async def test_viewer_is_read_only(self, planner: ProjectPlanner):
        project = await _project(planner)
        await planner.add_member(project.id, "neighbour", "viewer")
        assert await planner.can_view(project.id, "neighbour") is True
        with pytest.raises(PermissionError):
            await planner.add_task(project.id, title="Paint", actor="neighbour")

    async def test_stranger_cannot_view(self, planner: ProjectPlanner):
        project = await _project(planner)
        assert await planner.can_view(project.id, "stranger") is False
        assert await planner.can_view(project.id, None) is True

    async def test_invalid_role(self, planner: ProjectPlanner):
        project = await _project(planner)
        with pytest.raises(ValueError):
            await planner.add_member(project.id, "builder", "foreman")

    async def test_member_added_event(self, planner: ProjectPlanner, captured: list[dict]):
        project = await _project(planner)
        await planner.add_member(project.id, "builder")
        assert captured[-1]["type"] == EventType.MEMBER_ADDED
        assert captured[-1]["data"]["role"] == "contractor"


class TestPermits:
    @pytest.fixture
    def checklist(self) -> PermitChecklist:
        return PermitChecklist(
            municipality_key="toronto",
            municipality_name="City of Toronto",
            title="Garden Suite Permit Checklist",
            checklist_items=(
                ChecklistItem(title="Zoning Review Application", typical_timeline_days=14),
                ChecklistItem(title="Arborist Report"),
            ),
        )

    async def test_add_permit_tasks(self, planner: ProjectPlanner, checklist: PermitChecklist):
        project = await _project(planner)
        tasks = await planner.add_permit_tasks(project.id, checklist, today=TODAY)
        assert [t.due_date for t in tasks] == [date(2024, 2, 14), date(2024, 2, 7)]
        assert await planner.get_stage(project.id) == ProjectStage.PERMITTING

    async def test_permit_tasks_not_duplicated(
        self, planner: ProjectPlanner, checklist: PermitChecklist
    ):
        project = await _project(planner)
        await planner.add_permit_tasks(project.id, checklist, today=TODAY)
        again = await planner.add_permit_tasks(project.id, checklist, today=TODAY)
        assert again == []
        assert len(await planner.list_tasks(project.id)) == 2

    async def test_permit_tasks_missing_project(
        self, planner: ProjectPlanner, checklist: PermitChecklist
    ):
        assert await planner.add_permit_tasks("missing", checklist) is None


class TestInsights:
    async def test_health_counts_overdue(self, planner: ProjectPlanner):
        project = await _project(planner)
        await planner.generate_plan(project.id, today=TODAY)
        health = await planner.health(project.id, today=date(2024, 2, 20))
        # 1.1 (Feb 3) and 1.2 (Feb 7) and 2.1 (Feb 14) are past due
        assert health.overdue == 3
        assert health.label == "At Risk"

    async def test_next_step_prefers_permit_work(self, planner: ProjectPlanner):
        project = await _project(planner)
        assert (await planner.next_step(project.id)).kind == "generate_plan"
        await planner.generate_plan(project.id, today=TODAY)
        step = await planner.next_step(project.id)
        assert step.kind == "permit_task"
        assert step.task.title == "1.1 Check Zoning & Setbacks"

    async def test_next_step_without_project(self, planner: ProjectPlanner):
        assert (await planner.next_step(None)).kind == "create_project"
