"""
Tests for workspace directory operations.

Test coverage for:
- Project creation with and without a task breakdown
- Malformed breakdown parts dropped before anything is written
- Breakdown materialization into Backlog tasks and milestones
- Member, milestone and client creation with activity entries
"""

from datetime import datetime, timezone

import pytest

from speedops.directory import WorkspaceDirectoryService, breakdown_milestones, breakdown_tasks
from speedops.models import Client, Milestone, Project, TaskStatus, TeamMember, Urgency

from tests.conftest import WORKSPACE_ID

NOW = datetime(2025, 3, 10, 12, 0, tzinfo=timezone.utc)

BREAKDOWN = {
    "features": [
        {"featureName": "Auth", "tasks": [
            {"name": "Login", "description": "d", "assigneeId": "m-ana",
             "acceptanceCriteria": ["works"], "startDay": 1, "endDay": 2},
            {"name": "Signup", "description": "d", "assigneeId": "m-ben",
             "acceptanceCriteria": [], "startDay": 3, "endDay": 5},
        ]},
        {"featureName": "Billing", "tasks": [
            {"name": "Invoices", "description": "d", "assigneeId": "m-ben",
             "acceptanceCriteria": [], "startDay": 2, "endDay": 4},
        ]},
    ],
    "milestones": [
        {"title": "Beta", "description": "d", "dayOffset": 14, "urgency": "High"},
        {"title": "Launch", "description": "d", "dayOffset": 30, "urgency": "Whenever"},
    ],
}


@pytest.fixture
def directory(gateway, recorder):
    return WorkspaceDirectoryService(gateway, recorder)


def make_project(lead="Ben Okafor") -> Project:
    return Project(id="p-atlas", name="Atlas", client="Acme", lead=lead)


class TestBreakdownMaterialization:
    def test_tasks_in_backlog_with_feature_origin(self):
        tasks = breakdown_tasks("p-atlas", BREAKDOWN, NOW)

        assert [t.name for t in tasks] == ["Login", "Signup", "Invoices"]
        assert all(t.status == TaskStatus.BACKLOG for t in tasks)
        assert all(t.id.startswith("t-ai-") for t in tasks)
        assert [t.feature_origin for t in tasks] == ["Auth", "Auth", "Billing"]

    def test_task_timeline_offsets(self):
        signup = breakdown_tasks("p-atlas", BREAKDOWN, NOW)[1]
        assert signup.timeline.start == datetime(2025, 3, 12, 12, 0, tzinfo=timezone.utc).isoformat()
        assert signup.timeline.end == datetime(2025, 3, 15, 12, 0, tzinfo=timezone.utc).isoformat()

    def test_milestone_owner_is_lead(self, members):
        milestones = breakdown_milestones(make_project(), BREAKDOWN, members, NOW)

        assert [m.owner_id for m in milestones] == ["m-ben", "m-ben"]
        assert milestones[0].deadline == "2025-03-24"
        assert milestones[0].urgency == Urgency.HIGH

    def test_milestone_owner_falls_back_to_first_member(self, members):
        milestones = breakdown_milestones(make_project(lead="Nobody"), BREAKDOWN, members, NOW)
        assert milestones[0].owner_id == "m-ana"

    def test_unknown_urgency_is_medium(self, members):
        milestones = breakdown_milestones(make_project(), BREAKDOWN, members, NOW)
        assert milestones[1].urgency == Urgency.MEDIUM


class TestAddProject:
    @pytest.mark.asyncio
    async def test_without_breakdown(self, directory, recorder):
        project, tasks, milestones = await directory.add_project(WORKSPACE_ID, make_project())
        await recorder.drain()

        assert (tasks, milestones) == ([], [])
        assert [p.id for p in await directory.list_projects(WORKSPACE_ID)] == ["p-atlas"]
        entries = await recorder.recent(WORKSPACE_ID)
        assert entries[0].author == "Ben Okafor"
        assert entries[0].content == "New mission initiated: Atlas"

    @pytest.mark.asyncio
    async def test_with_breakdown(self, directory, gateway, members):
        project, tasks, milestones = await directory.add_project(
            WORKSPACE_ID, make_project(), breakdown=BREAKDOWN, members=members, now=NOW
        )

        assert len(tasks) == 3
        assert len(milestones) == 2
        assert project.features == BREAKDOWN["features"]
        stored_tasks = await gateway.list_documents(f"workspaces/{WORKSPACE_ID}/tasks")
        assert len(stored_tasks) == 3
        assert len(await directory.list_milestones(WORKSPACE_ID)) == 2

    @pytest.mark.asyncio
    async def test_malformed_breakdown_keeps_valid_tasks(self, directory, gateway, members):
        breakdown = {
            "features": [
                {"featureName": "Maps", "tasks": [
                    "oops",
                    {"name": "Tiles", "assigneeId": "m-ana", "startDay": 1, "endDay": 2},
                ]},
                {"featureName": "Search", "tasks": None},
            ],
            "milestones": [7, {"title": "Alpha", "dayOffset": 5}],
        }

        project, tasks, milestones = await directory.add_project(
            WORKSPACE_ID, make_project(), breakdown=breakdown, members=members, now=NOW
        )

        assert [t.name for t in tasks] == ["Tiles"]
        assert [m.title for m in milestones] == ["Alpha"]
        assert [f["featureName"] for f in project.features] == ["Maps", "Search"]
        stored_tasks = await gateway.list_documents(f"workspaces/{WORKSPACE_ID}/tasks")
        assert [d["name"] for d in stored_tasks] == ["Tiles"]
        assert [p.id for p in await directory.list_projects(WORKSPACE_ID)] == ["p-atlas"]


class TestDirectoryEntities:
    @pytest.mark.asyncio
    async def test_add_member(self, directory, recorder):
        await directory.add_member(WORKSPACE_ID, TeamMember(id="m-dee", name="Dee Park"))
        await recorder.drain()

        assert [m.name for m in await directory.list_members(WORKSPACE_ID)] == ["Dee Park"]
        entry = (await recorder.recent(WORKSPACE_ID))[0]
        assert (entry.source.value, entry.author, entry.content) == (
            "PERSONNEL", "ADMIN", "Operator Dee Park integrated",
        )

    @pytest.mark.asyncio
    async def test_add_milestone(self, directory, recorder):
        milestone = Milestone(
            id="ms-1", project_id="p-atlas", title="Beta", description="",
            deadline="2025-04-01", owner_id="m-ana",
        )
        await directory.add_milestone(WORKSPACE_ID, milestone)
        await recorder.drain()

        entry = (await recorder.recent(WORKSPACE_ID))[0]
        assert (entry.source.value, entry.content) == ("SCHEDULE", "Critical marker placed: Beta")

    @pytest.mark.asyncio
    async def test_add_client(self, directory, recorder):
        client = Client(id="c-1", name="Acme", industry="Logistics", contact_person="Wile", email="w@acme.test")
        await directory.add_client(WORKSPACE_ID, client)
        await recorder.drain()

        stored = await directory.list_clients(WORKSPACE_ID)
        assert stored[0].phone is None
        entry = (await recorder.recent(WORKSPACE_ID))[0]
        assert (entry.source.value, entry.content) == ("CLIENT", "New corporate entity catalogued: Acme")
