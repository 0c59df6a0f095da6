"""
Tests for the task mutation surface.

Test coverage for:
- Task creation in Backlog with a launch activity entry
- Comment append: newest first, blank ignored, default tag, no activity
- Archival and board filtering
- Routing transitions through the gate
"""

import pytest

from speedops.errors import DocumentNotFoundError
from speedops.models import CommentTag, Role, TaskStatus, Timeline
from speedops.store import Collection, document_path
from speedops.tasks import TaskService, TaskView, filter_tasks
from speedops.transition_gate import TransitionEvidence

from tests.conftest import WORKSPACE_ID, make_task


@pytest.fixture
def task_service(gateway, recorder, gate):
    return TaskService(gateway, recorder, gate)


async def seed(store, task):
    await store.put(document_path(WORKSPACE_ID, Collection.TASKS, task.id), task.to_dict())


# -----------------------------------------------------------------------------
# Creation
# -----------------------------------------------------------------------------
class TestCreateTask:
    @pytest.mark.asyncio
    async def test_created_in_backlog(self, task_service, store, recorder, members):
        task = await task_service.create_task(
            WORKSPACE_ID,
            project_id="p-1",
            name="Checkout flow",
            description="Cart to payment",
            assignee_id="m-ben",
            acceptance_criteria=["Handles declined cards"],
            timeline=Timeline(start="2025-03-14", end="2025-03-20"),
            members=members,
            task_id="t-checkout",
        )
        await recorder.drain()

        assert task.status == TaskStatus.BACKLOG
        stored = await store.get(document_path(WORKSPACE_ID, Collection.TASKS, "t-checkout"))
        assert stored["status"] == "Backlog"
        assert stored["proofs"] == []
        assert stored["comments"] == []

        entries = await recorder.recent(WORKSPACE_ID)
        assert [(e.author, e.content) for e in entries] == [("Ben Okafor", "Unit Checkout flow launched")]

    @pytest.mark.asyncio
    async def test_generated_id(self, task_service):
        task = await task_service.create_task(
            WORKSPACE_ID, "p-1", "n", "d", "m-ana", record_activity=False
        )
        assert task.id.startswith("task-")

    @pytest.mark.asyncio
    async def test_get_missing_task(self, task_service):
        with pytest.raises(DocumentNotFoundError):
            await task_service.get_task(WORKSPACE_ID, "nope")


# -----------------------------------------------------------------------------
# Comments
# -----------------------------------------------------------------------------
class TestComments:
    @pytest.mark.asyncio
    async def test_newest_first(self, task_service, store):
        task = make_task()
        await seed(store, task)

        task = await task_service.add_comment(
            WORKSPACE_ID, task, "first", "m-cy", Role.TESTER, comment_id="c-1"
        )
        task = await task_service.add_comment(
            WORKSPACE_ID, task, "second", "m-cy", Role.TESTER, comment_id="c-2"
        )
        task = await task_service.add_comment(
            WORKSPACE_ID, task, "third", "m-cy", Role.TESTER, comment_id="c-3"
        )

        assert [c.id for c in task.comments] == ["c-3", "c-2", "c-1"]
        stored = await store.get(document_path(WORKSPACE_ID, Collection.TASKS, task.id))
        assert [c["content"] for c in stored["comments"]] == ["third", "second", "first"]

    @pytest.mark.asyncio
    async def test_default_tag_is_note(self, task_service, store):
        task = make_task()
        await seed(store, task)

        updated = await task_service.add_comment(WORKSPACE_ID, task, "fyi", "m-ana", Role.FRONTEND)

        assert updated.comments[0].tag == CommentTag.NOTE

    @pytest.mark.asyncio
    async def test_explicit_tag(self, task_service, store):
        task = make_task()
        await seed(store, task)

        updated = await task_service.add_comment(
            WORKSPACE_ID, task, "crash on submit", "m-cy", Role.TESTER, tag=CommentTag.BUG
        )

        assert updated.comments[0].tag == CommentTag.BUG
        assert updated.comments[0].author_role == Role.TESTER

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content", ["", "   ", "\n\t"])
    async def test_blank_content_ignored(self, task_service, store, content):
        task = make_task()
        await seed(store, task)
        path = document_path(WORKSPACE_ID, Collection.TASKS, task.id)
        before = await store.get_version(path)

        result = await task_service.add_comment(WORKSPACE_ID, task, content, "m-ana", Role.FRONTEND)

        assert result is None
        assert await store.get_version(path) == before
        assert (await store.get(path))["comments"] == []

    @pytest.mark.asyncio
    async def test_comment_keeps_status_and_writes_no_activity(self, task_service, store, recorder):
        task = make_task(status=TaskStatus.QA)
        await seed(store, task)

        updated = await task_service.add_comment(
            WORKSPACE_ID, task, "needs copy review", "m-cy", Role.QA, tag=CommentTag.UI_UX
        )
        await recorder.drain()

        assert updated.status == TaskStatus.QA
        assert updated.proofs == []
        assert await recorder.recent(WORKSPACE_ID) == []

    @pytest.mark.asyncio
    async def test_completed_task_accepts_comments(self, task_service, store):
        task = make_task(status=TaskStatus.COMPLETED)
        await seed(store, task)

        updated = await task_service.add_comment(WORKSPACE_ID, task, "post-mortem", "m-ana", Role.FRONTEND)

        assert updated.status == TaskStatus.COMPLETED
        assert len(updated.comments) == 1


# -----------------------------------------------------------------------------
# Archival and Filtering
# -----------------------------------------------------------------------------
class TestBoardFilters:
    def test_active_view_hides_archived(self):
        tasks = [make_task("t-1"), make_task("t-2", archived=True)]
        assert [t.id for t in filter_tasks(tasks, TaskView.ACTIVE)] == ["t-1"]

    def test_archived_view_includes_completed(self):
        tasks = [
            make_task("t-1"),
            make_task("t-2", archived=True),
            make_task("t-3", status=TaskStatus.COMPLETED),
        ]
        assert [t.id for t in filter_tasks(tasks, TaskView.ARCHIVED)] == ["t-2", "t-3"]

    def test_project_filter(self):
        tasks = [make_task("t-1", project_id="p-1"), make_task("t-2", project_id="p-2")]
        assert [t.id for t in filter_tasks(tasks, project_id="p-2")] == ["t-2"]

    @pytest.mark.asyncio
    async def test_set_archived(self, task_service, store):
        task = make_task()
        await seed(store, task)

        updated = await task_service.set_archived(WORKSPACE_ID, task)

        assert updated.archived is True
        assert await task_service.list_tasks(WORKSPACE_ID) == []
        archived = await task_service.list_tasks(WORKSPACE_ID, view=TaskView.ARCHIVED)
        assert [t.id for t in archived] == [task.id]


# -----------------------------------------------------------------------------
# Transitions
# -----------------------------------------------------------------------------
class TestTransitionTask:
    @pytest.mark.asyncio
    async def test_loads_stored_task(self, task_service, store):
        await seed(store, make_task(status=TaskStatus.TESTING))

        applied, _, updated = await task_service.transition_task(
            WORKSPACE_ID, "t-1", TaskStatus.QA, TransitionEvidence(proof_link="https://report")
        )

        assert applied is True
        assert updated.proofs[-1].stage == TaskStatus.TESTING
        assert (await task_service.get_task(WORKSPACE_ID, "t-1")).status == TaskStatus.QA

    @pytest.mark.asyncio
    async def test_missing_task(self, task_service):
        with pytest.raises(DocumentNotFoundError):
            await task_service.transition_task(WORKSPACE_ID, "missing", TaskStatus.QA)
