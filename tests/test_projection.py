"""
Tests for the workspace projection.

Test coverage for:
- Snapshots replace the working set outright
- Version stamp increments once per applied snapshot
- Duplicate and out-of-order snapshots: last delivered wins
- Live subscription keeps the projection current
"""

import pytest

from speedops.models import TaskStatus
from speedops.projection import WorkspaceProjection
from speedops.store import Collection, Snapshot, document_path
from speedops.transition_gate import TransitionEvidence

from tests.conftest import WORKSPACE_ID, make_task


def snapshot(docs, sequence):
    return Snapshot(collection_path=f"workspaces/{WORKSPACE_ID}/tasks", documents=tuple(docs), sequence=sequence)


class TestApply:
    def test_replaces_working_set(self):
        projection = WorkspaceProjection(WORKSPACE_ID)
        projection.apply(Collection.TASKS, snapshot([{"id": "t-1"}, {"id": "t-2"}], 1))
        projection.apply(Collection.TASKS, snapshot([{"id": "t-3"}], 2))

        assert [d["id"] for d in projection.documents(Collection.TASKS)] == ["t-3"]

    def test_version_per_snapshot(self):
        projection = WorkspaceProjection(WORKSPACE_ID)
        assert projection.version(Collection.TASKS) == 0

        assert projection.apply(Collection.TASKS, snapshot([], 1)) == 1
        assert projection.apply(Collection.TASKS, snapshot([], 1)) == 2
        assert projection.version(Collection.ERRORS) == 0

    def test_out_of_order_last_delivered_wins(self):
        projection = WorkspaceProjection(WORKSPACE_ID)
        projection.apply(Collection.TASKS, snapshot([{"id": "new"}], 5))
        projection.apply(Collection.TASKS, snapshot([{"id": "old"}], 3))

        assert [d["id"] for d in projection.documents(Collection.TASKS)] == ["old"]
        assert projection.state(Collection.TASKS).store_sequence == 3

    def test_typed_readers(self):
        projection = WorkspaceProjection(WORKSPACE_ID)
        projection.apply(Collection.TASKS, snapshot([make_task("t-9").to_dict()], 1))

        assert projection.tasks[0].id == "t-9"
        assert projection.find_task("t-9").name == "Login form"
        assert projection.find_task("missing") is None

    def test_activity_newest_first_and_capped(self):
        projection = WorkspaceProjection(WORKSPACE_ID, activity_limit=2)
        docs = [
            {"id": str(i), "source": "TASK", "author": "a", "content": str(i),
             "timestamp": "09:00", "createdAt": f"2025-01-0{i}T00:00:00"}
            for i in range(1, 5)
        ]
        projection.apply(Collection.ACTIVITY, snapshot(docs, 1))

        assert [a.content for a in projection.activity] == ["4", "3"]


class TestLiveProjection:
    @pytest.mark.asyncio
    async def test_follows_gateway_writes(self, gateway, gate, store):
        task = make_task()
        await store.put(document_path(WORKSPACE_ID, Collection.TASKS, task.id), task.to_dict())

        projection = WorkspaceProjection(WORKSPACE_ID)
        projection.start(gateway, collections=[Collection.TASKS])
        try:
            await projection.wait_for_version(Collection.TASKS, 1)
            assert projection.find_task("t-1").status == TaskStatus.BACKLOG

            await gate.transition(
                WORKSPACE_ID, task, TaskStatus.IN_PROGRESS, TransitionEvidence(proof_link="https://pr")
            )
            await projection.wait_for_version(Collection.TASKS, 2)

            mirrored = projection.find_task("t-1")
            assert mirrored.status == TaskStatus.IN_PROGRESS
            assert len(mirrored.proofs) == 1
        finally:
            await projection.stop()
