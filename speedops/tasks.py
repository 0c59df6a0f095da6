"""
Task Mutation Surface

Task creation, comment append, archival and board filtering. Status
changes go through the TransitionGate; this service only looks the task up
and hands it over.

Comments are stored newest-first. Appending a comment never changes the
task's status and never writes an activity entry.
"""

import dataclasses
import logging
import uuid
from enum import Enum
from typing import Iterable, List, Optional, Tuple

from .activity import ActivityRecorder, resolve_author
from .errors import DocumentNotFoundError
from .models import (
    ActivitySource,
    CommentTag,
    Role,
    Task,
    TaskComment,
    TaskStatus,
    TeamMember,
    Timeline,
    isoformat_now,
)
from .stage_graph import INITIAL_STATUS
from .store import Collection, EntityStoreGateway, collection_path, document_path
from .transition_gate import TransitionEvidence, TransitionGate

logger = logging.getLogger("task_service")


class TaskView(str, Enum):
    """Task board tabs."""
    ACTIVE = "active"
    ARCHIVED = "archived"


def filter_tasks(
    tasks: Iterable[Task],
    view: TaskView = TaskView.ACTIVE,
    project_id: Optional[str] = None,
) -> List[Task]:
    """
    Apply the board's tab and project filters.

    The archived tab shows archived tasks and Completed tasks; the active tab
    shows everything not archived.
    """
    result = []
    for task in tasks:
        if project_id and task.project_id != project_id:
            continue
        if view == TaskView.ARCHIVED:
            if task.archived or task.status == TaskStatus.COMPLETED:
                result.append(task)
        elif not task.archived:
            result.append(task)
    return result


class TaskService:
    """Creates tasks, appends comments, archives, and routes transitions."""

    def __init__(
        self,
        gateway: EntityStoreGateway,
        recorder: ActivityRecorder,
        gate: TransitionGate,
    ):
        self._gateway = gateway
        self._recorder = recorder
        self.gate = gate

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_task(self, workspace_id: str, task_id: str) -> Task:
        doc = await self._gateway.get(document_path(workspace_id, Collection.TASKS, task_id))
        if doc is None:
            raise DocumentNotFoundError(f"Task {task_id} not found", path=task_id)
        return Task.from_dict(doc)

    async def get_task_version(self, workspace_id: str, task_id: str) -> int:
        """Current store version of the task document; pass it back as expected_version."""
        return await self._gateway.get_version(document_path(workspace_id, Collection.TASKS, task_id))

    async def list_tasks(
        self,
        workspace_id: str,
        view: TaskView = TaskView.ACTIVE,
        project_id: Optional[str] = None,
    ) -> List[Task]:
        docs = await self._gateway.list_documents(collection_path(workspace_id, Collection.TASKS))
        return filter_tasks((Task.from_dict(d) for d in docs), view=view, project_id=project_id)

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def create_task(
        self,
        workspace_id: str,
        project_id: str,
        name: str,
        description: str,
        assignee_id: str,
        acceptance_criteria: Optional[List[str]] = None,
        timeline: Optional[Timeline] = None,
        feature_origin: Optional[str] = None,
        members: Iterable[TeamMember] = (),
        task_id: Optional[str] = None,
        record_activity: bool = True,
    ) -> Task:
        """Create a task in the initial pipeline stage and persist it."""
        task = Task(
            id=task_id or f"task-{uuid.uuid4().hex}",
            project_id=project_id,
            name=name,
            description=description,
            assignee_id=assignee_id,
            status=INITIAL_STATUS,
            acceptance_criteria=list(acceptance_criteria or []),
            timeline=timeline or Timeline(start="", end=""),
            feature_origin=feature_origin,
        )
        await self._gateway.put(
            document_path(workspace_id, Collection.TASKS, task.id), task.to_dict()
        )
        logger.info(f"Created task {task.id} in project {project_id}")

        if record_activity:
            self._recorder.record(
                workspace_id,
                ActivitySource.TASK,
                resolve_author(assignee_id, members),
                f"Unit {task.name} launched",
            )
        return task

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    async def add_comment(
        self,
        workspace_id: str,
        task: Task,
        content: str,
        author_id: str,
        author_role: Role,
        tag: Optional[CommentTag] = None,
        comment_id: Optional[str] = None,
    ) -> Optional[Task]:
        """
        Prepend a comment and persist the whole task.

        Blank content is ignored: nothing is written and None is returned.
        """
        text = (content or "").strip()
        if not text:
            return None

        comment = TaskComment(
            id=comment_id or f"comment-{uuid.uuid4().hex}",
            author_id=author_id,
            author_role=author_role,
            content=text,
            tag=tag or CommentTag.NOTE,
            timestamp=isoformat_now(),
        )
        updated = dataclasses.replace(task, comments=[comment] + list(task.comments))
        await self._gateway.put(
            document_path(workspace_id, Collection.TASKS, task.id), updated.to_dict()
        )
        logger.info(f"Comment {comment.id} [{comment.tag.value}] added to task {task.id}")
        return updated

    # -------------------------------------------------------------------------
    # Archival
    # -------------------------------------------------------------------------

    async def set_archived(self, workspace_id: str, task: Task, archived: bool = True) -> Task:
        """Flip the archived flag. Archived tasks drop out of the active board."""
        await self._gateway.update(
            document_path(workspace_id, Collection.TASKS, task.id), {"archived": archived}
        )
        logger.info(f"Task {task.id} archived={archived}")
        return dataclasses.replace(task, archived=archived)

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    async def transition_task(
        self,
        workspace_id: str,
        task_id: str,
        target: TaskStatus,
        evidence: Optional[TransitionEvidence] = None,
        members: Iterable[TeamMember] = (),
        expected_version: Optional[int] = None,
    ) -> Tuple[bool, str, Task]:
        """Load the stored task and pass it through the gate."""
        task = await self.get_task(workspace_id, task_id)
        return await self.gate.transition(
            workspace_id,
            task,
            target,
            evidence=evidence,
            members=members,
            expected_version=expected_version,
        )
