"""
Workspace Directory Operations

Thin create/list operations for projects, members, milestones and clients,
each followed by an activity entry. Adding a project can also materialize an
AI task breakdown into Backlog tasks and milestones.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .activity import ADMIN_AUTHOR, SYSTEM_AUTHOR, ActivityRecorder
from .briefs import normalize_breakdown
from .models import (
    ActivitySource,
    Client,
    Milestone,
    Project,
    Task,
    TeamMember,
    Timeline,
    Urgency,
    utc_now,
)
from .stage_graph import INITIAL_STATUS
from .store import Collection, EntityStoreGateway, collection_path, document_path

logger = logging.getLogger("workspace_directory")


# -----------------------------------------------------------------------------
# Breakdown Materialization
# -----------------------------------------------------------------------------
def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def breakdown_tasks(project_id: str, breakdown: Dict[str, Any], now: datetime) -> List[Task]:
    """
    Backlog tasks for every task in every feature of a breakdown.

    startDay is 1-based: day 1 starts now. The task ends endDay days from now.
    """
    tasks = []
    for feature in breakdown.get("features", []):
        feature_name = feature.get("featureName")
        for item in feature.get("tasks", []):
            start_day = _as_int(item.get("startDay"), 1)
            end_day = _as_int(item.get("endDay"), start_day)
            tasks.append(Task(
                id=f"t-ai-{uuid.uuid4().hex}",
                project_id=project_id,
                name=item.get("name", ""),
                description=item.get("description", ""),
                assignee_id=item.get("assigneeId", ""),
                status=INITIAL_STATUS,
                acceptance_criteria=list(item.get("acceptanceCriteria") or []),
                timeline=Timeline(
                    start=(now + timedelta(days=start_day - 1)).isoformat(),
                    end=(now + timedelta(days=end_day)).isoformat(),
                ),
                feature_origin=feature_name,
            ))
    return tasks


def breakdown_milestones(
    project: Project,
    breakdown: Dict[str, Any],
    members: Iterable[TeamMember],
    now: datetime,
) -> List[Milestone]:
    """
    Milestones from a breakdown. Owner is the member named as project lead,
    else the first member.
    """
    members = list(members)
    owner_id = next((m.id for m in members if m.name == project.lead), None)
    if owner_id is None:
        owner_id = members[0].id if members else ""

    milestones = []
    for item in breakdown.get("milestones", []):
        try:
            urgency = Urgency(item.get("urgency"))
        except ValueError:
            urgency = Urgency.MEDIUM
        deadline = now + timedelta(days=_as_int(item.get("dayOffset"), 0))
        milestones.append(Milestone(
            id=f"ms-ai-{uuid.uuid4().hex}",
            project_id=project.id,
            title=item.get("title", ""),
            description=item.get("description", ""),
            deadline=deadline.date().isoformat(),
            owner_id=owner_id,
            urgency=urgency,
        ))
    return milestones


# -----------------------------------------------------------------------------
# Directory Service
# -----------------------------------------------------------------------------
class WorkspaceDirectoryService:
    """Create and list the supporting entities of a workspace."""

    def __init__(self, gateway: EntityStoreGateway, recorder: ActivityRecorder):
        self._gateway = gateway
        self._recorder = recorder

    async def _list(self, workspace_id: str, collection: Collection) -> List[Dict[str, Any]]:
        return await self._gateway.list_documents(collection_path(workspace_id, collection))

    async def _put(self, workspace_id: str, collection: Collection, doc_id: str, document: Dict[str, Any]) -> None:
        await self._gateway.put(document_path(workspace_id, collection, doc_id), document)

    # -------------------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------------------

    async def list_projects(self, workspace_id: str) -> List[Project]:
        return [Project.from_dict(d) for d in await self._list(workspace_id, Collection.PROJECTS)]

    async def add_project(
        self,
        workspace_id: str,
        project: Project,
        breakdown: Optional[Dict[str, Any]] = None,
        members: Iterable[TeamMember] = (),
        now: Optional[datetime] = None,
    ) -> Tuple[Project, List[Task], List[Milestone]]:
        """
        Persist a project and, when a breakdown is given, its generated tasks
        and milestones.

        The breakdown is normalized before anything is written; malformed
        features, tasks and milestones are dropped.
        """
        now = now or utc_now()
        if breakdown is not None:
            breakdown = normalize_breakdown(breakdown)
        if breakdown and breakdown.get("features") and project.features is None:
            project.features = breakdown["features"]

        await self._put(workspace_id, Collection.PROJECTS, project.id, project.to_dict())
        logger.info(f"Created project {project.id} ({project.name})")
        self._recorder.record(
            workspace_id,
            ActivitySource.PROJECT,
            project.lead or SYSTEM_AUTHOR,
            f"New mission initiated: {project.name}",
        )

        tasks: List[Task] = []
        milestones: List[Milestone] = []
        if breakdown:
            tasks = breakdown_tasks(project.id, breakdown, now)
            for task in tasks:
                await self._put(workspace_id, Collection.TASKS, task.id, task.to_dict())
            milestones = breakdown_milestones(project, breakdown, members, now)
            for milestone in milestones:
                await self._put(workspace_id, Collection.MILESTONES, milestone.id, milestone.to_dict())
            logger.info(
                f"Materialized {len(tasks)} tasks and {len(milestones)} milestones for project {project.id}"
            )

        return project, tasks, milestones

    # -------------------------------------------------------------------------
    # Members
    # -------------------------------------------------------------------------

    async def list_members(self, workspace_id: str) -> List[TeamMember]:
        return [TeamMember.from_dict(d) for d in await self._list(workspace_id, Collection.MEMBERS)]

    async def add_member(self, workspace_id: str, member: TeamMember) -> TeamMember:
        await self._put(workspace_id, Collection.MEMBERS, member.id, member.to_dict())
        self._recorder.record(
            workspace_id, ActivitySource.PERSONNEL, ADMIN_AUTHOR, f"Operator {member.name} integrated"
        )
        return member

    # -------------------------------------------------------------------------
    # Milestones
    # -------------------------------------------------------------------------

    async def list_milestones(self, workspace_id: str) -> List[Milestone]:
        return [Milestone.from_dict(d) for d in await self._list(workspace_id, Collection.MILESTONES)]

    async def add_milestone(self, workspace_id: str, milestone: Milestone) -> Milestone:
        await self._put(workspace_id, Collection.MILESTONES, milestone.id, milestone.to_dict())
        self._recorder.record(
            workspace_id, ActivitySource.SCHEDULE, SYSTEM_AUTHOR, f"Critical marker placed: {milestone.title}"
        )
        return milestone

    # -------------------------------------------------------------------------
    # Clients
    # -------------------------------------------------------------------------

    async def list_clients(self, workspace_id: str) -> List[Client]:
        return [Client.from_dict(d) for d in await self._list(workspace_id, Collection.CLIENTS)]

    async def add_client(self, workspace_id: str, client: Client) -> Client:
        await self._put(workspace_id, Collection.CLIENTS, client.id, client.to_dict())
        self._recorder.record(
            workspace_id, ActivitySource.CLIENT, SYSTEM_AUTHOR, f"New corporate entity catalogued: {client.name}"
        )
        return client
