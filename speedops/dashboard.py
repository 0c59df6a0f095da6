"""
Dashboard Summary

READ-ONLY aggregation over a workspace's collections:
- Active projects (status other than Completed)
- Active error markers (native active entries plus comment-derived ones)
- Client count
- Completed task count
- Upcoming milestones (deadline today or later, soonest first)
- Recent activity (newest first)

No writes, no side effects. Same inputs give the same summary.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from .activity import ActivityRecorder
from .config import ACTIVITY_FEED_LIMIT
from .ingestion import unified_error_queue
from .models import (
    ActivityLog,
    Client,
    ErrorLog,
    ErrorStatus,
    Milestone,
    Project,
    ProjectStatus,
    Task,
    TaskStatus,
    utc_now,
)
from .store import Collection, EntityStoreGateway, collection_path

logger = logging.getLogger("dashboard")

UPCOMING_MILESTONE_LIMIT = 5


@dataclass
class DashboardSummary:
    """Read-only view of a workspace at a point in time."""
    active_projects: List[Project] = field(default_factory=list)
    active_error_count: int = 0
    client_count: int = 0
    completed_task_count: int = 0
    upcoming_milestones: List[Milestone] = field(default_factory=list)
    recent_activity: List[ActivityLog] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stats": {
                "activeDeployments": len(self.active_projects),
                "threatMarkers": self.active_error_count,
                "corporatePartners": self.client_count,
                "unitsCompleted": self.completed_task_count,
            },
            "activeProjects": [p.to_dict() for p in self.active_projects],
            "upcomingMilestones": [m.to_dict() for m in self.upcoming_milestones],
            "recentActivity": [a.to_dict() for a in self.recent_activity],
        }


def _parse_deadline(value: str) -> Optional[date]:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        return None


def build_dashboard_summary(
    projects: Iterable[Project],
    tasks: Iterable[Task],
    errors: Iterable[ErrorLog],
    clients: Iterable[Client],
    milestones: Iterable[Milestone],
    activity: Iterable[ActivityLog],
    today: Optional[date] = None,
) -> DashboardSummary:
    today = today or utc_now().date()
    tasks = list(tasks)

    upcoming = []
    for milestone in milestones:
        deadline = _parse_deadline(milestone.deadline)
        if deadline is None:
            logger.warning(f"Milestone {milestone.id} has unparsable deadline: {milestone.deadline!r}")
            continue
        if deadline >= today and not milestone.archived:
            upcoming.append((deadline, milestone))
    upcoming.sort(key=lambda pair: pair[0])

    return DashboardSummary(
        active_projects=[p for p in projects if p.status != ProjectStatus.COMPLETED],
        active_error_count=len(unified_error_queue(errors, tasks, status=ErrorStatus.ACTIVE)),
        client_count=len(list(clients)),
        completed_task_count=sum(1 for t in tasks if t.status == TaskStatus.COMPLETED),
        upcoming_milestones=[m for _, m in upcoming[:UPCOMING_MILESTONE_LIMIT]],
        recent_activity=sorted(activity, key=lambda a: a.created_at, reverse=True),
    )


class DashboardBackend:
    """Loads a workspace from the store and builds its summary."""

    def __init__(self, gateway: EntityStoreGateway, recorder: ActivityRecorder):
        self._gateway = gateway
        self._recorder = recorder

    async def _docs(self, workspace_id: str, collection: Collection) -> List[Dict[str, Any]]:
        return await self._gateway.list_documents(collection_path(workspace_id, collection))

    async def get_summary(
        self,
        workspace_id: str,
        today: Optional[date] = None,
        activity_limit: int = ACTIVITY_FEED_LIMIT,
    ) -> DashboardSummary:
        return build_dashboard_summary(
            projects=[Project.from_dict(d) for d in await self._docs(workspace_id, Collection.PROJECTS)],
            tasks=[Task.from_dict(d) for d in await self._docs(workspace_id, Collection.TASKS)],
            errors=[ErrorLog.from_dict(d) for d in await self._docs(workspace_id, Collection.ERRORS)],
            clients=[Client.from_dict(d) for d in await self._docs(workspace_id, Collection.CLIENTS)],
            milestones=[Milestone.from_dict(d) for d in await self._docs(workspace_id, Collection.MILESTONES)],
            activity=await self._recorder.recent(workspace_id, limit=activity_limit),
            today=today,
        )
