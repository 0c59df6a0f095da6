"""
SpeedOps Controller - FastAPI Application

HTTP surface over the workspace services:
- Workspaces: create, join by invite code
- Tasks: create, list (board filters), gated transition, comment, archive
- Error queue: unified list (native + comment-derived), file, resolve, delete
- Directory: projects (with optional AI breakdown), members, milestones, clients
- Activity feed and dashboard summary
- Generative briefs and task breakdowns

Any authenticated member of a workspace may mutate anything in it; the
identity provider sits in front of this service.
"""

import logging
import uuid
from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from . import __version__
from .briefs import ProjectDetails
from .errors import (
    DocumentNotFoundError,
    GatewayTimeoutError,
    SpeedOpsError,
    StaleWriteError,
    StoreUnavailableError,
    SyntheticEntryError,
    WorkspaceNotFoundError,
)
from .ingestion import entry_to_dict
from .models import (
    Client,
    CommentTag,
    ErrorSeverity,
    ErrorStatus,
    Milestone,
    Project,
    ProjectStage,
    ProjectStatus,
    Role,
    TaskStatus,
    TeamAssignment,
    TeamMember,
    TeamMemberStatus,
    Timeline,
    Urgency,
    isoformat_now,
)
from .services import Services, get_services
from .stage_graph import transition_targets
from .tasks import TaskView
from .transition_gate import TransitionEvidence

# -----------------------------------------------------------------------------
# Logging Configuration
# -----------------------------------------------------------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("speedops_controller")


# -----------------------------------------------------------------------------
# Request Models
# -----------------------------------------------------------------------------
class WorkspaceCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    owner_id: str = Field(..., min_length=1)


class WorkspaceJoinRequest(BaseModel):
    invite_code: str
    user_id: str = Field(..., min_length=1)


class TaskCreateRequest(BaseModel):
    project_id: str
    name: str = Field(..., min_length=1)
    description: str = ""
    assignee_id: str = ""
    acceptance_criteria: List[str] = Field(default_factory=list)
    start: str = ""
    end: str = ""
    feature_origin: Optional[str] = None
    id: Optional[str] = None


class TransitionRequest(BaseModel):
    target_status: TaskStatus
    proof_link: str = ""
    note: Optional[str] = None
    next_assignee: Optional[str] = None
    expected_version: Optional[int] = None


class CommentRequest(BaseModel):
    content: str
    author_id: str
    author_role: Role = Role.FRONTEND
    tag: Optional[CommentTag] = None


class ArchiveRequest(BaseModel):
    archived: bool = True


class ErrorCreateRequest(BaseModel):
    project_id: str
    title: str = Field(..., min_length=1)
    description: str = ""
    author_id: str
    assigned_to_id: Optional[str] = None
    severity: ErrorSeverity = ErrorSeverity.MEDIUM


class ErrorResolveRequest(BaseModel):
    resolved_by: str = Field(..., min_length=1)
    commit_link: Optional[str] = None


class TeamAssignmentModel(BaseModel):
    member_id: str
    roles: List[Role] = Field(default_factory=list)
    responsibility: Optional[str] = None


class BreakdownTaskModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1)
    description: str = ""
    assignee_id: str = Field("", alias="assigneeId")
    acceptance_criteria: List[str] = Field(default_factory=list, alias="acceptanceCriteria")
    start_day: int = Field(1, alias="startDay")
    end_day: int = Field(1, alias="endDay")


class BreakdownFeatureModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    feature_name: str = Field(..., alias="featureName")
    tasks: List[BreakdownTaskModel] = Field(default_factory=list)


class BreakdownMilestoneModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1)
    description: str = ""
    day_offset: int = Field(0, alias="dayOffset")
    urgency: Urgency = Urgency.MEDIUM


class BreakdownModel(BaseModel):
    """Task breakdown in the generator's response shape."""
    features: List[BreakdownFeatureModel] = Field(default_factory=list)
    milestones: List[BreakdownMilestoneModel] = Field(default_factory=list)


class ProjectCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    client: str = ""
    client_id: Optional[str] = None
    lead: str = ""
    deal_owner: str = ""
    status: ProjectStatus = ProjectStatus.PLANNING
    stage: ProjectStage = ProjectStage.DEV
    progress: int = Field(0, ge=0, le=100)
    description: str = ""
    objectives: List[str] = Field(default_factory=list)
    team_assignments: List[TeamAssignmentModel] = Field(default_factory=list)
    brief: Optional[str] = None
    timeline: Optional[str] = None
    resources: Optional[str] = None
    breakdown: Optional[BreakdownModel] = None
    id: Optional[str] = None


class MemberCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    roles: List[Role] = Field(default_factory=list)
    status: TeamMemberStatus = TeamMemberStatus.ACTIVE
    availability: str = "100%"
    timezone: str = "UTC"
    strength: int = Field(50, ge=0, le=100)
    specialties: List[str] = Field(default_factory=list)
    bio: Optional[str] = None
    id: Optional[str] = None


class MilestoneCreateRequest(BaseModel):
    project_id: str
    title: str = Field(..., min_length=1)
    description: str = ""
    deadline: date
    owner_id: str = ""
    urgency: Urgency = Urgency.MEDIUM


class ClientCreateRequest(BaseModel):
    name: str = Field(..., min_length=1)
    industry: str = ""
    contact_person: str = ""
    email: str = ""
    phone: Optional[str] = None
    status: str = "Active"
    description: Optional[str] = None
    total_budget: Optional[str] = None


class BriefRequest(BaseModel):
    workspace_id: str
    name: str
    client: str = ""
    purpose: str = ""
    features: str = ""


class BreakdownRequest(BaseModel):
    workspace_id: str
    brief: str


# -----------------------------------------------------------------------------
# FastAPI Application
# -----------------------------------------------------------------------------
app = FastAPI(
    title="SpeedOps Controller",
    description="Operations dashboard backend: task lifecycle, error queue, activity feed",
    version=__version__,
)


@app.exception_handler(SpeedOpsError)
async def speedops_error_handler(request: Request, exc: SpeedOpsError) -> JSONResponse:
    """Map domain and store errors to HTTP status codes."""
    if isinstance(exc, (DocumentNotFoundError, WorkspaceNotFoundError)):
        status_code = 404
    elif isinstance(exc, (StaleWriteError, SyntheticEntryError)):
        status_code = 409
    elif isinstance(exc, GatewayTimeoutError):
        status_code = 504
    elif isinstance(exc, StoreUnavailableError):
        status_code = 503
    else:
        status_code = 500
    logger.warning(f"{request.method} {request.url.path} failed ({status_code}): {exc}")
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# -----------------------------------------------------------------------------
# API Endpoints - Health
# -----------------------------------------------------------------------------
@app.get("/")
async def root():
    return {
        "service": "SpeedOps Controller",
        "status": "running",
        "version": __version__,
    }


@app.get("/health")
async def health_check(services: Services = Depends(get_services)):
    return {
        "status": "healthy",
        "timestamp": isoformat_now(),
        "version": __version__,
        "components": {
            "store_backend": services.settings.store_backend,
            "brief_generator": "configured" if services.briefs.api_key else "placeholder_only",
            "pending_activity_writes": services.recorder.pending_count,
        },
        "handover_policy": "strict" if services.gate.policy.require_proof else "lenient",
    }


# -----------------------------------------------------------------------------
# API Endpoints - Workspaces
# -----------------------------------------------------------------------------
@app.post("/workspaces", status_code=201)
async def create_workspace(request: WorkspaceCreateRequest, services: Services = Depends(get_services)):
    workspace = await services.workspaces.create_workspace(request.name, request.owner_id)
    return workspace.to_dict()


@app.post("/workspaces/join")
async def join_workspace(request: WorkspaceJoinRequest, services: Services = Depends(get_services)):
    workspace = await services.workspaces.join_workspace(request.invite_code, request.user_id)
    return workspace.to_dict()


@app.get("/workspaces/{workspace_id}")
async def get_workspace(workspace_id: str, services: Services = Depends(get_services)):
    workspace = await services.workspaces.get_workspace(workspace_id)
    return workspace.to_dict()


# -----------------------------------------------------------------------------
# API Endpoints - Tasks
# -----------------------------------------------------------------------------
@app.get("/workspaces/{workspace_id}/tasks")
async def list_tasks(
    workspace_id: str,
    view: TaskView = TaskView.ACTIVE,
    project_id: Optional[str] = None,
    services: Services = Depends(get_services),
):
    tasks = await services.tasks.list_tasks(workspace_id, view=view, project_id=project_id)
    return {"tasks": [t.to_dict() for t in tasks], "count": len(tasks)}


@app.post("/workspaces/{workspace_id}/tasks", status_code=201)
async def create_task(workspace_id: str, request: TaskCreateRequest, services: Services = Depends(get_services)):
    members = await services.directory.list_members(workspace_id)
    task = await services.tasks.create_task(
        workspace_id,
        project_id=request.project_id,
        name=request.name,
        description=request.description,
        assignee_id=request.assignee_id,
        acceptance_criteria=request.acceptance_criteria,
        timeline=Timeline(start=request.start, end=request.end),
        feature_origin=request.feature_origin,
        members=members,
        task_id=request.id,
    )
    return task.to_dict()


@app.get("/workspaces/{workspace_id}/tasks/{task_id}")
async def get_task(workspace_id: str, task_id: str, services: Services = Depends(get_services)):
    task = await services.tasks.get_task(workspace_id, task_id)
    version = await services.tasks.get_task_version(workspace_id, task_id)
    return {
        "task": task.to_dict(),
        "version": version,
        "transitionTargets": [s.value for s in transition_targets(task.status)],
    }


@app.post("/workspaces/{workspace_id}/tasks/{task_id}/transition")
async def transition_task(
    workspace_id: str,
    task_id: str,
    request: TransitionRequest,
    services: Services = Depends(get_services),
):
    """
    Move a task to a new stage with proof of work.

    A request for the current stage returns applied=false and writes nothing.
    The response carries the stored version for the next expected_version.
    """
    members = await services.directory.list_members(workspace_id)
    applied, message, task = await services.tasks.transition_task(
        workspace_id,
        task_id,
        request.target_status,
        evidence=TransitionEvidence(
            proof_link=request.proof_link,
            note=request.note,
            next_assignee=request.next_assignee,
        ),
        members=members,
        expected_version=request.expected_version,
    )
    version = await services.tasks.get_task_version(workspace_id, task_id)
    return {"applied": applied, "message": message, "task": task.to_dict(), "version": version}


@app.post("/workspaces/{workspace_id}/tasks/{task_id}/comments")
async def add_comment(
    workspace_id: str,
    task_id: str,
    request: CommentRequest,
    services: Services = Depends(get_services),
):
    task = await services.tasks.get_task(workspace_id, task_id)
    updated = await services.tasks.add_comment(
        workspace_id,
        task,
        request.content,
        author_id=request.author_id,
        author_role=request.author_role,
        tag=request.tag,
    )
    if updated is None:
        return {"added": False, "task": task.to_dict()}
    return {"added": True, "task": updated.to_dict()}


@app.post("/workspaces/{workspace_id}/tasks/{task_id}/archive")
async def archive_task(
    workspace_id: str,
    task_id: str,
    request: ArchiveRequest,
    services: Services = Depends(get_services),
):
    task = await services.tasks.get_task(workspace_id, task_id)
    updated = await services.tasks.set_archived(workspace_id, task, archived=request.archived)
    return updated.to_dict()


# -----------------------------------------------------------------------------
# API Endpoints - Error Queue
# -----------------------------------------------------------------------------
@app.get("/workspaces/{workspace_id}/errors")
async def list_errors(
    workspace_id: str,
    status: Optional[ErrorStatus] = None,
    project_id: Optional[str] = None,
    services: Services = Depends(get_services),
):
    entries = await services.errors.list_entries(workspace_id, status=status, project_id=project_id)
    return {"errors": [entry_to_dict(e) for e in entries], "count": len(entries)}


@app.post("/workspaces/{workspace_id}/errors", status_code=201)
async def file_error(workspace_id: str, request: ErrorCreateRequest, services: Services = Depends(get_services)):
    members = await services.directory.list_members(workspace_id)
    log = await services.errors.file_error(
        workspace_id,
        project_id=request.project_id,
        title=request.title,
        description=request.description,
        author_id=request.author_id,
        assigned_to_id=request.assigned_to_id,
        severity=request.severity,
        members=members,
    )
    return log.to_dict()


@app.post("/workspaces/{workspace_id}/errors/{entry_id}/resolve")
async def resolve_error(
    workspace_id: str,
    entry_id: str,
    request: ErrorResolveRequest,
    services: Services = Depends(get_services),
):
    members = await services.directory.list_members(workspace_id)
    log = await services.errors.resolve(
        workspace_id,
        entry_id,
        resolved_by=request.resolved_by,
        commit_link=request.commit_link,
        members=members,
    )
    return log.to_dict()


@app.delete("/workspaces/{workspace_id}/errors/{entry_id}")
async def delete_error(workspace_id: str, entry_id: str, services: Services = Depends(get_services)):
    await services.errors.delete(workspace_id, entry_id)
    return {"deleted": entry_id}


# -----------------------------------------------------------------------------
# API Endpoints - Activity & Dashboard
# -----------------------------------------------------------------------------
@app.get("/workspaces/{workspace_id}/activity")
async def list_activity(workspace_id: str, services: Services = Depends(get_services)):
    entries = await services.recorder.recent(workspace_id, limit=services.settings.activity_limit)
    return {"activity": [e.to_dict() for e in entries], "count": len(entries)}


@app.get("/workspaces/{workspace_id}/dashboard")
async def get_dashboard(workspace_id: str, services: Services = Depends(get_services)):
    summary = await services.dashboard.get_summary(
        workspace_id, activity_limit=services.settings.activity_limit
    )
    return summary.to_dict()


# -----------------------------------------------------------------------------
# API Endpoints - Directory
# -----------------------------------------------------------------------------
@app.get("/workspaces/{workspace_id}/projects")
async def list_projects(workspace_id: str, services: Services = Depends(get_services)):
    projects = await services.directory.list_projects(workspace_id)
    return {"projects": [p.to_dict() for p in projects], "count": len(projects)}


@app.post("/workspaces/{workspace_id}/projects", status_code=201)
async def create_project(workspace_id: str, request: ProjectCreateRequest, services: Services = Depends(get_services)):
    project = Project(
        id=request.id or f"p-{uuid.uuid4().hex[:12]}",
        name=request.name,
        client=request.client,
        client_id=request.client_id,
        lead=request.lead,
        deal_owner=request.deal_owner,
        status=request.status,
        stage=request.stage,
        progress=request.progress,
        description=request.description,
        objectives=request.objectives,
        team_assignments=[
            TeamAssignment(member_id=a.member_id, roles=a.roles, responsibility=a.responsibility)
            for a in request.team_assignments
        ],
        brief=request.brief,
        timeline=request.timeline,
        resources=request.resources,
    )
    members = await services.directory.list_members(workspace_id)
    breakdown = request.breakdown.model_dump(by_alias=True, mode="json") if request.breakdown else None
    project, tasks, milestones = await services.directory.add_project(
        workspace_id,
        project,
        breakdown=breakdown,
        members=members,
    )
    return {
        "project": project.to_dict(),
        "tasks": [t.to_dict() for t in tasks],
        "milestones": [m.to_dict() for m in milestones],
    }


@app.get("/workspaces/{workspace_id}/members")
async def list_members(workspace_id: str, services: Services = Depends(get_services)):
    members = await services.directory.list_members(workspace_id)
    return {"members": [m.to_dict() for m in members], "count": len(members)}


@app.post("/workspaces/{workspace_id}/members", status_code=201)
async def create_member(workspace_id: str, request: MemberCreateRequest, services: Services = Depends(get_services)):
    member = TeamMember(
        id=request.id or f"m-{uuid.uuid4().hex[:12]}",
        name=request.name,
        roles=request.roles,
        status=request.status,
        availability=request.availability,
        timezone=request.timezone,
        strength=request.strength,
        specialties=request.specialties,
        bio=request.bio,
        join_date=date.today().isoformat(),
    )
    await services.directory.add_member(workspace_id, member)
    return member.to_dict()


@app.get("/workspaces/{workspace_id}/milestones")
async def list_milestones(workspace_id: str, services: Services = Depends(get_services)):
    milestones = await services.directory.list_milestones(workspace_id)
    return {"milestones": [m.to_dict() for m in milestones], "count": len(milestones)}


@app.post("/workspaces/{workspace_id}/milestones", status_code=201)
async def create_milestone(workspace_id: str, request: MilestoneCreateRequest, services: Services = Depends(get_services)):
    milestone = Milestone(
        id=f"ms-{uuid.uuid4().hex[:12]}",
        project_id=request.project_id,
        title=request.title,
        description=request.description,
        deadline=request.deadline.isoformat(),
        owner_id=request.owner_id,
        urgency=request.urgency,
    )
    await services.directory.add_milestone(workspace_id, milestone)
    return milestone.to_dict()


@app.get("/workspaces/{workspace_id}/clients")
async def list_clients(workspace_id: str, services: Services = Depends(get_services)):
    clients = await services.directory.list_clients(workspace_id)
    return {"clients": [c.to_dict() for c in clients], "count": len(clients)}


@app.post("/workspaces/{workspace_id}/clients", status_code=201)
async def create_client(workspace_id: str, request: ClientCreateRequest, services: Services = Depends(get_services)):
    if request.status not in ("Active", "Past"):
        raise HTTPException(status_code=422, detail="Client status must be 'Active' or 'Past'")
    client = Client(
        id=f"c-{uuid.uuid4().hex[:12]}",
        name=request.name,
        industry=request.industry,
        contact_person=request.contact_person,
        email=request.email,
        phone=request.phone,
        status=request.status,
        join_date=date.today().isoformat(),
        description=request.description,
        total_budget=request.total_budget,
    )
    await services.directory.add_client(workspace_id, client)
    return client.to_dict()


# -----------------------------------------------------------------------------
# API Endpoints - Generative Briefs
# -----------------------------------------------------------------------------
@app.post("/briefs")
async def generate_brief(request: BriefRequest, services: Services = Depends(get_services)):
    team = await services.directory.list_members(request.workspace_id)
    brief = await services.briefs.generate_project_brief(
        ProjectDetails(
            name=request.name,
            client=request.client,
            purpose=request.purpose,
            features=request.features,
        ),
        team,
    )
    return {"brief": brief}


@app.post("/briefs/breakdown")
async def generate_breakdown(request: BreakdownRequest, services: Services = Depends(get_services)):
    team = await services.directory.list_members(request.workspace_id)
    return await services.briefs.generate_task_breakdown(request.brief, team)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
