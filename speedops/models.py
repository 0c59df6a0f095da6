"""
SpeedOps Data Model

Entities persisted to the workspace document store. Every entity serializes
to the store's camelCase wire format with to_dict() and back with
from_dict(). Optional fields serialize as None and are stripped by the
sanitizer before a write.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def isoformat_now() -> str:
    return utc_now().isoformat()


# -----------------------------------------------------------------------------
# Enums
# -----------------------------------------------------------------------------
class TaskStatus(str, Enum):
    """Task pipeline positions. Declaration order is pipeline order."""
    BACKLOG = "Backlog"
    IN_PROGRESS = "In Progress"
    TESTING = "Testing"
    QA = "QA"
    REVIEW = "Review"
    COMPLETED = "Completed"


class CommentTag(str, Enum):
    """Closed set of tags a task comment may carry."""
    ERROR = "Error"
    BUG = "Bug"
    INCOMPLETE = "Incomplete"
    UI_UX = "UI/UX"
    IMPROVEMENT = "Improvement"
    NOTE = "Note"

    @classmethod
    def error_tags(cls) -> frozenset:
        """Tags that surface a comment in the error queue."""
        return frozenset({cls.ERROR, cls.BUG})


class ErrorSeverity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


class ErrorStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


class Role(str, Enum):
    FRONTEND = "Frontend"
    BACKEND = "Backend"
    TESTER = "Tester"
    QA = "QA"
    PROJECT_MANAGER = "Project Manager"
    DESIGNER = "Designer"
    DEVOPS = "DevOps"


class ProjectStatus(str, Enum):
    PLANNING = "Planning"
    ACTIVE = "Active"
    ON_HOLD = "On Hold"
    COMPLETED = "Completed"


class ProjectStage(str, Enum):
    DEV = "Dev"
    TEST = "Test"
    QA = "QA"
    REVIEW = "Review"
    CLIENT = "Client"


class TeamMemberStatus(str, Enum):
    ACTIVE = "Active"
    IDLE = "Idle"
    BLOCKED = "Blocked"


class ActivitySource(str, Enum):
    """Vocabulary for the source field of activity entries."""
    PROJECT = "PROJECT"
    TASK = "TASK"
    PERSONNEL = "PERSONNEL"
    SCHEDULE = "SCHEDULE"
    CLIENT = "CLIENT"
    ERROR = "ERROR"


class Urgency(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


# -----------------------------------------------------------------------------
# Task and its parts
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class TaskProof:
    """
    Immutable evidence for one completed transition.

    `stage` is the status the task left, not the one it entered.
    """
    stage: TaskStatus
    link: str
    timestamp: str
    note: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "link": self.link,
            "timestamp": self.timestamp,
            "note": self.note,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskProof":
        return cls(
            stage=TaskStatus(data["stage"]),
            link=data.get("link", "N/A"),
            timestamp=data.get("timestamp", ""),
            note=data.get("note"),
        )


@dataclass(frozen=True)
class TaskComment:
    id: str
    author_id: str
    author_role: Role
    content: str
    tag: CommentTag
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "authorId": self.author_id,
            "authorRole": self.author_role.value,
            "content": self.content,
            "tag": self.tag.value,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TaskComment":
        return cls(
            id=data["id"],
            author_id=data.get("authorId", ""),
            author_role=Role(data.get("authorRole", Role.FRONTEND.value)),
            content=data.get("content", ""),
            tag=CommentTag(data.get("tag", CommentTag.NOTE.value)),
            timestamp=data.get("timestamp", ""),
        )


@dataclass(frozen=True)
class Timeline:
    """Informational start/end window for a task."""
    start: str
    end: str

    def to_dict(self) -> Dict[str, str]:
        return {"start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "Timeline":
        data = data or {}
        return cls(start=data.get("start", ""), end=data.get("end", ""))


@dataclass
class Task:
    """
    A unit of trackable work.

    Mutated only through comment appends and gated transitions; archival is a
    separate flag flip. Never hard-deleted by the workflow.
    """
    id: str
    project_id: str
    name: str
    description: str
    assignee_id: str
    status: TaskStatus = TaskStatus.BACKLOG
    acceptance_criteria: List[str] = field(default_factory=list)
    proofs: List[TaskProof] = field(default_factory=list)
    comments: List[TaskComment] = field(default_factory=list)
    timeline: Timeline = field(default_factory=lambda: Timeline(start="", end=""))
    tester_ids: List[str] = field(default_factory=list)
    qa_ids: List[str] = field(default_factory=list)
    time_in_stage: str = "0h"
    feature_origin: Optional[str] = None
    archived: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "name": self.name,
            "description": self.description,
            "assigneeId": self.assignee_id,
            "testerIds": list(self.tester_ids),
            "qaIds": list(self.qa_ids),
            "status": self.status.value,
            "acceptanceCriteria": list(self.acceptance_criteria),
            "timeInStage": self.time_in_stage,
            "featureOrigin": self.feature_origin,
            "proofs": [p.to_dict() for p in self.proofs],
            "comments": [c.to_dict() for c in self.comments],
            "timeline": self.timeline.to_dict(),
            "archived": self.archived,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=data["id"],
            project_id=data.get("projectId", ""),
            name=data.get("name", ""),
            description=data.get("description", ""),
            assignee_id=data.get("assigneeId", ""),
            status=TaskStatus(data.get("status", TaskStatus.BACKLOG.value)),
            acceptance_criteria=list(data.get("acceptanceCriteria", [])),
            proofs=[TaskProof.from_dict(p) for p in data.get("proofs", [])],
            comments=[TaskComment.from_dict(c) for c in data.get("comments", [])],
            timeline=Timeline.from_dict(data.get("timeline")),
            tester_ids=list(data.get("testerIds", [])),
            qa_ids=list(data.get("qaIds", [])),
            time_in_stage=data.get("timeInStage", "0h"),
            feature_origin=data.get("featureOrigin"),
            archived=bool(data.get("archived", False)),
        )


# -----------------------------------------------------------------------------
# Error Log (native entries)
# -----------------------------------------------------------------------------
@dataclass
class ErrorLog:
    id: str
    project_id: str
    title: str
    description: str
    author_id: str
    severity: ErrorSeverity = ErrorSeverity.MEDIUM
    status: ErrorStatus = ErrorStatus.ACTIVE
    timestamp: str = ""
    assigned_to_id: Optional[str] = None
    resolved_by: Optional[str] = None
    commit_link: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "authorId": self.author_id,
            "assignedToId": self.assigned_to_id,
            "severity": self.severity.value,
            "status": self.status.value,
            "timestamp": self.timestamp,
            "resolvedBy": self.resolved_by,
            "commitLink": self.commit_link,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorLog":
        return cls(
            id=data["id"],
            project_id=data.get("projectId", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            author_id=data.get("authorId", ""),
            severity=ErrorSeverity(data.get("severity", ErrorSeverity.MEDIUM.value)),
            status=ErrorStatus(data.get("status", ErrorStatus.ACTIVE.value)),
            timestamp=data.get("timestamp", ""),
            assigned_to_id=data.get("assignedToId"),
            resolved_by=data.get("resolvedBy"),
            commit_link=data.get("commitLink"),
        )


# -----------------------------------------------------------------------------
# Activity
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class ActivityLog:
    source: ActivitySource
    author: str
    content: str
    timestamp: str  # HH:MM display time
    created_at: str  # ISO instant, used for ordering
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "source": self.source.value,
            "author": self.author,
            "content": self.content,
            "timestamp": self.timestamp,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ActivityLog":
        return cls(
            id=data.get("id"),
            source=ActivitySource(data["source"]),
            author=data.get("author", ""),
            content=data.get("content", ""),
            timestamp=data.get("timestamp", ""),
            created_at=data.get("createdAt", ""),
        )


# -----------------------------------------------------------------------------
# Workspace Directory Entities
# -----------------------------------------------------------------------------
@dataclass
class TeamMember:
    id: str
    name: str
    roles: List[Role] = field(default_factory=list)
    status: TeamMemberStatus = TeamMemberStatus.ACTIVE
    availability: str = "100%"
    timezone: str = "UTC"
    strength: int = 50  # 0-100
    specialties: List[str] = field(default_factory=list)
    join_date: str = ""
    current_task: Optional[str] = None
    bio: Optional[str] = None
    archived: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "roles": [r.value for r in self.roles],
            "status": self.status.value,
            "currentTask": self.current_task,
            "availability": self.availability,
            "timezone": self.timezone,
            "strength": self.strength,
            "specialties": list(self.specialties),
            "bio": self.bio,
            "joinDate": self.join_date,
            "archived": self.archived,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamMember":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            roles=[Role(r) for r in data.get("roles", [])],
            status=TeamMemberStatus(data.get("status", TeamMemberStatus.ACTIVE.value)),
            availability=data.get("availability", "100%"),
            timezone=data.get("timezone", "UTC"),
            strength=int(data.get("strength", 50)),
            specialties=list(data.get("specialties", [])),
            join_date=data.get("joinDate", ""),
            current_task=data.get("currentTask"),
            bio=data.get("bio"),
            archived=bool(data.get("archived", False)),
        )


@dataclass(frozen=True)
class TeamAssignment:
    member_id: str
    roles: List[Role]
    responsibility: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "memberId": self.member_id,
            "roles": [r.value for r in self.roles],
            "responsibility": self.responsibility,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TeamAssignment":
        return cls(
            member_id=data["memberId"],
            roles=[Role(r) for r in data.get("roles", [])],
            responsibility=data.get("responsibility"),
        )


@dataclass
class Project:
    id: str
    name: str
    client: str
    lead: str
    status: ProjectStatus = ProjectStatus.PLANNING
    stage: ProjectStage = ProjectStage.DEV
    progress: int = 0
    deal_owner: str = ""
    description: str = ""
    objectives: List[str] = field(default_factory=list)
    team_assignments: List[TeamAssignment] = field(default_factory=list)
    client_id: Optional[str] = None
    brief: Optional[str] = None
    timeline: Optional[str] = None
    resources: Optional[str] = None
    features: Optional[List[Dict[str, Any]]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "client": self.client,
            "clientId": self.client_id,
            "status": self.status.value,
            "stage": self.stage.value,
            "progress": self.progress,
            "lead": self.lead,
            "dealOwner": self.deal_owner,
            "description": self.description,
            "objectives": list(self.objectives),
            "teamAssignments": [a.to_dict() for a in self.team_assignments],
            "brief": self.brief,
            "timeline": self.timeline,
            "resources": self.resources,
            "features": self.features,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            client=data.get("client", ""),
            lead=data.get("lead", ""),
            status=ProjectStatus(data.get("status", ProjectStatus.PLANNING.value)),
            stage=ProjectStage(data.get("stage", ProjectStage.DEV.value)),
            progress=int(data.get("progress", 0)),
            deal_owner=data.get("dealOwner", ""),
            description=data.get("description", ""),
            objectives=list(data.get("objectives", [])),
            team_assignments=[TeamAssignment.from_dict(a) for a in data.get("teamAssignments", [])],
            client_id=data.get("clientId"),
            brief=data.get("brief"),
            timeline=data.get("timeline"),
            resources=data.get("resources"),
            features=data.get("features"),
        )


@dataclass
class Milestone:
    id: str
    project_id: str
    title: str
    description: str
    deadline: str  # YYYY-MM-DD
    owner_id: str
    urgency: Urgency = Urgency.MEDIUM
    archived: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "title": self.title,
            "description": self.description,
            "deadline": self.deadline,
            "ownerId": self.owner_id,
            "urgency": self.urgency.value,
            "archived": self.archived,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Milestone":
        return cls(
            id=data["id"],
            project_id=data.get("projectId", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            deadline=data.get("deadline", ""),
            owner_id=data.get("ownerId", ""),
            urgency=Urgency(data.get("urgency", Urgency.MEDIUM.value)),
            archived=bool(data.get("archived", False)),
        )


@dataclass
class Client:
    id: str
    name: str
    industry: str
    contact_person: str
    email: str
    status: str = "Active"  # "Active" or "Past"
    join_date: str = ""
    phone: Optional[str] = None
    description: Optional[str] = None
    total_budget: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "industry": self.industry,
            "contactPerson": self.contact_person,
            "email": self.email,
            "phone": self.phone,
            "status": self.status,
            "joinDate": self.join_date,
            "description": self.description,
            "totalBudget": self.total_budget,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Client":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            industry=data.get("industry", ""),
            contact_person=data.get("contactPerson", ""),
            email=data.get("email", ""),
            status=data.get("status", "Active"),
            join_date=data.get("joinDate", ""),
            phone=data.get("phone"),
            description=data.get("description"),
            total_budget=data.get("totalBudget"),
        )


@dataclass
class Workspace:
    """Tenant boundary. Every other entity lives under one workspace."""
    id: str
    name: str
    owner_id: str
    invite_code: str
    members: List[str] = field(default_factory=list)
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "ownerId": self.owner_id,
            "members": list(self.members),
            "inviteCode": self.invite_code,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workspace":
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            owner_id=data.get("ownerId", ""),
            invite_code=data.get("inviteCode", ""),
            members=list(data.get("members", [])),
            created_at=data.get("createdAt", ""),
        )
