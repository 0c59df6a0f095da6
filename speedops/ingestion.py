"""
Error Ingestion Bridge

Presents one error queue built from two sources:

- Native entries: ErrorLog documents filed explicitly and stored in the
  errors collection.
- Synthetic entries: derived on every read from task comments tagged Error
  or Bug. They are never stored. The id of a synthetic entry is
  "ingested-<comment id>", so deriving again from the same comments always
  gives the same ids.

Synthetic entries are display-only: they are always "active", always Medium
severity, and cannot be resolved or deleted. Only native entries go through
the resolution workflow (resolver + commit link).
"""

import dataclasses
import logging
import uuid
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, Optional, Tuple, Union

from .activity import ActivityRecorder, resolve_author
from .errors import DocumentNotFoundError, SyntheticEntryError
from .models import (
    ActivitySource,
    CommentTag,
    ErrorLog,
    ErrorSeverity,
    ErrorStatus,
    Task,
    TaskComment,
    TeamMember,
    isoformat_now,
)
from .store import Collection, EntityStoreGateway, collection_path, document_path

logger = logging.getLogger("error_ingestion")

SYNTHETIC_ID_PREFIX = "ingested-"
SYNTHETIC_SEVERITY = ErrorSeverity.MEDIUM
SYNTHETIC_STATUS = ErrorStatus.ACTIVE


def synthetic_id(comment_id: str) -> str:
    return f"{SYNTHETIC_ID_PREFIX}{comment_id}"


def is_synthetic_id(entry_id: str) -> bool:
    return entry_id.startswith(SYNTHETIC_ID_PREFIX)


# -----------------------------------------------------------------------------
# Error Entry Variants
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class NativeError:
    """An explicitly filed, stored ErrorLog."""
    log: ErrorLog

    kind = "native"

    @property
    def id(self) -> str:
        return self.log.id

    @property
    def project_id(self) -> str:
        return self.log.project_id

    @property
    def title(self) -> str:
        return self.log.title

    @property
    def description(self) -> str:
        return self.log.description

    @property
    def author_id(self) -> str:
        return self.log.author_id

    @property
    def assigned_to_id(self) -> Optional[str]:
        return self.log.assigned_to_id

    @property
    def severity(self) -> ErrorSeverity:
        return self.log.severity

    @property
    def status(self) -> ErrorStatus:
        return self.log.status

    @property
    def timestamp(self) -> str:
        return self.log.timestamp


@dataclass(frozen=True)
class SyntheticError:
    """An error surfaced from an Error/Bug comment on a task."""
    comment: TaskComment
    task: Task

    kind = "synthetic"

    @property
    def id(self) -> str:
        return synthetic_id(self.comment.id)

    @property
    def project_id(self) -> str:
        return self.task.project_id

    @property
    def title(self) -> str:
        return f"{self.comment.tag.value}: {self.task.name}"

    @property
    def description(self) -> str:
        return self.comment.content

    @property
    def author_id(self) -> str:
        return self.comment.author_id

    @property
    def assigned_to_id(self) -> Optional[str]:
        return self.task.assignee_id

    @property
    def severity(self) -> ErrorSeverity:
        return SYNTHETIC_SEVERITY

    @property
    def status(self) -> ErrorStatus:
        return SYNTHETIC_STATUS

    @property
    def timestamp(self) -> str:
        return self.comment.timestamp

    @property
    def task_id(self) -> str:
        return self.task.id


ErrorEntry = Union[NativeError, SyntheticError]


def entry_to_dict(entry: ErrorEntry) -> Dict[str, Any]:
    """Common display shape for either variant."""
    data = {
        "id": entry.id,
        "kind": entry.kind,
        "projectId": entry.project_id,
        "title": entry.title,
        "description": entry.description,
        "authorId": entry.author_id,
        "assignedToId": entry.assigned_to_id,
        "severity": entry.severity.value,
        "status": entry.status.value,
        "timestamp": entry.timestamp,
    }
    if isinstance(entry, NativeError):
        data["resolvedBy"] = entry.log.resolved_by
        data["commitLink"] = entry.log.commit_link
    else:
        data["taskId"] = entry.task_id
    return data


# -----------------------------------------------------------------------------
# Projection
# -----------------------------------------------------------------------------
def derive_synthetic_errors(tasks: Iterable[Task]) -> Iterator[SyntheticError]:
    """Lazily yield one synthetic entry per Error/Bug comment across all tasks."""
    error_tags = CommentTag.error_tags()
    for task in tasks:
        for comment in task.comments:
            if comment.tag in error_tags:
                yield SyntheticError(comment=comment, task=task)


def unified_error_queue(
    errors: Iterable[ErrorLog],
    tasks: Iterable[Task],
    status: Optional[ErrorStatus] = None,
    project_id: Optional[str] = None,
) -> List[ErrorEntry]:
    """
    Native entries followed by synthetic ones, filtered by status and project.
    """
    entries: List[ErrorEntry] = [NativeError(log) for log in errors]
    entries.extend(derive_synthetic_errors(tasks))
    return [
        e for e in entries
        if (status is None or e.status == status)
        and (not project_id or e.project_id == project_id)
    ]


# -----------------------------------------------------------------------------
# Error Queue Service
# -----------------------------------------------------------------------------
class ErrorQueueService:
    """Reads the unified queue and runs the native-only mutation workflow."""

    def __init__(self, gateway: EntityStoreGateway, recorder: ActivityRecorder):
        self._gateway = gateway
        self._recorder = recorder

    async def _load(self, workspace_id: str) -> Tuple[List[ErrorLog], List[Task]]:
        error_docs = await self._gateway.list_documents(collection_path(workspace_id, Collection.ERRORS))
        task_docs = await self._gateway.list_documents(collection_path(workspace_id, Collection.TASKS))
        return [ErrorLog.from_dict(d) for d in error_docs], [Task.from_dict(d) for d in task_docs]

    async def list_entries(
        self,
        workspace_id: str,
        status: Optional[ErrorStatus] = None,
        project_id: Optional[str] = None,
    ) -> List[ErrorEntry]:
        errors, tasks = await self._load(workspace_id)
        return unified_error_queue(errors, tasks, status=status, project_id=project_id)

    async def file_error(
        self,
        workspace_id: str,
        project_id: str,
        title: str,
        description: str,
        author_id: str,
        assigned_to_id: Optional[str] = None,
        severity: ErrorSeverity = ErrorSeverity.MEDIUM,
        members: Iterable[TeamMember] = (),
    ) -> ErrorLog:
        """File a native error entry."""
        log = ErrorLog(
            id=f"err-{uuid.uuid4().hex}",
            project_id=project_id,
            title=title,
            description=description,
            author_id=author_id,
            assigned_to_id=assigned_to_id or None,
            severity=severity,
            status=ErrorStatus.ACTIVE,
            timestamp=isoformat_now(),
        )
        await self._gateway.put(document_path(workspace_id, Collection.ERRORS, log.id), log.to_dict())
        logger.info(f"Filed error {log.id} ({severity.value}) for project {project_id}")

        self._recorder.record(
            workspace_id,
            ActivitySource.ERROR,
            resolve_author(author_id, members),
            f"Threat marker signaled: {title}",
        )
        return log

    async def _get_native(self, workspace_id: str, entry_id: str) -> ErrorLog:
        if is_synthetic_id(entry_id):
            raise SyntheticEntryError(entry_id)
        doc = await self._gateway.get(document_path(workspace_id, Collection.ERRORS, entry_id))
        if doc is None:
            raise DocumentNotFoundError(f"Error entry {entry_id} not found", path=entry_id)
        return ErrorLog.from_dict(doc)

    async def resolve(
        self,
        workspace_id: str,
        entry_id: str,
        resolved_by: str,
        commit_link: Optional[str] = None,
        members: Iterable[TeamMember] = (),
    ) -> ErrorLog:
        """
        Mark a native entry resolved.

        Raises:
            SyntheticEntryError: entry_id names a comment-derived entry
            DocumentNotFoundError: no native entry with that id
        """
        log = await self._get_native(workspace_id, entry_id)
        resolved = dataclasses.replace(
            log,
            status=ErrorStatus.RESOLVED,
            resolved_by=resolved_by,
            commit_link=commit_link or None,
        )
        await self._gateway.update(
            document_path(workspace_id, Collection.ERRORS, entry_id),
            {
                "status": resolved.status.value,
                "resolvedBy": resolved.resolved_by,
                "commitLink": resolved.commit_link,
            },
        )
        logger.info(f"Resolved error {entry_id} by {resolved_by}")

        self._recorder.record(
            workspace_id,
            ActivitySource.ERROR,
            resolve_author(resolved_by, members),
            f"Threat neutralized: {resolved.title}",
        )
        return resolved

    async def delete(self, workspace_id: str, entry_id: str) -> None:
        """Delete a native entry. Synthetic entries raise SyntheticEntryError."""
        await self._get_native(workspace_id, entry_id)
        await self._gateway.delete(document_path(workspace_id, Collection.ERRORS, entry_id))
        logger.info(f"Deleted error {entry_id}")
