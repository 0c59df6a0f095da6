"""
Task Transition Gate

The single authorized path for changing a task's status. Each successful
transition:

1. Appends a TaskProof whose stage is the status being left
2. Sets the new status and (optionally) a new assignee
3. Persists the whole task with one put(), so proofs and status are always
   written in the same round-trip
4. Schedules an activity entry (best-effort, never rolls back step 3)

A request for the current status is a no-op: nothing is appended or
written. Gateway failures propagate to the caller and the caller's task
object is left untouched; the updated task is only returned after the
write succeeds.

Evidence is lenient by default: an empty proof link is stored as "N/A".
A HandoverPolicy with require_proof=True rejects incomplete evidence
instead.
"""

import dataclasses
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Iterable, Optional, Tuple

from .activity import ActivityRecorder, resolve_author
from .models import ActivitySource, Task, TaskProof, TaskStatus, TeamMember, utc_now
from .stage_graph import COMPLETED_STATUS, can_transition, is_regression
from .store import Collection, EntityStoreGateway, document_path

logger = logging.getLogger("transition_gate")

PROOF_PLACEHOLDER = "N/A"


# -----------------------------------------------------------------------------
# Evidence and Policy
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class TransitionEvidence:
    """
    Evidence bundle collected for one transition.

    next_assignee of None (or empty) keeps the current assignee.
    """
    proof_link: str = ""
    note: Optional[str] = None
    next_assignee: Optional[str] = None

    def is_complete(self) -> bool:
        """True when a non-blank proof link was supplied."""
        return bool(self.proof_link and self.proof_link.strip())

    def recorded_link(self) -> str:
        return self.proof_link.strip() if self.is_complete() else PROOF_PLACEHOLDER


@dataclass(frozen=True)
class HandoverPolicy:
    """Whether a transition must carry a proof link to be accepted."""
    require_proof: bool = False

    def check(self, evidence: TransitionEvidence) -> Tuple[bool, str]:
        if self.require_proof and not evidence.is_complete():
            return False, "Gated handover requires a proof link"
        return True, "Evidence accepted"


LENIENT_POLICY = HandoverPolicy(require_proof=False)
STRICT_POLICY = HandoverPolicy(require_proof=True)


# -----------------------------------------------------------------------------
# Gate
# -----------------------------------------------------------------------------
class TransitionGate:
    """Validates, records and persists task status changes."""

    def __init__(
        self,
        gateway: EntityStoreGateway,
        recorder: ActivityRecorder,
        policy: HandoverPolicy = LENIENT_POLICY,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._gateway = gateway
        self._recorder = recorder
        self.policy = policy
        self._clock = clock

    def build_transition(
        self,
        task: Task,
        target: TaskStatus,
        evidence: TransitionEvidence,
    ) -> Task:
        """Return a new Task with the transition applied. Does not validate or persist."""
        proof = TaskProof(
            stage=task.status,
            link=evidence.recorded_link(),
            timestamp=self._clock().isoformat(),
            note=evidence.note or None,
        )
        return dataclasses.replace(
            task,
            status=target,
            assignee_id=evidence.next_assignee or task.assignee_id,
            proofs=list(task.proofs) + [proof],
            comments=list(task.comments),
            acceptance_criteria=list(task.acceptance_criteria),
        )

    async def transition(
        self,
        workspace_id: str,
        task: Task,
        target: TaskStatus,
        evidence: Optional[TransitionEvidence] = None,
        members: Iterable[TeamMember] = (),
        expected_version: Optional[int] = None,
    ) -> Tuple[bool, str, Task]:
        """
        Move a task to a new status.

        Returns (applied, message, task). When applied is False the returned
        task is the unchanged input.

        Raises:
            StoreError: the task write failed (including StaleWriteError when
                expected_version no longer matches)
        """
        evidence = evidence or TransitionEvidence()

        allowed, message = can_transition(task.status, target)
        if not allowed:
            logger.debug(f"No-op transition for task {task.id}: {message}")
            return False, message, task

        accepted, message = self.policy.check(evidence)
        if not accepted:
            logger.info(f"Transition rejected for task {task.id}: {message}")
            return False, message, task

        updated = self.build_transition(task, target, evidence)
        await self._gateway.put(
            document_path(workspace_id, Collection.TASKS, task.id),
            updated.to_dict(),
            expected_version=expected_version,
        )

        direction = "sent back" if is_regression(task.status, target) else "advanced"
        logger.info(
            f"Task {task.id} {direction}: {task.status.value} -> {target.value} "
            f"(assignee: {updated.assignee_id}, proofs: {len(updated.proofs)})"
        )

        self._recorder.record(
            workspace_id,
            ActivitySource.TASK,
            resolve_author(updated.assignee_id, members),
            self.activity_message(updated),
        )

        return True, f"Transitioned to {target.value}", updated

    @staticmethod
    def activity_message(task: Task) -> str:
        if task.status == COMPLETED_STATUS:
            return f"Unit {task.name} completed"
        return f"Unit {task.name} migrated to {task.status.value}"
