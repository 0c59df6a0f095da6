"""
Task Stage Graph

Static definition of the task pipeline:

    Backlog → In Progress → Testing → QA → Review → Completed

Any stage may move to any other stage. Regression (e.g. Review → In Progress
to send work back) and reopening Completed tasks are both legal; the only
rejected request is a move to the stage the task is already in.

Completed is a status value, not a lock. Completed tasks still accept
comments and further transitions.
"""

from typing import Dict, FrozenSet, List, Tuple

from .models import TaskStatus

# -----------------------------------------------------------------------------
# Pipeline Definition
# -----------------------------------------------------------------------------
PIPELINE: Tuple[TaskStatus, ...] = (
    TaskStatus.BACKLOG,
    TaskStatus.IN_PROGRESS,
    TaskStatus.TESTING,
    TaskStatus.QA,
    TaskStatus.REVIEW,
    TaskStatus.COMPLETED,
)

INITIAL_STATUS = TaskStatus.BACKLOG
COMPLETED_STATUS = TaskStatus.COMPLETED

# Every stage reaches every other stage.
VALID_TRANSITIONS: Dict[TaskStatus, FrozenSet[TaskStatus]] = {
    status: frozenset(s for s in PIPELINE if s != status)
    for status in PIPELINE
}


def is_legal_transition(current: TaskStatus, target: TaskStatus) -> bool:
    """True for any target other than the current stage."""
    return target in VALID_TRANSITIONS.get(current, frozenset())


def can_transition(current: TaskStatus, target: TaskStatus) -> Tuple[bool, str]:
    """Check a transition and explain the outcome."""
    if is_legal_transition(current, target):
        return True, f"Transition {current.value} -> {target.value} allowed"
    return False, f"Task is already in {current.value}"


def transition_targets(current: TaskStatus) -> List[TaskStatus]:
    """Legal targets from a stage, in pipeline order."""
    allowed = VALID_TRANSITIONS.get(current, frozenset())
    return [s for s in PIPELINE if s in allowed]


def is_regression(current: TaskStatus, target: TaskStatus) -> bool:
    """True when the move goes backwards in the pipeline."""
    return PIPELINE.index(target) < PIPELINE.index(current)
