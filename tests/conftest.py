"""
Pytest configuration for SpeedOps tests.

This module provides:
1. An in-memory store and the services built around it
2. Deterministic clocks for activity and proof timestamps
3. Sample members and tasks
"""

from datetime import datetime, timedelta, timezone
from typing import List

import pytest

from speedops.activity import ActivityRecorder
from speedops.config import Settings
from speedops.gateway import ResilientGateway
from speedops.models import (
    CommentTag,
    Role,
    Task,
    TaskComment,
    TaskStatus,
    TeamMember,
)
from speedops.services import build_services
from speedops.store import InMemoryEntityStore
from speedops.transition_gate import TransitionGate

WORKSPACE_ID = "ws-test"
BASE_TIME = datetime(2025, 3, 14, 9, 30, tzinfo=timezone.utc)


# -----------------------------------------------------------------------------
# Clocks
# -----------------------------------------------------------------------------
class TickingClock:
    """Returns BASE_TIME, then advances one second per call."""

    def __init__(self, start: datetime = BASE_TIME):
        self.current = start

    def __call__(self) -> datetime:
        value = self.current
        self.current = self.current + timedelta(seconds=1)
        return value


@pytest.fixture
def clock():
    return TickingClock()


# -----------------------------------------------------------------------------
# Store and Services
# -----------------------------------------------------------------------------
@pytest.fixture
def store():
    """Create an empty in-memory store."""
    return InMemoryEntityStore()


@pytest.fixture
def gateway(store):
    """Resilient gateway with no backoff delay."""
    return ResilientGateway(store, timeout=1.0, max_attempts=3, backoff_base=0.0)


@pytest.fixture
def recorder(gateway, clock):
    return ActivityRecorder(gateway, clock=clock)


@pytest.fixture
def gate(gateway, recorder, clock):
    return TransitionGate(gateway, recorder, clock=clock)


@pytest.fixture
def memory_settings(tmp_path):
    """Settings for an in-memory process with no API key."""
    return Settings(
        state_dir=tmp_path,
        store_backend="memory",
        gateway_backoff_base=0.0,
        gemini_api_key=None,
    )


@pytest.fixture
def services(memory_settings, store):
    return build_services(settings=memory_settings, store=store)


# -----------------------------------------------------------------------------
# Sample Data
# -----------------------------------------------------------------------------
@pytest.fixture
def members() -> List[TeamMember]:
    return [
        TeamMember(id="m-ana", name="Ana Ruiz", roles=[Role.FRONTEND]),
        TeamMember(id="m-ben", name="Ben Okafor", roles=[Role.BACKEND, Role.DEVOPS]),
        TeamMember(id="m-cy", name="Cy Tran", roles=[Role.TESTER]),
    ]


def make_task(
    task_id: str = "t-1",
    status: TaskStatus = TaskStatus.BACKLOG,
    assignee_id: str = "m-ana",
    project_id: str = "p-1",
    name: str = "Login form",
    comments: List[TaskComment] = None,
    archived: bool = False,
) -> Task:
    """Helper to create test tasks."""
    return Task(
        id=task_id,
        project_id=project_id,
        name=name,
        description="Build the login form",
        assignee_id=assignee_id,
        status=status,
        acceptance_criteria=["Validates email"],
        comments=list(comments or []),
        archived=archived,
    )


def make_comment(
    comment_id: str,
    tag: CommentTag = CommentTag.NOTE,
    content: str = "Looks fine",
    author_id: str = "m-cy",
) -> TaskComment:
    return TaskComment(
        id=comment_id,
        author_id=author_id,
        author_role=Role.TESTER,
        content=content,
        tag=tag,
        timestamp="2025-03-14T09:00:00+00:00",
    )


@pytest.fixture
def sample_task() -> Task:
    return make_task()
