"""
Activity Recorder

Append-only, human-readable audit feed for a workspace. Each entry is
{source, author, content, timestamp, createdAt}.

Recording is fire-and-forget: record() schedules the write and returns
immediately. A failed append is logged and never reaches the caller, so an
audit failure cannot undo the mutation it describes.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional, Set

from .config import ACTIVITY_FEED_LIMIT
from .models import ActivityLog, ActivitySource, TeamMember, utc_now
from .store import Collection, EntityStoreGateway, collection_path

logger = logging.getLogger("activity_recorder")

SYSTEM_AUTHOR = "SYSTEM"
ADMIN_AUTHOR = "ADMIN"


def resolve_author(member_id: Optional[str], members: Iterable[TeamMember]) -> str:
    """Display name for a member id, or SYSTEM when it cannot be resolved."""
    if member_id:
        for member in members:
            if member.id == member_id:
                return member.name
    return SYSTEM_AUTHOR


class ActivityRecorder:
    """Schedules activity appends and reads the recent feed."""

    def __init__(
        self,
        gateway: EntityStoreGateway,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._gateway = gateway
        self._clock = clock
        self._pending: Set["asyncio.Task[None]"] = set()

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    def build_entry(self, source: ActivitySource, author: str, content: str) -> ActivityLog:
        now = self._clock()
        return ActivityLog(
            source=source,
            author=author,
            content=content,
            timestamp=now.strftime("%H:%M"),
            created_at=now.isoformat(),
        )

    def record(
        self,
        workspace_id: str,
        source: ActivitySource,
        author: str,
        content: str,
    ) -> "asyncio.Task[None]":
        """
        Schedule an activity append without waiting for it.

        Must be called from a running event loop. The returned task never
        raises; failures are logged.
        """
        entry = self.build_entry(source, author, content)
        task = asyncio.get_running_loop().create_task(self._append(workspace_id, entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _append(self, workspace_id: str, entry: ActivityLog) -> None:
        payload = entry.to_dict()
        payload.pop("id", None)
        try:
            await self._gateway.add(collection_path(workspace_id, Collection.ACTIVITY), payload)
            logger.debug(f"Activity [{entry.source.value}] {entry.author}: {entry.content}")
        except Exception as e:
            logger.warning(f"Activity append failed for workspace {workspace_id}: {e}")

    async def drain(self) -> None:
        """Wait for all scheduled appends to finish."""
        if self._pending:
            await asyncio.gather(*list(self._pending))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def recent(self, workspace_id: str, limit: int = ACTIVITY_FEED_LIMIT) -> List[ActivityLog]:
        """Newest-first activity entries, at most `limit`."""
        docs = await self._gateway.query(
            collection_path(workspace_id, Collection.ACTIVITY),
            order_by="createdAt",
            descending=True,
            limit=limit,
        )
        return [ActivityLog.from_dict(d) for d in docs]
