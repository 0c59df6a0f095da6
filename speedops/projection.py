"""
Workspace Projection

Client-side mirror of a workspace's collections, fed only by store
snapshots. Each snapshot replaces the collection's working set outright;
duplicate or out-of-order snapshots are applied the same way, so the last
snapshot delivered wins. UI actions never write here directly: mutations go
through the gateway and come back as snapshots.

Each collection carries a local version stamp that increments once per
applied snapshot, so readers can tell which delivery they are looking at.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .config import ACTIVITY_FEED_LIMIT
from .models import ActivityLog, Client, ErrorLog, Milestone, Project, Task, TeamMember
from .store import Collection, EntityStoreGateway, Snapshot, Subscription, collection_path

logger = logging.getLogger("workspace_projection")


@dataclass(frozen=True)
class CollectionState:
    documents: Tuple[Dict[str, Any], ...] = ()
    version: int = 0
    store_sequence: int = 0


class WorkspaceProjection:
    """Single-writer, multi-reader cache of one workspace's collections."""

    def __init__(self, workspace_id: str, activity_limit: int = ACTIVITY_FEED_LIMIT):
        self.workspace_id = workspace_id
        self.activity_limit = activity_limit
        self._states: Dict[Collection, CollectionState] = {c: CollectionState() for c in Collection}
        self._changed = asyncio.Condition()
        self._subscriptions: List[Subscription] = []
        self._consumers: List["asyncio.Task[None]"] = []

    # -------------------------------------------------------------------------
    # Writer
    # -------------------------------------------------------------------------

    def apply(self, collection: Collection, snapshot: Snapshot) -> int:
        """Replace a collection's working set with a snapshot. Returns the new version."""
        previous = self._states[collection]
        if snapshot.sequence < previous.store_sequence:
            logger.debug(
                f"Applying out-of-order snapshot for {collection.value}: "
                f"seq {snapshot.sequence} after {previous.store_sequence}"
            )
        state = CollectionState(
            documents=tuple(snapshot.documents),
            version=previous.version + 1,
            store_sequence=snapshot.sequence,
        )
        self._states[collection] = state
        return state.version

    async def _consume(self, collection: Collection, subscription: Subscription) -> None:
        async for snapshot in subscription:
            self.apply(collection, snapshot)
            async with self._changed:
                self._changed.notify_all()

    def start(self, gateway: EntityStoreGateway, collections: Iterable[Collection] = tuple(Collection)) -> None:
        """Subscribe to collections and apply snapshots in the background."""
        loop = asyncio.get_running_loop()
        for collection in collections:
            subscription = gateway.subscribe(collection_path(self.workspace_id, collection))
            self._subscriptions.append(subscription)
            self._consumers.append(loop.create_task(self._consume(collection, subscription)))
        logger.info(f"Projection for workspace {self.workspace_id} subscribed to {len(self._subscriptions)} collections")

    async def stop(self) -> None:
        for subscription in self._subscriptions:
            subscription.close()
        if self._consumers:
            await asyncio.gather(*self._consumers)
        self._subscriptions.clear()
        self._consumers.clear()

    async def wait_for_version(self, collection: Collection, version: int, timeout: float = 5.0) -> None:
        """Block until a collection has applied at least `version` snapshots."""
        async def _wait():
            async with self._changed:
                await self._changed.wait_for(lambda: self._states[collection].version >= version)

        await asyncio.wait_for(_wait(), timeout=timeout)

    # -------------------------------------------------------------------------
    # Readers
    # -------------------------------------------------------------------------

    def state(self, collection: Collection) -> CollectionState:
        return self._states[collection]

    def version(self, collection: Collection) -> int:
        return self._states[collection].version

    def documents(self, collection: Collection) -> Tuple[Dict[str, Any], ...]:
        return self._states[collection].documents

    @property
    def tasks(self) -> List[Task]:
        return [Task.from_dict(d) for d in self.documents(Collection.TASKS)]

    @property
    def errors(self) -> List[ErrorLog]:
        return [ErrorLog.from_dict(d) for d in self.documents(Collection.ERRORS)]

    @property
    def members(self) -> List[TeamMember]:
        return [TeamMember.from_dict(d) for d in self.documents(Collection.MEMBERS)]

    @property
    def projects(self) -> List[Project]:
        return [Project.from_dict(d) for d in self.documents(Collection.PROJECTS)]

    @property
    def milestones(self) -> List[Milestone]:
        return [Milestone.from_dict(d) for d in self.documents(Collection.MILESTONES)]

    @property
    def clients(self) -> List[Client]:
        return [Client.from_dict(d) for d in self.documents(Collection.CLIENTS)]

    @property
    def activity(self) -> List[ActivityLog]:
        """Newest-first activity, capped at activity_limit."""
        docs = sorted(
            self.documents(Collection.ACTIVITY),
            key=lambda d: d.get("createdAt", ""),
            reverse=True,
        )
        return [ActivityLog.from_dict(d) for d in docs[: self.activity_limit]]

    def find_task(self, task_id: str) -> Optional[Task]:
        for doc in self.documents(Collection.TASKS):
            if doc.get("id") == task_id:
                return Task.from_dict(doc)
        return None
