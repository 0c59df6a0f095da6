"""
Entity Store Gateway

The narrow document-store contract the workflow depends on, plus two
implementations:

- InMemoryEntityStore: process-local store with live subscriptions, used for
  tests and single-process deployments.
- JsonFileEntityStore: the in-memory store persisted to a JSON state file
  after every write (fsync'd, atomically replaced).

Contract:
- subscribe(collection_path) yields full collection snapshots. Each
  snapshot replaces the subscriber's working set; there are no diffs.
- put() is a full-document upsert, update() a top-level partial patch.
  Both sanitize the document before it is stored.
- Every document carries a version counter. Writes accept an optional
  expected_version; when omitted the last write wins.
- A write that cannot be persisted leaves no trace: the previous document,
  version and sequence are restored and no snapshot is delivered.
- There are no transactions across documents.

Paths are slash-separated: workspaces/<workspace_id>/<collection>/<doc_id>.
"""

import asyncio
import copy
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .errors import DocumentNotFoundError, StaleWriteError, StoreError
from .sanitize import sanitize_document

logger = logging.getLogger("entity_store")

WORKSPACES_ROOT = "workspaces"


# -----------------------------------------------------------------------------
# Collections and Paths
# -----------------------------------------------------------------------------
class Collection(str, Enum):
    """Per-workspace collections."""
    PROJECTS = "projects"
    TASKS = "tasks"
    MEMBERS = "members"
    MILESTONES = "milestones"
    CLIENTS = "clients"
    ERRORS = "errors"
    ACTIVITY = "activity"


def workspace_doc_path(workspace_id: str) -> str:
    return f"{WORKSPACES_ROOT}/{workspace_id}"


def collection_path(workspace_id: str, collection: Collection) -> str:
    return f"{WORKSPACES_ROOT}/{workspace_id}/{collection.value}"


def document_path(workspace_id: str, collection: Collection, doc_id: str) -> str:
    return f"{collection_path(workspace_id, collection)}/{doc_id}"


def split_path(path: str) -> Tuple[str, str]:
    """Split a document path into (collection_path, doc_id)."""
    parts = path.strip("/").split("/")
    if len(parts) < 2 or len(parts) % 2 != 0:
        raise StoreError(f"Not a document path: {path}", path=path)
    return "/".join(parts[:-1]), parts[-1]


# -----------------------------------------------------------------------------
# Snapshot
# -----------------------------------------------------------------------------
@dataclass(frozen=True)
class Snapshot:
    """Full state of one collection at one point in the store's history."""
    collection_path: str
    documents: Tuple[Dict[str, Any], ...]
    sequence: int
    versions: Dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.documents)


_CLOSED = object()


class Subscription:
    """
    Async iterator over snapshots for one collection.

    The current snapshot is delivered immediately on subscribe, then one per
    write to the collection. close() ends the iteration.
    """

    def __init__(self, store: "InMemoryEntityStore", collection_path: str):
        self.collection_path = collection_path
        self._store = store
        self._queue: "asyncio.Queue[Any]" = asyncio.Queue()
        self._closed = False

    def _deliver(self, snapshot: Snapshot) -> None:
        if not self._closed:
            self._queue.put_nowait(snapshot)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._store._unsubscribe(self)
        self._queue.put_nowait(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    def __aiter__(self) -> "Subscription":
        return self

    async def __anext__(self) -> Snapshot:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


# -----------------------------------------------------------------------------
# Gateway Contract
# -----------------------------------------------------------------------------
class EntityStoreGateway(ABC):
    """Document store operations the workflow is allowed to use."""

    @abstractmethod
    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        """Return the document at path, or None."""

    @abstractmethod
    async def get_version(self, path: str) -> int:
        """Return the document's version (0 when it does not exist)."""

    @abstractmethod
    async def put(
        self,
        path: str,
        document: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> int:
        """Full-document upsert. Returns the new version."""

    @abstractmethod
    async def update(
        self,
        path: str,
        partial: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> int:
        """Patch top-level fields of an existing document. Returns the new version."""

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Delete a document. Missing documents are ignored."""

    @abstractmethod
    async def add(self, collection_path: str, document: Dict[str, Any]) -> str:
        """Insert a document under a generated id and return the id."""

    @abstractmethod
    async def query(
        self,
        collection_path: str,
        where: Optional[Tuple[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Read documents from a collection with an optional equality filter and ordering."""

    @abstractmethod
    def subscribe(self, collection_path: str) -> Subscription:
        """Open a live subscription to full snapshots of a collection."""

    async def list_documents(self, collection_path: str) -> List[Dict[str, Any]]:
        return await self.query(collection_path)


# -----------------------------------------------------------------------------
# In-Memory Implementation
# -----------------------------------------------------------------------------
class InMemoryEntityStore(EntityStoreGateway):
    """
    Process-local document store.

    Documents are deep-copied in and out so callers never share state with
    the store. Every returned document carries its id under "id".
    """

    def __init__(self):
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._versions: Dict[str, int] = {}
        self._sequences: Dict[str, int] = {}
        self._subscribers: Dict[str, List[Subscription]] = {}
        self._lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, path: str) -> Optional[Dict[str, Any]]:
        coll, doc_id = split_path(path)
        doc = self._collections.get(coll, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def get_version(self, path: str) -> int:
        split_path(path)
        return self._versions.get(path, 0)

    async def query(
        self,
        collection_path: str,
        where: Optional[Tuple[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        docs = [copy.deepcopy(d) for d in self._collections.get(collection_path, {}).values()]
        if where is not None:
            key, value = where
            docs = [d for d in docs if d.get(key) == value]
        if order_by:
            # Documents missing the field sort first ascending, last descending.
            docs.sort(key=lambda d: (order_by in d, d.get(order_by) or ""), reverse=descending)
        if limit is not None:
            docs = docs[:limit]
        return docs

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def put(
        self,
        path: str,
        document: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> int:
        coll, doc_id = split_path(path)
        async with self._lock:
            self._check_version(path, expected_version)
            stored = sanitize_document(copy.deepcopy(document))
            stored["id"] = doc_id
            version = await self._commit(coll, doc_id, stored)
        logger.debug(f"put {path} (v{version})")
        return version

    async def update(
        self,
        path: str,
        partial: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> int:
        coll, doc_id = split_path(path)
        async with self._lock:
            existing = self._collections.get(coll, {}).get(doc_id)
            if existing is None:
                raise DocumentNotFoundError(f"No document at {path}", path=path)
            self._check_version(path, expected_version)
            patch = sanitize_document(copy.deepcopy(partial))
            patch.pop("id", None)
            merged = copy.deepcopy(existing)
            merged.update(patch)
            version = await self._commit(coll, doc_id, merged)
        logger.debug(f"update {path} (v{version})")
        return version

    async def delete(self, path: str) -> None:
        coll, doc_id = split_path(path)
        async with self._lock:
            if doc_id not in self._collections.get(coll, {}):
                return
            await self._commit(coll, doc_id, None)
        logger.debug(f"delete {path}")

    async def add(self, collection_path: str, document: Dict[str, Any]) -> str:
        doc_id = uuid.uuid4().hex
        await self.put(f"{collection_path}/{doc_id}", document)
        return doc_id

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, collection_path: str) -> Subscription:
        subscription = Subscription(self, collection_path)
        self._subscribers.setdefault(collection_path, []).append(subscription)
        subscription._deliver(self._snapshot(collection_path))
        return subscription

    def _unsubscribe(self, subscription: Subscription) -> None:
        subs = self._subscribers.get(subscription.collection_path, [])
        if subscription in subs:
            subs.remove(subscription)

    def _snapshot(self, coll: str) -> Snapshot:
        docs = self._collections.get(coll, {})
        return Snapshot(
            collection_path=coll,
            documents=tuple(copy.deepcopy(d) for d in docs.values()),
            sequence=self._sequences.get(coll, 0),
            versions={doc_id: self._versions.get(f"{coll}/{doc_id}", 0) for doc_id in docs},
        )

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _check_version(self, path: str, expected_version: Optional[int]) -> None:
        if expected_version is None:
            return
        actual = self._versions.get(path, 0)
        if actual != expected_version:
            raise StaleWriteError(path, expected_version, actual)

    async def _commit(self, coll: str, doc_id: str, document: Optional[Dict[str, Any]]) -> int:
        """
        Apply one document change (None deletes), persist, then notify.

        Called under the write lock. When persisting fails the previous
        document, version and sequence are restored and subscribers see
        nothing. Returns the new version (0 after a delete).
        """
        path = f"{coll}/{doc_id}"
        docs = self._collections.setdefault(coll, {})
        previous_doc = docs.get(doc_id)
        previous_version = self._versions.get(path)
        previous_sequence = self._sequences.get(coll, 0)

        if document is None:
            docs.pop(doc_id, None)
            self._versions.pop(path, None)
            version = 0
        else:
            docs[doc_id] = document
            version = (previous_version or 0) + 1
            self._versions[path] = version
        self._sequences[coll] = previous_sequence + 1

        try:
            await self._persist()
        except Exception:
            if previous_doc is None:
                docs.pop(doc_id, None)
            else:
                docs[doc_id] = previous_doc
            if previous_version is None:
                self._versions.pop(path, None)
            else:
                self._versions[path] = previous_version
            self._sequences[coll] = previous_sequence
            raise

        subs = self._subscribers.get(coll, [])
        if subs:
            snapshot = self._snapshot(coll)
            for sub in list(subs):
                sub._deliver(snapshot)
        return version

    async def _persist(self) -> None:
        """Hook for durable subclasses. Called under the write lock after each change."""


# -----------------------------------------------------------------------------
# JSON File Implementation
# -----------------------------------------------------------------------------
class JsonFileEntityStore(InMemoryEntityStore):
    """
    In-memory store mirrored to a JSON state file.

    The whole state is rewritten after every write via a temp file and
    os.replace, with fsync before the rename. The state is serialized on the
    event loop and the file I/O runs in a worker thread.
    """

    def __init__(self, state_file: Path):
        super().__init__()
        self._state_file = state_file
        self._load()

    def _load(self) -> None:
        if not self._state_file.exists():
            return
        try:
            with open(self._state_file) as f:
                state = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise StoreError(f"Cannot read store state {self._state_file}: {e}") from e

        self._collections = state.get("collections", {})
        self._versions = {k: int(v) for k, v in state.get("versions", {}).items()}
        self._sequences = {k: int(v) for k, v in state.get("sequences", {}).items()}
        logger.info(
            f"Loaded {sum(len(d) for d in self._collections.values())} documents from {self._state_file}"
        )

    async def _persist(self) -> None:
        payload = json.dumps({
            "collections": self._collections,
            "versions": self._versions,
            "sequences": self._sequences,
            "last_updated": datetime.now(timezone.utc).isoformat(),
        })
        await asyncio.to_thread(self._write_state, payload)

    def _write_state(self, payload: str) -> None:
        tmp_path = self._state_file.with_suffix(".tmp")
        try:
            self._state_file.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self._state_file)
        except OSError as e:
            logger.error(f"Store persistence failed: {e}")
            raise StoreError(f"Cannot write store state {self._state_file}: {e}") from e
