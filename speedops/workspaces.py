"""
Workspace membership.

A workspace is created with a six-character invite code; other users join
by presenting the code. Each user profile remembers one active workspace.
"""

import logging
import secrets
import string
import uuid
from typing import Optional

from .errors import WorkspaceNotFoundError
from .models import Workspace, isoformat_now
from .store import WORKSPACES_ROOT, EntityStoreGateway, workspace_doc_path

logger = logging.getLogger("workspaces")

USERS_ROOT = "users"
INVITE_CODE_LENGTH = 6
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits


def generate_invite_code() -> str:
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))


def normalize_invite_code(code: str) -> str:
    return (code or "").strip().upper()


class WorkspaceDirectory:
    """Create, join and look up workspaces."""

    def __init__(self, gateway: EntityStoreGateway):
        self._gateway = gateway

    async def create_workspace(self, name: str, owner_id: str) -> Workspace:
        workspace = Workspace(
            id=f"ws-{uuid.uuid4().hex[:12]}",
            name=name,
            owner_id=owner_id,
            invite_code=generate_invite_code(),
            members=[owner_id],
            created_at=isoformat_now(),
        )
        await self._gateway.put(workspace_doc_path(workspace.id), workspace.to_dict())
        await self.set_active_workspace(owner_id, workspace.id)
        logger.info(f"Created workspace {workspace.id} ({name}) owned by {owner_id}")
        return workspace

    async def get_workspace(self, workspace_id: str) -> Workspace:
        doc = await self._gateway.get(workspace_doc_path(workspace_id))
        if doc is None:
            raise WorkspaceNotFoundError(f"Workspace {workspace_id} not found")
        return Workspace.from_dict(doc)

    async def join_workspace(self, invite_code: str, user_id: str) -> Workspace:
        """Add a user to the workspace owning the invite code. Idempotent per user."""
        code = normalize_invite_code(invite_code)
        if not code:
            raise WorkspaceNotFoundError("Invite code is required")

        matches = await self._gateway.query(WORKSPACES_ROOT, where=("inviteCode", code), limit=1)
        if not matches:
            raise WorkspaceNotFoundError(f"No workspace for invite code {code}")

        workspace = Workspace.from_dict(matches[0])
        if user_id not in workspace.members:
            workspace.members.append(user_id)
            await self._gateway.update(
                workspace_doc_path(workspace.id), {"members": workspace.members}
            )
            logger.info(f"User {user_id} joined workspace {workspace.id}")

        await self.set_active_workspace(user_id, workspace.id)
        return workspace

    async def set_active_workspace(self, user_id: str, workspace_id: Optional[str]) -> None:
        await self._gateway.put(
            f"{USERS_ROOT}/{user_id}",
            {"uid": user_id, "activeWorkspaceId": workspace_id},
        )

    async def get_active_workspace_id(self, user_id: str) -> Optional[str]:
        doc = await self._gateway.get(f"{USERS_ROOT}/{user_id}")
        return doc.get("activeWorkspaceId") if doc else None

    async def is_member(self, workspace_id: str, user_id: str) -> bool:
        workspace = await self.get_workspace(workspace_id)
        return user_id in workspace.members
