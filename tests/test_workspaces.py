"""Tests for workspace creation and invite-code membership."""

import pytest

from speedops.errors import WorkspaceNotFoundError
from speedops.workspaces import (
    INVITE_CODE_ALPHABET,
    INVITE_CODE_LENGTH,
    WorkspaceDirectory,
    generate_invite_code,
    normalize_invite_code,
)


@pytest.fixture
def workspaces(gateway):
    return WorkspaceDirectory(gateway)


class TestInviteCodes:
    def test_generated_shape(self):
        code = generate_invite_code()
        assert len(code) == INVITE_CODE_LENGTH
        assert all(ch in INVITE_CODE_ALPHABET for ch in code)

    def test_normalize(self):
        assert normalize_invite_code("  ab12cd ") == "AB12CD"
        assert normalize_invite_code(None) == ""


class TestWorkspaceDirectory:
    @pytest.mark.asyncio
    async def test_create_sets_owner(self, workspaces):
        workspace = await workspaces.create_workspace("Ops", "u-owner")

        assert workspace.id.startswith("ws-")
        assert workspace.members == ["u-owner"]
        assert await workspaces.get_active_workspace_id("u-owner") == workspace.id
        assert (await workspaces.get_workspace(workspace.id)).invite_code == workspace.invite_code

    @pytest.mark.asyncio
    async def test_join_by_code(self, workspaces):
        workspace = await workspaces.create_workspace("Ops", "u-owner")

        joined = await workspaces.join_workspace(workspace.invite_code.lower(), "u-new")

        assert joined.id == workspace.id
        assert joined.members == ["u-owner", "u-new"]
        assert await workspaces.is_member(workspace.id, "u-new") is True
        assert await workspaces.get_active_workspace_id("u-new") == workspace.id

    @pytest.mark.asyncio
    async def test_join_twice_is_idempotent(self, workspaces):
        workspace = await workspaces.create_workspace("Ops", "u-owner")
        await workspaces.join_workspace(workspace.invite_code, "u-new")
        await workspaces.join_workspace(workspace.invite_code, "u-new")

        assert (await workspaces.get_workspace(workspace.id)).members == ["u-owner", "u-new"]

    @pytest.mark.asyncio
    async def test_unknown_code(self, workspaces):
        with pytest.raises(WorkspaceNotFoundError):
            await workspaces.join_workspace("ZZZZZZ", "u-new")

    @pytest.mark.asyncio
    async def test_blank_code(self, workspaces):
        with pytest.raises(WorkspaceNotFoundError):
            await workspaces.join_workspace("  ", "u-new")

    @pytest.mark.asyncio
    async def test_missing_workspace(self, workspaces):
        with pytest.raises(WorkspaceNotFoundError):
            await workspaces.get_workspace("ws-missing")
