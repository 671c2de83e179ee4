"""Membership oracle: is principal P a member of workspace W?

The answer is read from the store on every call and never cached, so a
member removed by the workspace subsystem loses access on their next send
or history fetch.
"""
import asyncio
import logging

from collabflow.errors import AuthorizationError

from .directory import WorkspaceDirectory

logger = logging.getLogger(__name__)

NOT_A_MEMBER = "You are not a member of this workspace"


class MembershipService:
    """Async facade over WorkspaceDirectory membership lookups."""

    def __init__(self, directory: WorkspaceDirectory) -> None:
        self._directory = directory

    async def is_member(self, user_id: str, workspace_id: str) -> bool:
        role = await asyncio.to_thread(self._directory.get_role, workspace_id, user_id)
        return role is not None

    async def require_member(self, user_id: str, workspace_id: str) -> None:
        """Raise AuthorizationError unless the membership row exists."""
        if not await self.is_member(user_id, workspace_id):
            logger.info("[Auth] %s denied access to workspace %s", user_id, workspace_id)
            raise AuthorizationError(NOT_A_MEMBER)
