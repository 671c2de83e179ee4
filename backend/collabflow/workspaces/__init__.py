"""Workspace membership (read side) used to authorize chat operations."""

from .directory import User, Workspace, WorkspaceDirectory
from .membership import NOT_A_MEMBER, MembershipService

__all__ = [
    "User",
    "Workspace",
    "WorkspaceDirectory",
    "MembershipService",
    "NOT_A_MEMBER",
]
