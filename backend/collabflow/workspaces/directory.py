"""Users, workspaces and memberships as seen by the chat core.

The workspace subsystem owns these rows; the chat core only reads them.
WorkspaceDirectory exposes the create/find/update operations that subsystem
performs so the membership oracle has real data to check against.
"""
import logging
import uuid
from typing import Optional

from pydantic import BaseModel

from collabflow.storage import Database, utc_now

logger = logging.getLogger(__name__)


class User(BaseModel):
    id: str
    name: Optional[str] = None
    email: str
    profileImage: Optional[str] = None


class Workspace(BaseModel):
    id: str
    name: str
    ownerId: str


class WorkspaceDirectory:
    """Synchronous DuckDB access for users, workspaces and memberships."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # -----------------------------------------------------------------------
    # Users
    # -----------------------------------------------------------------------

    def create_user(
        self,
        email: str,
        name: Optional[str] = None,
        profile_image: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> User:
        user_id = user_id or str(uuid.uuid4())
        self._db.execute(
            """
            INSERT INTO users (id, name, email, profile_image, created_at)
            VALUES (?, ?, ?, ?, ?)
            """,
            [user_id, name, email, profile_image, utc_now()],
        )
        return User(id=user_id, name=name, email=email, profileImage=profile_image)

    def get_user(self, user_id: str) -> Optional[User]:
        row = self._db.fetchone(
            "SELECT id, name, email, profile_image FROM users WHERE id = ?",
            [user_id],
        )
        if row is None:
            return None
        return User(id=row[0], name=row[1], email=row[2], profileImage=row[3])

    # -----------------------------------------------------------------------
    # Workspaces
    # -----------------------------------------------------------------------

    def create_workspace(self, name: str, owner_id: str, workspace_id: Optional[str] = None) -> Workspace:
        """Create a workspace; the owner becomes its first member."""
        workspace_id = workspace_id or str(uuid.uuid4())
        self._db.execute(
            "INSERT INTO workspaces (id, name, owner_id, created_at) VALUES (?, ?, ?, ?)",
            [workspace_id, name, owner_id, utc_now()],
        )
        self.add_member(workspace_id, owner_id, role="owner")
        logger.info("[Workspaces] Created %s owned by %s", workspace_id, owner_id)
        return Workspace(id=workspace_id, name=name, ownerId=owner_id)

    def workspace_exists(self, workspace_id: str) -> bool:
        row = self._db.fetchone("SELECT 1 FROM workspaces WHERE id = ?", [workspace_id])
        return row is not None

    # -----------------------------------------------------------------------
    # Memberships
    # -----------------------------------------------------------------------

    def add_member(self, workspace_id: str, user_id: str, role: str = "member") -> None:
        """Add a membership row. Adding an existing member is a no-op."""
        self._db.execute(
            """
            INSERT OR IGNORE INTO workspace_members (user_id, workspace_id, role, joined_at)
            VALUES (?, ?, ?, ?)
            """,
            [user_id, workspace_id, role, utc_now()],
        )

    def remove_member(self, workspace_id: str, user_id: str) -> bool:
        row = self._db.fetchone(
            "DELETE FROM workspace_members WHERE user_id = ? AND workspace_id = ? RETURNING user_id",
            [user_id, workspace_id],
        )
        return row is not None

    def get_role(self, workspace_id: str, user_id: str) -> Optional[str]:
        row = self._db.fetchone(
            "SELECT role FROM workspace_members WHERE user_id = ? AND workspace_id = ?",
            [user_id, workspace_id],
        )
        return row[0] if row else None
