"""Per-connection chat event handler.

States:
    UNAUTHENTICATED -> refused by the connection gate, never reaches here
    AUTHENTICATED   -> steady state; joined rooms change within it
    DISCONNECTED    -> terminal; all room memberships dropped

Every failure inside an event is converted into a private ``messageError``
frame for the originating connection. Nothing is broadcast or persisted for
a failed send, and no exception escapes to the transport loop.
"""
import logging
from enum import Enum
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from collabflow.config import ChatSettings
from collabflow.errors import (
    AuthenticationError,
    CollabFlowError,
    PersistenceError,
    ValidationError,
)
from collabflow.workspaces import MembershipService

from .rooms import ClientConnection, RoomRouter
from .schemas import (
    ClientEvent,
    InboundFrame,
    SendMessagePayload,
    ServerEvent,
    WorkspaceRef,
    error_frame,
    frame,
)
from .store import MessageStore

logger = logging.getLogger(__name__)

SEND_FAILED = "Failed to send message"


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATED = "authenticated"
    DISCONNECTED = "disconnected"


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid payload"
    err = errors[0]
    field = ".".join(str(p) for p in err.get("loc", ()) if p != "data")
    msg = err.get("msg", "invalid value")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{field}: {msg}" if field else msg


class ChatSession:
    """Processes joinWorkspace / leaveWorkspace / sendMessage for one connection.

    Args:
        connection: The connection this session serves.
        rooms: Shared room router.
        store: Message store (also provides per-workspace send locks).
        membership: Membership oracle, consulted on every send.
        settings: Chat settings (content limit, join policy).
    """

    def __init__(
        self,
        connection: ClientConnection,
        rooms: RoomRouter,
        store: MessageStore,
        membership: MembershipService,
        settings: ChatSettings,
    ) -> None:
        self.connection = connection
        self.rooms = rooms
        self.store = store
        self.membership = membership
        self.settings = settings
        self.state = (
            SessionState.AUTHENTICATED
            if connection.principal is not None
            else SessionState.UNAUTHENTICATED
        )

    @property
    def joined(self) -> set:
        return self.rooms.rooms_of(self.connection)

    def send_connected(self) -> None:
        """Tell the client it was admitted (private, once)."""
        self.connection.deliver(frame(ServerEvent.CONNECTED, {
            "connectionId": self.connection.id,
            "userId": self.connection.principal.userId if self.connection.principal else None,
        }))

    def _error(self, message: str) -> None:
        self.connection.deliver(error_frame(message))

    async def handle(self, raw: Any) -> None:
        """Dispatch one inbound frame. Never raises."""
        if self.state == SessionState.DISCONNECTED:
            return
        try:
            try:
                inbound = InboundFrame.model_validate(raw)
            except PydanticValidationError as e:
                raise ValidationError(f"Invalid event frame ({_first_error(e)})") from e

            if inbound.event == ClientEvent.JOIN_WORKSPACE:
                await self.join_workspace(self._workspace_ref(inbound.data))
            elif inbound.event == ClientEvent.LEAVE_WORKSPACE:
                self.leave_workspace(self._workspace_ref(inbound.data))
            elif inbound.event == ClientEvent.SEND_MESSAGE:
                try:
                    payload = SendMessagePayload.model_validate(inbound.data)
                except PydanticValidationError as e:
                    raise ValidationError(_first_error(e)) from e
                await self.send_message(payload)
        except PersistenceError as e:
            logger.error("[Chat] Store failure on connection %s: %s", self.connection.id, e.message)
            self._error(SEND_FAILED)
        except CollabFlowError as e:
            self._error(e.message)
        except Exception:
            logger.exception("[Chat] Unexpected failure on connection %s", self.connection.id)
            self._error(SEND_FAILED)

    @staticmethod
    def _workspace_ref(data: Any) -> str:
        try:
            return WorkspaceRef(workspaceId=data).workspaceId
        except PydanticValidationError as e:
            raise ValidationError("Workspace ID is required") from e

    async def join_workspace(self, workspace_id: str) -> None:
        """Subscribe to a workspace room.

        Membership is not checked unless ``require_membership_to_join`` is
        set; posting and history always require it.
        """
        if self.settings.require_membership_to_join:
            await self.membership.require_member(self._principal().userId, workspace_id)
        self.rooms.join(self.connection, workspace_id)

    def leave_workspace(self, workspace_id: str) -> None:
        self.rooms.leave(self.connection, workspace_id)

    async def send_message(self, payload: SendMessagePayload) -> None:
        """Check membership, persist, then broadcast ``newMessage`` to the room.

        Raises:
            AuthenticationError: No principal on the connection.
            AuthorizationError: Sender is not a member of the workspace.
            ValidationError: Content exceeds the configured limit.
            PersistenceError: The store failed.
        """
        principal = self._principal()
        if len(payload.content) > self.settings.max_content_length:
            raise ValidationError(
                f"content exceeds {self.settings.max_content_length} characters"
            )

        await self.membership.require_member(principal.userId, payload.workspaceId)

        # Held across append + broadcast so live order equals history order.
        async with self.store.workspace_lock(payload.workspaceId):
            message = await self.store.append(
                payload.workspaceId, principal.userId, payload.content
            )
            delivered = self.rooms.broadcast(
                payload.workspaceId, frame(ServerEvent.NEW_MESSAGE, message)
            )

        logger.info(
            "[Chat] %s posted %s to %s (%d recipient(s))",
            principal.userId, message.id, payload.workspaceId, delivered,
        )

    def _principal(self):
        principal = self.connection.principal
        if principal is None:
            raise AuthenticationError("Authentication required")
        return principal

    def disconnect(self) -> None:
        """Enter the terminal state and drop every room membership."""
        if self.state == SessionState.DISCONNECTED:
            return
        self.state = SessionState.DISCONNECTED
        self.rooms.leave_all(self.connection)
