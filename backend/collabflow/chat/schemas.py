"""Pydantic schemas for the realtime chat protocol.

Wire frames are JSON objects ``{"event": <name>, "data": <payload>}`` in both
directions. Inbound payloads are validated here so handlers never see
missing or mistyped fields.

Client → Server:
    - joinWorkspace:  data = "<workspaceId>"
    - leaveWorkspace: data = "<workspaceId>"
    - sendMessage:    data = {"workspaceId": str, "content": str}

Server → Client:
    - connected:    {"connectionId", "userId"} (private, once)
    - newMessage:   full Message record (room broadcast)
    - messageError: {"message": str} (private)
"""
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr, field_validator


class ClientEvent(str, Enum):
    JOIN_WORKSPACE = "joinWorkspace"
    LEAVE_WORKSPACE = "leaveWorkspace"
    SEND_MESSAGE = "sendMessage"


class ServerEvent(str, Enum):
    CONNECTED = "connected"
    NEW_MESSAGE = "newMessage"
    MESSAGE_ERROR = "messageError"


class InboundFrame(BaseModel):
    """Envelope for every client frame."""
    model_config = ConfigDict(extra="forbid")

    event: ClientEvent
    data: Any = None


class WorkspaceRef(BaseModel):
    """Payload of joinWorkspace / leaveWorkspace (a bare workspace id)."""
    workspaceId: StrictStr = Field(..., min_length=1)

    @field_validator("workspaceId")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("workspaceId is required")
        return v


class SendMessagePayload(BaseModel):
    """Payload of sendMessage."""
    workspaceId: StrictStr = Field(..., min_length=1)
    content: StrictStr

    @field_validator("workspaceId")
    @classmethod
    def _workspace_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("workspaceId is required")
        return v

    @field_validator("content")
    @classmethod
    def _content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("content cannot be empty")
        return v


class MessageSender(BaseModel):
    """Denormalized projection of the sender, attached at read time."""
    id: str
    name: Optional[str] = None
    profileImage: Optional[str] = None
    email: Optional[str] = None


class Message(BaseModel):
    """Immutable chat message as persisted and broadcast.

    Attributes:
        id: Unique message identifier (UUID).
        workspaceId: Workspace the message was posted to.
        senderId: User ID of the author.
        content: Non-empty message text.
        createdAt: Persistence timestamp (UTC).
        sender: Author projection (id, name, profileImage, email).
    """
    id: str = Field(..., description="Unique message ID")
    workspaceId: str = Field(..., description="Workspace the message belongs to")
    senderId: str = Field(..., description="User ID of the sender")
    content: str = Field(..., description="Message content")
    createdAt: datetime = Field(..., description="Creation time (UTC)")
    sender: MessageSender


def frame(event: ServerEvent, data: Any) -> dict:
    """Build an outbound wire frame."""
    if isinstance(data, BaseModel):
        data = data.model_dump(mode="json")
    return {"event": event.value, "data": data}


def error_frame(message: str) -> dict:
    return frame(ServerEvent.MESSAGE_ERROR, {"message": message})
