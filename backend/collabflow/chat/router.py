"""Chat router providing WebSocket and HTTP endpoints.

This module provides:
    - GET /workspaces/{workspace_id}/messages: Recent message history
    - WebSocket /ws/chat: Real-time chat messaging

The WebSocket protocol:
    1. Client connects with ?token=<jwt> (or Authorization: Bearer)
       → refused with close code 1008 if the token is missing or invalid
       → Server sends: {event: "connected", data: {connectionId, userId}}
    2. Client sends: {event: "joinWorkspace", data: "<workspaceId>"}
    3. Client sends: {event: "sendMessage", data: {workspaceId, content}}
       → Server broadcasts: {event: "newMessage", data: {...message}}
       → or privately: {event: "messageError", data: {message}}
    4. Client sends: {event: "leaveWorkspace", data: "<workspaceId>"}
    5. On disconnect → connection leaves every room
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from collabflow.auth.dependencies import get_current_principal
from collabflow.auth.service import Principal
from collabflow.errors import AuthenticationError, CollabFlowError, PersistenceError, ValidationError
from collabflow.runtime import ChatRuntime, get_runtime, runtime_for

from .gate import REFUSE_CODE, handshake_token
from .rooms import ClientConnection
from .schemas import error_frame
from .session import ChatSession

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


def _parse_limit(raw: Optional[str], default: int, maximum: int) -> int:
    if raw is None or raw == "":
        return default
    try:
        limit = int(raw)
    except ValueError:
        raise ValidationError("limit must be a positive integer")
    if limit < 1:
        raise ValidationError("limit must be a positive integer")
    return min(limit, maximum)


@router.get("/workspaces/{workspace_id}/messages")
async def get_workspace_messages(
    workspace_id: str,
    limit: Optional[str] = Query(None, description="Number of most recent messages to return"),
    principal: Principal = Depends(get_current_principal),
    runtime: ChatRuntime = Depends(get_runtime),
) -> JSONResponse:
    """Get the most recent messages of a workspace, oldest first.

    Used by clients to bootstrap their view before live ``newMessage``
    events arrive.

    Args:
        workspace_id: The workspace ID.
        limit: Number of messages (positive integer, default 50, clamped
               to the configured maximum).

    Returns:
        JSON with success flag, message and the messages array.

    Example:
        GET /workspaces/abc123/messages?limit=2
    """
    if not workspace_id.strip():
        raise ValidationError("Workspace ID is required")

    chat_cfg = runtime.config.chat
    count = _parse_limit(limit, chat_cfg.history_default_limit, chat_cfg.history_max_limit)

    try:
        await runtime.membership.require_member(principal.userId, workspace_id)
        messages = await runtime.store.recent(workspace_id, count)
    except CollabFlowError:
        raise
    except Exception as e:
        logger.exception("[Chat] History fetch failed for workspace %s", workspace_id)
        raise PersistenceError("Failed to fetch messages") from e

    return JSONResponse({
        "success": True,
        "message": "Messages fetched successfully",
        "messages": [m.model_dump(mode="json") for m in messages],
    })


@router.websocket("/ws/chat")
async def websocket_chat_endpoint(websocket: WebSocket) -> None:
    """WebSocket endpoint for real-time workspace chat.

    SECURITY MODEL:
        - The handshake token is verified before accept(); a refused
          handshake never reaches the session handler
        - The sender identity always comes from the verified token
        - Membership is re-checked on every send

    Args:
        websocket: The WebSocket connection.
    """
    runtime = runtime_for(websocket.app)

    try:
        principal = runtime.gate.admit(handshake_token(websocket))
    except AuthenticationError as e:
        logger.info("[WS] Handshake refused: %s", e.message)
        await websocket.close(code=REFUSE_CODE, reason=e.message)
        return

    await websocket.accept()

    connection = ClientConnection(
        websocket.send_json,
        principal=principal,
        on_failure=runtime.rooms.leave_all,
    )
    connection.start()
    session = ChatSession(
        connection,
        runtime.rooms,
        runtime.store,
        runtime.membership,
        runtime.config.chat,
    )
    session.send_connected()
    logger.info("[WS] Connection %s open for user %s", connection.id, principal.userId)

    try:
        # Frames of one connection are handled strictly one after another.
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(message.get("code", 1000), message.get("reason"))
            text = message.get("text")
            if text is None:
                connection.deliver(error_frame("Invalid JSON frame"))
                continue
            try:
                data = json.loads(text)
            except (ValueError, RecursionError):
                connection.deliver(error_frame("Invalid JSON frame"))
                continue
            await session.handle(data)
    except WebSocketDisconnect:
        logger.info("[WS] Connection %s disconnected", connection.id)
    finally:
        session.disconnect()
        connection.close()
