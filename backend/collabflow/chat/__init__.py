"""Realtime workspace chat.

Components:
    - ConnectionGate: authenticates the WebSocket handshake.
    - RoomRouter: workspace rooms and broadcast delivery.
    - ChatSession: per-connection event handling.
    - MessageStore: message persistence and history reads.
"""

from .gate import ConnectionGate
from .rooms import ClientConnection, RoomRouter
from .schemas import Message, MessageSender
from .session import ChatSession, SessionState
from .store import MessageStore

__all__ = [
    "ConnectionGate",
    "ClientConnection",
    "RoomRouter",
    "Message",
    "MessageSender",
    "ChatSession",
    "SessionState",
    "MessageStore",
]
