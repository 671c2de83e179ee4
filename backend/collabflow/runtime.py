"""Wiring of the chat core components for one application instance.

The runtime is built lazily on first use (or eagerly by the app lifespan)
so importing the application has no side effects on disk.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request

from collabflow.auth.service import CredentialVerifier
from collabflow.chat.gate import ConnectionGate
from collabflow.chat.rooms import RoomRouter
from collabflow.chat.store import MessageStore
from collabflow.config import AppConfig, get_config
from collabflow.storage import Database
from collabflow.workspaces import MembershipService, WorkspaceDirectory

logger = logging.getLogger(__name__)


@dataclass
class ChatRuntime:
    config: AppConfig
    db: Database
    directory: WorkspaceDirectory
    membership: MembershipService
    verifier: CredentialVerifier
    gate: ConnectionGate
    rooms: RoomRouter
    store: MessageStore

    @classmethod
    def build(cls, config: AppConfig) -> "ChatRuntime":
        db = Database.get_instance(config.database.path)
        directory = WorkspaceDirectory(db)
        jwt_cfg = config.secrets.jwt
        verifier = CredentialVerifier(jwt_cfg.secret_key, jwt_cfg.algorithm)
        logger.info("Chat runtime ready (db=%s)", db.path)
        return cls(
            config=config,
            db=db,
            directory=directory,
            membership=MembershipService(directory),
            verifier=verifier,
            gate=ConnectionGate(verifier),
            rooms=RoomRouter(),
            store=MessageStore(db),
        )

    def close(self) -> None:
        Database.reset_instance()


def runtime_for(app: FastAPI) -> ChatRuntime:
    """Return the app's runtime, building it on first access."""
    runtime: Optional[ChatRuntime] = getattr(app.state, "runtime", None)
    if runtime is None:
        config: Optional[AppConfig] = getattr(app.state, "config", None)
        runtime = ChatRuntime.build(config or get_config())
        app.state.runtime = runtime
    return runtime


def get_runtime(request: Request) -> ChatRuntime:
    """FastAPI dependency returning the current ChatRuntime."""
    return runtime_for(request.app)
