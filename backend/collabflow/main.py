"""CollabFlow Backend Application.

This is the main entry point for the CollabFlow realtime chat service.
CollabFlow is a team-collaboration app (workspaces, tasks, whiteboard, chat);
this service hosts the chat core.

Modules:
    - chat: WebSocket chat rooms and message history
    - workspaces: membership checks against the store
    - auth: bearer JWT verification
    - storage: DuckDB persistence
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from collabflow import __version__
from collabflow.chat.router import router as chat_router
from collabflow.config import AppConfig, get_config
from collabflow.errors import register_error_handlers
from collabflow.runtime import runtime_for

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

# Silence verbose third-party loggers.
for _noisy in (
    "httpx",
    "httpcore",
    "websockets",
    "uvicorn.access",
):
    logging.getLogger(_noisy).setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown events."""
    # Startup
    config: AppConfig = app.state.config or get_config()

    # Apply configured log level to root logger so that
    # `logging.level: "debug"` in collabflow.settings.yaml activates DEBUG output.
    configured_level = getattr(logging, config.logging.level.upper(), None)
    if configured_level is not None:
        logging.getLogger().setLevel(configured_level)
        logger.info("Root logger level set to %s", config.logging.level.upper())

    runtime = runtime_for(app)
    logger.info(
        f"Server running on http://{config.server.host}:{config.server.port} "
        f"(database={runtime.db.path})"
    )

    yield  # Application runs here

    # Shutdown
    runtime.close()
    app.state.runtime = None
    logger.info("Application shutdown complete")


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        config: Configuration to use. Defaults to the process-wide config,
                loaded from YAML on first use.
    """
    app = FastAPI(
        title="CollabFlow API",
        description="Realtime workspace chat for CollabFlow",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.runtime = None

    origins = (config or get_config()).server.allowed_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    register_error_handlers(app)
    app.include_router(chat_router)

    @app.get("/health")
    async def health() -> dict:
        """Health check endpoint.

        Returns:
            dict: Status object indicating the server is running.
        """
        return {"status": "ok"}

    return app


app = create_app()
