"""TaskHub API — FastAPI entry point.

Registers middleware, routers, error handlers and lifecycle hooks. Each
vertical adds its own router under /api/{vertical}/; the realtime socket
lives at /ws.
"""

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.errors import register_error_handlers
from api.middleware import IdentityMiddleware, RequestLogMiddleware
from core.database import Database
from core.logging_setup import get_logger
from core.realtime import Broadcaster
from patterns.domain_config import TaskHubConfig

logger = get_logger(__name__)

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup/shutdown hooks."""
    config: TaskHubConfig = app.state.config
    database: Database = app.state.database
    broadcaster: Broadcaster = app.state.broadcaster

    await database.connect()
    # Schema migrations are managed outside the app except in dev and SQLite
    if config.env == "dev" or config.database.is_sqlite:
        await database.create_all()
    await broadcaster.start()
    logger.info("TaskHub API started", extra={"extra_data": {"env": config.env}})

    yield

    await broadcaster.stop()
    await database.dispose()
    logger.info("TaskHub API shut down")


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------

def create_app(config: Optional[TaskHubConfig] = None) -> FastAPI:
    config = config or TaskHubConfig.from_env()

    app = FastAPI(
        title="TaskHub",
        description="Task hierarchy consistency engine with real-time task chat",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.database = Database(config.database)
    app.state.broadcaster = Broadcaster(queue_size=config.realtime.queue_size)

    # Identity must be set before request logging and routing run
    app.add_middleware(RequestLogMiddleware)
    app.add_middleware(IdentityMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    # -----------------------------------------------------------------------
    # Routers: verticals register here
    # -----------------------------------------------------------------------

    from verticals.chat.router import router as chat_router
    from verticals.chat.socket import router as socket_router
    from verticals.tasks.router import router as tasks_router
    from verticals.users.router import router as users_router

    app.include_router(tasks_router, prefix="/api/tasks", tags=["Tasks"])
    app.include_router(chat_router, prefix="/api/chat", tags=["Chat"])
    app.include_router(users_router, prefix="/api/users", tags=["Users"])
    app.include_router(socket_router)

    @app.get("/api/health")
    async def health():
        return {"status": "ok", "version": VERSION}

    return app


app = create_app()
