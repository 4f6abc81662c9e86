"""Async SQLAlchemy database engine and session management.

Provides the persistence layer as a lifecycle-managed object:
- Connection pooling (configurable pool_size/max_overflow; SQLite serializes writers)
- FastAPI dependency injection via get_session()
- Explicit transaction scopes via Database.transaction()
- Startup/shutdown via connect()/dispose(), called from the app lifespan
"""

import asyncio
from contextlib import asynccontextmanager, nullcontext
from typing import AsyncGenerator

from fastapi import Request
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from patterns.domain_config import DatabaseConfig


# ---------------------------------------------------------------------------
# Engine & session factory
# ---------------------------------------------------------------------------

class Database:
    """Owns the engine and session factory for one application instance.

    Usage::

        db = Database(DatabaseConfig(url="sqlite+aiosqlite://"))
        await db.connect()
        async with db.transaction() as session:
            session.add(item)
        await db.dispose()
    """

    def __init__(self, config: DatabaseConfig):
        self.config = config
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._write_lock: asyncio.Lock | None = None

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("Database is not connected")
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        if self._session_factory is None:
            raise RuntimeError("Database is not connected")
        return self._session_factory

    async def connect(self) -> None:
        if self._engine is not None:
            return

        if self.config.is_sqlite:
            # In-memory databases only survive on one shared connection
            pool = {"poolclass": StaticPool} if self.config.is_memory else {}
            engine = create_async_engine(self.config.url, echo=self.config.echo, **pool)
            # SQLite allows one writer; units of work run one at a time
            self._write_lock = asyncio.Lock()
            event.listen(engine.sync_engine, "connect", _configure_sqlite_connection)
            event.listen(engine.sync_engine, "begin", _begin_sqlite_transaction)
        else:
            engine = create_async_engine(
                self.config.url,
                pool_size=self.config.pool_size,
                max_overflow=self.config.max_overflow,
                echo=self.config.echo,
                pool_pre_ping=True,
            )

        self._engine = engine
        self._session_factory = async_sessionmaker(
            engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    async def create_all(self) -> None:
        """Initialize database tables from models (dev/test only)."""
        from core.models.base import Base
        import verticals.users.models.db_models  # noqa: F401
        import verticals.tasks.models.db_models  # noqa: F401
        import verticals.chat.models.db_models  # noqa: F401

        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def dispose(self) -> None:
        """Dispose of the connection pool on shutdown."""
        if self._engine is not None:
            await self._engine.dispose()
        self._engine = None
        self._session_factory = None
        self._write_lock = None

    @asynccontextmanager
    async def transaction(self) -> AsyncGenerator[AsyncSession, None]:
        """One unit of work: commit on success, rollback on error.

        On SQLite, scopes are serialized so two requests never share a
        BEGIN. Do not open a transaction inside another one.
        """
        async with self._write_lock or nullcontext():
            async with self.session_factory() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise


def _configure_sqlite_connection(dbapi_connection, connection_record) -> None:
    # Let SQLAlchemy emit BEGIN itself so rollbacks cover every statement
    dbapi_connection.isolation_level = None
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _begin_sqlite_transaction(conn) -> None:
    conn.exec_driver_sql("BEGIN")


# ---------------------------------------------------------------------------
# FastAPI dependencies
# ---------------------------------------------------------------------------

def get_database(request: Request) -> Database:
    return request.app.state.database


async def get_session(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session with automatic commit/rollback.

    Usage in FastAPI routes::

        @router.get("/items")
        async def list_items(session: AsyncSession = Depends(get_session)):
            result = await session.execute(select(Item))
            return result.scalars().all()
    """
    async with get_database(request).transaction() as session:
        yield session
