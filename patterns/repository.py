"""Async repository pattern for database access.

Provides a generic base repository with CRUD operations and atomic set
membership on association tables. Verticals subclass this to add
domain-specific queries.

Example: TaskRepository extending BaseRepository.
"""

from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy import Table, delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFound
from core.models.base import Base

# ---------------------------------------------------------------------------
# Type variable for model classes
# ---------------------------------------------------------------------------

ModelT = TypeVar("ModelT", bound=Base)

_IMMUTABLE_COLUMNS = ("id", "created_at")


# ---------------------------------------------------------------------------
# Base repository
# ---------------------------------------------------------------------------

class BaseRepository(Generic[ModelT]):
    """Generic async repository with CRUD + atomic set membership.

    Subclass and set `model` (and `label`, used in NotFound messages)::

        class TaskRepository(BaseRepository[Task]):
            model = Task
            label = "Task"

            async def search(self, query: str):
                stmt = select(self.model).where(self.model.title.ilike(f"%{query}%"))
                result = await self.session.execute(stmt)
                return list(result.scalars().all())

    The repository never commits; the caller owns the transaction.
    """

    model: type[ModelT]
    label: str = "Item"
    immutable: tuple[str, ...] = ()

    def __init__(self, session: AsyncSession):
        self.session = session

    # -- Get by ID --

    async def get(self, item_id: str) -> ModelT | None:
        """Get a single row by ID, or None."""
        return await self.session.get(self.model, item_id)

    async def require(self, item_id: str) -> ModelT:
        """Get a single row by ID or raise NotFound."""
        item = await self.get(item_id)
        if item is None:
            raise NotFound.of(self.label)
        return item

    async def get_many(self, item_ids: Sequence[str]) -> list[ModelT]:
        if not item_ids:
            return []
        stmt = select(self.model).where(self.model.id.in_(list(item_ids)))
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    # -- Create --

    async def create(self, data: dict[str, Any]) -> ModelT:
        """Create a new row and flush it so defaults (id, timestamps) are set."""
        item = self.model(**data)
        self.session.add(item)
        await self.session.flush()
        return item

    # -- Update --

    async def update(self, item_id: str, data: dict[str, Any]) -> ModelT:
        """Update an existing row. Raises NotFound if absent.

        Immutable columns (ids, creators, parents) are silently skipped.
        """
        item = await self.require(item_id)

        for key, value in data.items():
            if key in _IMMUTABLE_COLUMNS or key in self.immutable:
                continue
            if hasattr(item, key):
                setattr(item, key, value)

        await self.session.flush()
        return item

    # -- Delete --

    async def delete(self, item_id: str) -> bool:
        """Delete a row. Returns True if deleted, False if not found."""
        result = await self.session.execute(
            delete(self.model).where(self.model.id == item_id)
        )
        return result.rowcount > 0

    async def delete_where(self, *criteria) -> int:
        """Bulk delete. Returns the number of rows removed."""
        result = await self.session.execute(delete(self.model).where(*criteria))
        return result.rowcount or 0

    # -- Set membership --

    def insert_ignoring_duplicates(self, table: Table):
        """INSERT construct that skips rows rejected by a unique constraint.

        Chain .values() or .from_select() on the result. PostgreSQL and
        SQLite only.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            return pg_insert(table)
        if dialect == "sqlite":
            return sqlite_insert(table)
        raise NotImplementedError(f"Conflict-free inserts are not supported on {dialect}")

    async def add_member(self, table: Table, **values: Any) -> bool:
        """Atomic add-if-absent on an association table.

        Relies on the table's unique constraint: a single
        INSERT ... ON CONFLICT DO NOTHING, so concurrent callers never
        duplicate a member. Returns True if a row was inserted.
        """
        stmt = self.insert_ignoring_duplicates(table).values(**values).on_conflict_do_nothing()
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def remove_member(self, table: Table, **values: Any) -> bool:
        """Single-statement removal. Returns True if a row was removed."""
        criteria = [table.c[name] == value for name, value in values.items()]
        result = await self.session.execute(delete(table).where(*criteria))
        return result.rowcount > 0
