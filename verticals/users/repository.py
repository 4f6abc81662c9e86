"""User directory repository — read access for reference validation."""

from typing import Sequence

from fastapi import Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_session
from patterns.repository import BaseRepository
from verticals.tasks.models.refs import UserSnapshot
from verticals.users.models.db_models import User


class UserRepository(BaseRepository[User]):
    """Repository for user lookups."""

    model = User
    label = "User"

    async def find_by_email(self, email: str) -> User | None:
        stmt = select(User).where(func.lower(User.email) == email.strip().lower())
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def snapshots(self, user_ids: Sequence[str]) -> dict[str, UserSnapshot]:
        """Map of id -> snapshot for every id that exists."""
        users = await self.get_many(sorted(set(user_ids)))
        return {u.id: to_snapshot(u) for u in users}


def to_snapshot(user: User) -> UserSnapshot:
    return UserSnapshot(
        id=user.id,
        first_name=user.first_name or "",
        last_name=user.last_name or "",
        email=user.email,
    )


# ---------------------------------------------------------------------------
# FastAPI dependency factory
# ---------------------------------------------------------------------------

def get_user_repository(
    session: AsyncSession = Depends(get_session),
) -> UserRepository:
    """FastAPI dependency for UserRepository."""
    return UserRepository(session)
