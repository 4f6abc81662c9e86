"""Users API router — directory lookup used when inviting participants."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.middleware import require_user
from verticals.users.repository import UserRepository, get_user_repository

router = APIRouter(dependencies=[Depends(require_user)])


class UserSearch(BaseModel):
    email: str = Field(..., min_length=1)


@router.post("/search")
async def search_user(
    request: UserSearch,
    repo: UserRepository = Depends(get_user_repository),
):
    """Look a user up by email (case-insensitive)."""
    user = await repo.find_by_email(request.email)
    if user is None:
        return {"exists": False, "message": "User not found"}
    return {"exists": True, "user": user.to_dict()}
