from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.api.schemas.auth import SharableIdResponse
from app.core.db import get_session
from app.models.user import User, UserPublic
from app.services.auth_service import regenerate_sharable_id, user_to_public

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserPublic)
async def get_profile(current_user: User = Depends(get_current_user)) -> UserPublic:
    return user_to_public(current_user)


@router.post("/me/regenerate-sharable-id", response_model=SharableIdResponse)
async def regenerate_my_sharable_id(
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> SharableIdResponse:
    sharable_id = await regenerate_sharable_id(session, current_user)
    return SharableIdResponse(sharable_id=sharable_id, message="Sharable ID regenerated successfully")
