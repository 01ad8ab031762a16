import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.api.schemas.auth import LoginRequest, SignupRequest, TokenResponse
from app.core.db import get_session
from app.models.user import User, UserCreate, UserPublic
from app.services.auth_service import login_user, signup_user, user_to_public

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    body: SignupRequest,
    session: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Create a provider account; its first slots (today through end of next month) are generated here."""
    result = await signup_user(
        session,
        UserCreate(email=body.email, password=body.password, name=body.name, timezone=body.timezone),
    )
    if not result:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="User already exists",
        )
    user, token, expires_in = result
    return TokenResponse(access_token=token, expires_in=expires_in, user=user_to_public(user))


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
) -> TokenResponse:
    result = await login_user(session, body.email, body.password)
    if not result:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
        )
    user, token, expires_in = result
    return TokenResponse(access_token=token, expires_in=expires_in, user=user_to_public(user))


@router.get("/me", response_model=UserPublic)
async def me(current_user: User = Depends(get_current_user)) -> UserPublic:
    return user_to_public(current_user)
