import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.security import create_access_token, hash_password, verify_password
from app.models.user import User, UserCreate, UserPublic, new_sharable_id
from app.services.slot_service import generate_initial_slots
from app.services.timezone import format_utc_offset, offset_to_minutes

logger = logging.getLogger(__name__)


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: int) -> User | None:
    return await session.get(User, user_id)


async def get_user_by_sharable_id(session: AsyncSession, sharable_id: str) -> User | None:
    result = await session.execute(select(User).where(User.sharable_id == sharable_id))
    return result.scalar_one_or_none()


async def create_user(session: AsyncSession, data: UserCreate) -> User:
    timezone = format_utc_offset(offset_to_minutes(data.timezone))
    user = User(
        email=data.email.lower(),
        name=data.name.strip(),
        timezone=timezone,
        hashed_password=hash_password(data.password),
    )
    session.add(user)
    await session.flush()
    await session.refresh(user)
    return user


def user_to_public(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        email=user.email,
        name=user.name,
        sharable_id=user.sharable_id,
        timezone=user.timezone,
    )


def make_access_token(user_id: int) -> tuple[str, int]:
    return create_access_token(user_id), settings.access_token_expire_minutes * 60


async def _generate_initial_slots_best_effort(session: AsyncSession, user: User) -> None:
    """Signup must succeed even when slot generation fails; the savepoint keeps the user row."""
    try:
        async with session.begin_nested():
            created = await generate_initial_slots(session, user.id)
        logger.info("Initial slots generated for user %s: %d", user.id, created)
    except Exception as e:
        logger.exception("Failed to generate initial slots for user %s: %s", user.id, e)


async def signup_user(session: AsyncSession, data: UserCreate) -> tuple[User, str, int] | None:
    """Returns (user, access_token, expires_in), or None when the email is taken."""
    existing = await get_user_by_email(session, data.email)
    if existing:
        return None
    user = await create_user(session, data)
    logger.info("New user signed up: %s - %s", user.id, user.email)
    await _generate_initial_slots_best_effort(session, user)
    token, expires_in = make_access_token(user.id)
    return user, token, expires_in


async def login_user(
    session: AsyncSession, email: str, password: str
) -> tuple[User, str, int] | None:
    user = await get_user_by_email(session, email)
    if not user or not verify_password(password, user.hashed_password):
        return None
    token, expires_in = make_access_token(user.id)
    logger.info("User logged in: %s - %s", user.id, user.email)
    return user, token, expires_in


async def regenerate_sharable_id(session: AsyncSession, user: User) -> str:
    """Rotate the public calendar handle; links using the old one stop resolving at once."""
    old = user.sharable_id
    user.sharable_id = new_sharable_id()
    session.add(user)
    await session.flush()
    logger.info("Sharable id regenerated for user %s: %s -> %s", user.id, old, user.sharable_id)
    return user.sharable_id
