from collections.abc import AsyncGenerator
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from app.core.config import settings


def _async_url_and_options(database_url: str) -> tuple[str, dict[str, Any]]:
    """Map a plain postgresql:// URL onto asyncpg; other async URLs pass through.

    asyncpg does not accept psycopg params like sslmode/channel_binding, so those
    are stripped and SSL is enabled via connect_args instead.
    """
    parsed = urlparse(database_url)
    if parsed.scheme not in ("postgresql", "postgresql+asyncpg"):
        return database_url, {}
    query = parse_qs(parsed.query, keep_blank_values=True)
    sslmode = query.pop("sslmode", [None])[0]
    query.pop("channel_binding", None)
    url = urlunparse(
        ("postgresql+asyncpg", parsed.netloc, parsed.path, parsed.params, urlencode(query, doseq=True), parsed.fragment)
    )
    options: dict[str, Any] = {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 10}
    if sslmode and sslmode != "disable":
        options["connect_args"] = {"ssl": True}
    return url, options


async_database_url, _engine_options = _async_url_and_options(settings.database_url)

engine = create_async_engine(
    async_database_url,
    echo=settings.env == "development",
    **_engine_options,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
