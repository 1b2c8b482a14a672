from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from salonbook.core.config import settings


def _async_database_url(url: str) -> tuple[str, dict]:
    """Map a sync-style URL to its async driver; returns (url, connect_args).

    asyncpg does not accept psycopg params like sslmode/channel_binding, so they
    are stripped and SSL is enabled via connect_args instead.
    """
    parsed = urlparse(url)
    if parsed.scheme not in ("postgresql", "postgres", "postgresql+asyncpg"):
        return url, {}
    query = parse_qs(parsed.query, keep_blank_values=True)
    ssl = query.pop("sslmode", ["disable"])[0] not in ("disable", "allow")
    query.pop("channel_binding", None)
    new_query = urlencode(query, doseq=True)
    async_url = urlunparse(
        ("postgresql+asyncpg", parsed.netloc, parsed.path, parsed.params, new_query, parsed.fragment)
    )
    return async_url, ({"ssl": True} if ssl else {})


async_database_url, _connect_args = _async_database_url(settings.database_url)

engine = create_async_engine(
    async_database_url,
    echo=settings.env == "development",
    pool_pre_ping=True,
    connect_args=_connect_args,
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


async def init_db() -> None:
    """Create tables if using create_all; prefer Alembic in production."""
    import salonbook.models  # noqa: F401 - register tables

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
