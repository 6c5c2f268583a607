import ssl
from collections.abc import AsyncGenerator
from typing import Any
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from textquiz.config import get_settings
from textquiz.core.logging import get_logger

logger = get_logger(__name__)

settings = get_settings()


def prepare_database_url(url: str) -> tuple[str, dict[str, Any]]:
    """
    Normalize a database URL for the async drivers.

    Hosted Postgres URLs carry libpq params (sslmode, channel_binding) that
    asyncpg rejects; they are stripped and SSL is passed via connect_args
    instead. Local hosts and SQLite get no SSL.
    """
    parsed = urlparse(url)
    if parsed.scheme.startswith("sqlite"):
        return url, {}

    params = parse_qs(parsed.query)
    for param in ["sslmode", "channel_binding", "options"]:
        params.pop(param, None)

    clean_url = urlunparse(parsed._replace(query=urlencode(params, doseq=True)))

    hostname = parsed.hostname or ""
    if hostname in ("localhost", "127.0.0.1", "db"):
        return clean_url, {}
    return clean_url, {"ssl": ssl.create_default_context()}


clean_url, connect_args = prepare_database_url(settings.database_url)

engine_kwargs: dict[str, Any] = {
    "echo": settings.debug,
    "pool_pre_ping": True,
    "connect_args": connect_args,
}
if not clean_url.startswith("sqlite"):
    engine_kwargs.update(pool_size=5, max_overflow=10, pool_recycle=280)

engine = create_async_engine(clean_url, **engine_kwargs)

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency that provides a database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            logger.bind(error=str(e)).error("database_transaction_rollback")
            await session.rollback()
            raise
