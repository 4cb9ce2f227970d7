from functools import lru_cache
from typing import Any, AsyncGenerator, Dict

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from carefinder.config import Settings, get_settings


def engine_options(settings: Settings) -> Dict[str, Any]:
    options: Dict[str, Any] = {"echo": False, "pool_pre_ping": True}
    if settings.database_url.startswith("postgresql+asyncpg"):
        # The server abandons a statement once its tier budget has passed
        timeout_ms = str(int(settings.tier_timeout_seconds * 1000))
        options["connect_args"] = {"server_settings": {"statement_timeout": timeout_ms}}
    return options


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    # Built on first use so importing the API does not require a reachable database
    settings = get_settings()
    return create_async_engine(settings.database_url, **engine_options(settings))


@lru_cache(maxsize=1)
def get_session_maker() -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(get_engine(), expire_on_commit=False)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with get_session_maker()() as session:
        yield session


async def dispose_engine() -> None:
    if get_engine.cache_info().currsize:
        await get_engine().dispose()
