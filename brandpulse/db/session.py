"""Async engine and session factory construction.

No module-level engine: callers (worker tasks, tests) build their own so the
engine is bound to the event loop that uses it.
"""

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine


def create_engine_and_session_factory(
    url: str,
    **engine_kwargs,
) -> tuple[AsyncEngine, async_sessionmaker[AsyncSession]]:
    if url.startswith("postgresql"):
        engine_kwargs.setdefault("pool_size", 10)
        engine_kwargs.setdefault("max_overflow", 10)
        engine_kwargs.setdefault("pool_pre_ping", True)
    engine = create_async_engine(url, echo=False, **engine_kwargs)
    return engine, async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
