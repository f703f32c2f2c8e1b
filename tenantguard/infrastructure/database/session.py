# tenantguard/infrastructure/database/session.py

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.orm import declarative_base

Base = declarative_base()


def build_engine(database_url: str, **kwargs) -> AsyncEngine:
    options = {"echo": False, "pool_pre_ping": True}
    if not database_url.startswith("sqlite"):
        options.update(pool_size=10, max_overflow=20)
    options.update(kwargs)
    return create_async_engine(database_url, **options)


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        class_=AsyncSession,
    )


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables and the audit immutability triggers."""
    from tenantguard.infrastructure.database import models  # noqa: F401  registers tables

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
