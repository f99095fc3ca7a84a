from typing import AsyncIterator
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from isodoc.core.config import get_settings
from isodoc.models.base import Base

settings = get_settings()

engine = create_async_engine(settings.DATABASE_URL, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False)

async def init_db(db_engine=None):
    """Create any missing tables."""
    async with (db_engine or engine).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

async def get_session() -> AsyncIterator[AsyncSession]:
    async with SessionLocal() as session:
        yield session
