from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from fleetwatch.core.config import get_settings

settings = get_settings()

engine = create_async_engine(settings.database_url, future=True, pool_pre_ping=True)

AsyncSessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
