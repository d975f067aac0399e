from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from violation_service.core.config import settings


def _engine_kwargs(url: str) -> dict:
    kwargs = {"pool_pre_ping": True}
    if not url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_recycle=settings.DB_POOL_RECYCLE,
        )
    return kwargs


engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    autoflush=False,
    expire_on_commit=False,
)


async def aget_db() -> AsyncGenerator[AsyncSession, None]:
    async with AsyncSessionLocal() as db:
        yield db


@asynccontextmanager
async def unit_of_work(db: AsyncSession):
    """Run a block of reads and writes as one transaction.

    Commits when the block exits normally; any exception rolls everything back
    and is re-raised unchanged.
    """
    try:
        yield db
        await db.commit()
    except Exception:
        await db.rollback()
        raise


async def init_models() -> None:
    from violation_service.models.base import Base
    import violation_service.models.directory  # noqa: F401
    import violation_service.models.violations  # noqa: F401
    import violation_service.models.appeals  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
