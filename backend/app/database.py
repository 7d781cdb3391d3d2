"""Database engine, session factory, and declarative base.

Every tenant-owned table carries an ``organization_id`` column; the
request's organization comes from the JWT (see ``app.tenancy``).

``get_db()`` is the transaction boundary for a request: services only
flush, the session commits once the route returns and rolls back on any
exception, so a bill generation or payment is applied completely or
not at all.
"""

from sqlalchemy.ext.asyncio import (
    AsyncSession,
    create_async_engine,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=20,
    max_overflow=10,
)

async_session = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncSession:
    """Yield a session that commits on success and rolls back on error."""
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
