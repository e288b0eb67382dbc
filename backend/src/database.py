"""SQLAlchemy async database setup."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from src.config import settings

engine = create_async_engine(settings.database_url, echo=settings.debug)
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency for services that open one short session per operation.

    Background tasks outlive the request-scoped session, so the conversation
    store takes the factory instead of a session.
    """
    return async_session
