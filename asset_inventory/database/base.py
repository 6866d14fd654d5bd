# asset_inventory/database/base.py
"""
SQLAlchemy declarative base and FastAPI session dependency.

All inventory and archive tables share one MetaData with a naming
convention so constraint names stay stable between SQLite and PostgreSQL.
"""

from typing import AsyncGenerator

from sqlalchemy import MetaData
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.declarative import declarative_base

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Declarative base for all models
Base = declarative_base(metadata=MetaData(naming_convention=NAMING_CONVENTION))


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency function for FastAPI routes that need a session.

    The session commits when the route returns normally and rolls back when it
    raises, so archive actions either fully apply or leave no trace.

    Yields:
        AsyncSession: Async database session
    """
    from ..services.database_service import database_service

    async with database_service.get_session() as session:
        yield session
