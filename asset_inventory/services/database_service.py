# asset_inventory/services/database_service.py
"""
Database service for async SQLAlchemy session management.

Provides a singleton service for managing database connections,
sessions, and health checks. Supports both SQLite (development)
and PostgreSQL (production).

Usage:
    from asset_inventory.services.database_service import database_service

    # Get async session (context manager)
    async with database_service.get_session() as session:
        result = await session.execute(select(AssetItem).where(AssetItem.is_temp.is_(False)))
        assets = result.scalars().all()

    # Initialize database (create tables)
    await database_service.init_db()

    # Health check
    health = await database_service.health_check()
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Dict, Any, Optional

from sqlalchemy import func, select, text
from sqlalchemy.pool import StaticPool
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import settings
from ..database.base import Base

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./data/asset_inventory.db"


class DatabaseService:
    """
    Database service for managing async SQLAlchemy sessions.

    Singleton with a global instance. Supports SQLite (development) and
    PostgreSQL (production) with appropriate connection pooling.

    Attributes:
        _engine: Async SQLAlchemy engine
        _session_factory: Async session factory
        _logger: Logger instance

    Methods:
        get_session(): Get async database session (context manager)
        init_db(): Initialize database (create all tables)
        health_check(): Check database connectivity and generation sizes
        close(): Close database engine and connections
    """

    def __init__(self, database_url: Optional[str] = None):
        """
        Initialize database service.

        Args:
            database_url: Explicit URL; defaults to DATABASE_URL from the environment
        """
        self._logger = logging.getLogger("asset_inventory.database")
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker] = None
        self._database_url = database_url or os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)
        self._initialize_engine()

    def _initialize_engine(self) -> None:
        """
        Initialize database engine based on the configured URL.

        SQLite Configuration:
            - Uses aiosqlite async driver
            - check_same_thread=False for async support
            - Creates data directory if needed

        PostgreSQL Configuration:
            - Uses asyncpg async driver
            - Connection pooling from DB_POOL_SIZE / DB_MAX_OVERFLOW
            - Pool pre-ping for connection health
            - Pool recycle from DB_POOL_RECYCLE
        """
        database_url = self._database_url

        self._logger.info(f"Initializing database: {database_url.split('@')[-1].split('?')[0]}")

        if database_url.startswith("sqlite"):
            if ":///" in database_url:
                db_path = database_url.split("///")[1].split("?")[0]
                db_dir = os.path.dirname(db_path)
                if db_dir and db_path != ":memory:" and not os.path.exists(db_dir):
                    os.makedirs(db_dir, exist_ok=True)
                    self._logger.info(f"Created database directory: {db_dir}")

            engine_kwargs = {}
            if ":memory:" in database_url:
                # In-memory databases live on one shared connection
                engine_kwargs["poolclass"] = StaticPool

            self._engine = create_async_engine(
                database_url,
                connect_args={"check_same_thread": False},
                pool_pre_ping=True,
                echo=settings.debug,
                **engine_kwargs,
            )
            self._logger.info("Using SQLite database (development mode)")

        else:
            pool_size = int(os.getenv("DB_POOL_SIZE", "20"))
            max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "40"))
            pool_recycle = int(os.getenv("DB_POOL_RECYCLE", "3600"))

            self._engine = create_async_engine(
                database_url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                pool_pre_ping=True,
                pool_recycle=pool_recycle,
                echo=settings.debug,
            )
            self._logger.info(
                f"Using PostgreSQL database (pool_size={pool_size}, max_overflow={max_overflow})"
            )

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    @property
    def engine(self) -> Optional[AsyncEngine]:
        return self._engine

    @property
    def session_factory(self) -> Optional[async_sessionmaker]:
        return self._session_factory

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get async database session as context manager.

        Automatically handles commit on success and rollback on error.

        Yields:
            AsyncSession: Async database session

        Raises:
            RuntimeError: If database is not initialized
            Exception: Any database errors (triggers rollback)
        """
        if not self._session_factory:
            raise RuntimeError("Database not initialized")

        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def init_db(self) -> None:
        """
        Initialize database by creating all tables.

        Safe to call multiple times (won't recreate existing tables).
        """
        if not self._engine:
            raise RuntimeError("Database engine not initialized")

        self._logger.info("Creating database tables...")

        async with self._engine.begin() as conn:
            # Import all models to ensure they're registered with Base
            from ..database import models  # noqa: F401

            await conn.run_sync(Base.metadata.create_all)

        self._logger.info("Database tables created successfully")

    async def health_check(self) -> Dict[str, Any]:
        """
        Check database connectivity and report generation sizes.

        Returns:
            Dict with health status:
                {
                    "status": "healthy" | "unhealthy",
                    "connected": True | False,
                    "database_type": "sqlite" | "postgresql",
                    "live_assets": count,
                    "staged_assets": count,
                    "archive_records": count,
                    "error": "error message" (if unhealthy)
                }
        """
        db_type = "sqlite" if "sqlite" in self._database_url else "postgresql"
        try:
            from ..database.models import ArchiveRecord, AssetItem

            async with self.get_session() as session:
                await session.execute(text("SELECT 1"))

                live_assets = await session.scalar(
                    select(func.count()).select_from(AssetItem).where(AssetItem.is_temp.is_(False))
                )
                staged_assets = await session.scalar(
                    select(func.count()).select_from(AssetItem).where(AssetItem.is_temp.is_(True))
                )
                archive_records = await session.scalar(select(func.count()).select_from(ArchiveRecord))

            return {
                "status": "healthy",
                "connected": True,
                "database_type": db_type,
                "live_assets": live_assets or 0,
                "staged_assets": staged_assets or 0,
                "archive_records": archive_records or 0,
            }
        except Exception as e:
            self._logger.error(f"Database health check failed: {e}")
            return {
                "status": "unhealthy",
                "connected": False,
                "database_type": db_type,
                "error": str(e),
            }

    async def close(self) -> None:
        """Close database engine and all connections."""
        if self._engine:
            self._logger.info("Closing database connections...")
            await self._engine.dispose()
            self._logger.info("Database connections closed")

    def __repr__(self) -> str:
        db_type = "SQLite" if "sqlite" in self._database_url else "PostgreSQL"
        return f"<DatabaseService(type={db_type})>"


# Global database service instance
database_service = DatabaseService()
