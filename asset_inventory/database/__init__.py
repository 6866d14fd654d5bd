"""Database package: declarative base, ORM models and session dependency."""

from .base import Base, get_db

__all__ = ["Base", "get_db"]
