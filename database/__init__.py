"""
Database Module - Narrative Pipeline

Structure:
    database/
    ├── __init__.py      # This file - public API
    ├── session.py       # SQLAlchemy async session management
    ├── init.py          # Database initialization utilities
    └── models/          # SQLAlchemy ORM models

Usage:
    from database import get_session
    from database.models import Post, ItemInsight

    async with get_session() as session:
        result = await session.execute(select(Post))
        posts = result.scalars().all()
"""

# SQLAlchemy Models
from .models import (
    Base,
    TimestampMixin,
    Post,
    ItemInsight,
    EntityInsight,
    RunHistory,
)

# Session Management
from .session import (
    init_engine,
    close_engine,
    create_tables,
    get_session,
    get_session_dependency,
)

# Initialization utilities
from .init import (
    init_database_async,
    run_migrations,
)

__all__ = [
    # SQLAlchemy Models
    "Base",
    "TimestampMixin",
    "Post",
    "ItemInsight",
    "EntityInsight",
    "RunHistory",
    # Session Management
    "init_engine",
    "close_engine",
    "create_tables",
    "get_session",
    "get_session_dependency",
    # Init utilities
    "init_database_async",
    "run_migrations",
]
