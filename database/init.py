"""
Database Initialization and Utilities
"""
from loguru import logger


async def init_database_async() -> None:
    """
    Create all tables from the ORM models.

    For development/testing only - use Alembic migrations for production.
    """
    from .session import create_tables
    await create_tables()
    logger.info("Database initialized with SQLAlchemy")


def run_migrations() -> None:
    """Run pending Alembic migrations."""
    from alembic.config import Config
    from alembic import command
    from config import settings

    alembic_cfg = Config(str(settings.BASE_DIR / "alembic.ini"))
    command.upgrade(alembic_cfg, "head")
    logger.info("Database migrations completed")
