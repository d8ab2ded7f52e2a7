"""
Base Repository Pattern with SQLAlchemy

Provides common async CRUD operations for all repositories.
"""
from datetime import datetime
from typing import TypeVar, Generic, Optional, Type, Any
import uuid

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from database.models.base import Base


# Generic type for model classes
ModelT = TypeVar("ModelT", bound=Base)


class BaseRepository(Generic[ModelT]):
    """
    Base repository with common async database operations.

    Subclasses set the `model` class attribute to their ORM class.

    Example:
        class PostRepository(BaseRepository[Post]):
            model = Post
    """

    model: Type[ModelT]

    def __init__(self, session: AsyncSession):
        self.session = session

    # ============================================
    # READ OPERATIONS
    # ============================================

    async def get(self, entity_id: Any) -> Optional[ModelT]:
        """Get entity by primary key, or None."""
        return await self.session.get(self.model, entity_id)

    async def count(self) -> int:
        """Count all rows."""
        stmt = select(func.count()).select_from(self.model)
        result = await self.session.execute(stmt)
        return result.scalar_one()

    # ============================================
    # WRITE OPERATIONS
    # ============================================

    async def add(self, entity: ModelT) -> ModelT:
        """
        Add a new entity.

        Returns:
            Added entity with any auto-generated values
        """
        self.session.add(entity)
        await self.session.flush()
        return entity

    # ============================================
    # UTILITY METHODS
    # ============================================

    @staticmethod
    def generate_id(prefix: str = "") -> str:
        """Unique timestamped ID with optional prefix."""
        unique_part = uuid.uuid4().hex[:12]
        timestamp = datetime.now().strftime('%Y%m%d%H%M%S')
        base_id = f"{timestamp}_{unique_part}"
        return f"{prefix}_{base_id}" if prefix else base_id

    @staticmethod
    def now() -> datetime:
        """Get current datetime."""
        return datetime.now()
