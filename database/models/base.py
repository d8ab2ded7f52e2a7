"""
SQLAlchemy Base Model and Mixins
"""
from datetime import datetime
from typing import Any, Dict

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    def to_dict(self) -> Dict[str, Any]:
        """Column values keyed by column name."""
        return {c.name: getattr(self, c.name) for c in self.__table__.columns}

    def __repr__(self) -> str:
        class_name = self.__class__.__name__
        pk = self.__mapper__.primary_key_from_instance(self)
        return f"<{class_name}(pk={pk[0] if len(pk) == 1 else pk})>"


class TimestampMixin:
    """
    Adds created_at / updated_at.

    Usage:
        class MyModel(Base, TimestampMixin):
            ...
    """
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=func.now(),
        nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=func.now(),
        onupdate=func.now(),
        nullable=True
    )
