"""
Base model configuration for SQLAlchemy ORM.

Provides the declarative base and the abstract model shared by every
billing table.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from license_billing.models.base.mixins import TimestampMixin

# Create declarative base
Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with an integer surrogate key.

    Domain entities are not mutated through the model; writes go through
    repositories and reads are converted to frozen schemas.
    """

    __abstract__ = True

    id: Mapped[int] = mapped_column(
        Integer,
        primary_key=True,
        autoincrement=True,
        comment="Surrogate primary key",
    )

    def to_dict(self, exclude: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Convert model instance to dictionary.

        Args:
            exclude: List of column names to exclude

        Returns:
            Dictionary representation with wire-formatted values
        """
        exclude = exclude or []
        result = {}

        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.name)
            if isinstance(value, (datetime, date)):
                result[column.name] = value.isoformat()
            elif isinstance(value, Decimal):
                result[column.name] = str(value)
            elif hasattr(value, "value"):
                result[column.name] = value.value
            else:
                result[column.name] = value

        return result

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={getattr(self, 'id', None)})>"


class TimestampModel(BaseModel, TimestampMixin):
    """Base model with automatic timestamp tracking."""

    __abstract__ = True
