"""
SQLAlchemy model mixins for reusable functionality.
"""

from sqlalchemy import Column, DateTime, Integer
from sqlalchemy.sql import func


class TimestampMixin:
    """
    Mixin for automatic timestamp tracking.

    Provides created_at and updated_at fields maintained by the store.
    """

    created_at = Column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        index=True,
        comment="Record creation timestamp (UTC)"
    )
    updated_at = Column(
        DateTime,
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        comment="Record last update timestamp (UTC)"
    )


class GuidMixin:
    """
    Mixin for the public 6-digit numeric identifier.

    Values are supplied by a reference generator; the unique constraint
    turns a collision into a failed insert.
    """

    guid = Column(
        Integer,
        nullable=False,
        unique=True,
        index=True,
        comment="Public identifier (100000-999999)"
    )
