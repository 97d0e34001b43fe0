"""Database session management."""
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from license_billing.core.config import settings

engine = create_engine(
    settings.database.database_url,
    pool_pre_ping=settings.database.DB_POOL_PRE_PING,
    echo=settings.database.DB_ECHO,
)

# Create SessionLocal class
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """
    Yield a request-scoped database session.

    Usage:
        for db in get_db():
            licenses = GlobalLicenseService(db)
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind: Engine = None) -> None:
    """Create all tables known to the declarative metadata."""
    from license_billing.models import Base

    Base.metadata.create_all(bind=bind or engine)
