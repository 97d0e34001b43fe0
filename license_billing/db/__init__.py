"""Database engine and session helpers."""

from license_billing.db.session import SessionLocal, engine, get_db, init_db

__all__ = ["SessionLocal", "engine", "get_db", "init_db"]
