"""Database session and engine."""

from helpdesk.db.session import engine, AsyncSessionLocal, get_db

__all__ = ["engine", "AsyncSessionLocal", "get_db"]
