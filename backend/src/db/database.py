"""
Database connection and session management.

This module provides SQLAlchemy engine configuration for PostgreSQL
(production) and SQLite (development and tests).
"""

import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session


# Load environment variables from .env file at the repository root
env_path = Path(__file__).parent.parent.parent.parent / '.env'
if env_path.exists():
    load_dotenv(dotenv_path=env_path)

# Database URL from environment variable
DATABASE_URL = os.environ.get(
    "REMINDERS_DB_URL",
    "sqlite:///./reminders.db"
)


# Use different parameters for SQLite vs PostgreSQL
if DATABASE_URL.startswith("sqlite"):
    # SQLite doesn't support pool_size, max_overflow, or pool_recycle.
    # Scans run in worker threads, so same-thread checks are disabled.
    engine_kwargs = {
        "connect_args": {"check_same_thread": False},
        "echo": False,
        "future": True,
    }
    if ":memory:" in DATABASE_URL or DATABASE_URL == "sqlite://":
        from sqlalchemy.pool import StaticPool
        engine_kwargs["poolclass"] = StaticPool
    engine = create_engine(DATABASE_URL, **engine_kwargs)
else:
    # PostgreSQL with connection pooling
    engine = create_engine(
        DATABASE_URL,
        pool_size=10,          # One connection per concurrent scan or request
        max_overflow=10,       # Additional connections beyond pool_size
        pool_pre_ping=True,    # Verify connections before checkout
        pool_recycle=3600,     # Recycle connections after 1 hour
        echo=False,
        future=True
    )


# Session factory for creating database sessions
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    future=True
)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency for FastAPI routes to get database session.

    Yields:
        Session: SQLAlchemy database session

    Usage:
        @router.get("/notifications")
        async def list_notifications(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Initialize database tables.

    This should only be called during initial setup or testing.
    For production, use Alembic migrations instead.
    """
    from backend.src.models import Base
    Base.metadata.create_all(bind=engine)


def dispose_engine():
    """
    Dispose of the engine and close all connections.

    Useful for cleanup on shutdown and in tests.
    """
    engine.dispose()
