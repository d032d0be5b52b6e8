"""Database engine and session factory for the contact store."""

from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from practice_crm.infrastructure.config.settings import settings

# Built on first use; in-memory mode never touches the database
_engine: Optional[Engine] = None
_session_factory: Optional[sessionmaker] = None


def get_engine() -> Engine:
    """
    Get the shared engine, creating it from DATABASE_URL on first call.

    Raises:
        ValueError: If DATABASE_URL is not configured
    """
    global _engine
    if _engine is None:
        if not settings.database_url:
            raise ValueError("DATABASE_URL is required when CONTACT_REPOSITORY=postgres")
        _engine = create_engine(
            settings.database_url,
            pool_pre_ping=True,
            echo=settings.debug_mode,
        )
    return _engine


def get_db_session() -> Session:
    """
    Open a session for one repository call; the caller closes it.

    Returns:
        SQLAlchemy session instance
    """
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(autocommit=False, autoflush=False, bind=get_engine())
    return _session_factory()


def dispose_engine() -> None:
    """Close pooled connections (application shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None
