"""
Database configuration.

Engine and session factory creation from ``DatabaseSettings``.
"""
from typing import Optional
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stagegate.settings import DatabaseSettings


logger = logging.getLogger(__name__)


# =============================================================================
# ENGINE CREATION
# =============================================================================

def create_engine_from_settings(settings: Optional[DatabaseSettings] = None) -> Engine:
    """
    Create SQLAlchemy engine.

    In-memory SQLite shares one connection across the engine so every
    session sees the same database.

    Args:
        settings: Database settings (loaded from the environment when None)

    Returns:
        Configured engine
    """
    settings = settings or DatabaseSettings()
    url = settings.database_url
    logger.info(f"Creating database engine: {url}")

    if url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") == "sqlite:"):
        return create_engine(
            url,
            echo=settings.echo_sql,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

    if url.startswith("sqlite"):
        return create_engine(url, echo=settings.echo_sql, connect_args={"check_same_thread": False})

    return create_engine(url, echo=settings.echo_sql, pool_pre_ping=True)


# =============================================================================
# SESSION FACTORY
# =============================================================================

def get_session_factory(engine: Engine) -> sessionmaker:
    """
    Get session factory.

    Returns:
        Session factory for creating sessions
    """
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
    )


# =============================================================================
# DATABASE INITIALIZATION
# =============================================================================

def init_database(engine: Engine) -> None:
    """
    Initialize database.

    Creates all tables if they don't exist.
    """
    from stagegate.infrastructure.database.models import Base

    logger.info("Initializing database...")
    Base.metadata.create_all(engine)
    logger.info("✅ Database initialized successfully")
