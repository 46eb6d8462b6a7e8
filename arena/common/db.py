"""
Database session and engine factory functions.

CRITICAL: This module does NOT create engine at import time.
Services must call create_engine_from_url() explicitly with
their configuration.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker


def create_engine_from_url(
    database_url: str,
    pool_pre_ping: bool = True,
    pool_size: int = 5,
    max_overflow: int = 10,
    echo: bool = False
) -> Engine:
    """
    Create SQLAlchemy engine from database URL.

    Args:
        database_url: Database connection URL
        pool_pre_ping: Enable connection health checks
        pool_size: Number of connections to maintain
        max_overflow: Maximum overflow connections
        echo: Enable SQL query logging

    Returns:
        Engine: Configured SQLAlchemy engine

    Note:
        SQLite does not accept pool sizing arguments and needs
        check_same_thread disabled to be shared by worker threads.
    """
    if database_url.startswith("sqlite"):
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            echo=echo
        )

    return create_engine(
        database_url,
        pool_pre_ping=pool_pre_ping,
        pool_size=pool_size,
        max_overflow=max_overflow,
        echo=echo
    )


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    """
    Create session factory from engine.

    Args:
        engine: SQLAlchemy engine instance

    Returns:
        sessionmaker: Session factory for creating database sessions
    """
    return sessionmaker(
        autocommit=False,
        autoflush=False,
        expire_on_commit=False,
        bind=engine
    )
