"""
Credential Database Connection Module

This module manages the synchronous database connection that backs the
credential store. Reads sit on the hot path of every outbound request and
must not await, so the store uses plain SQLModel sessions against a local
database (SQLite by default).

Key Components:
    - create_credential_engine: Builds the engine for a database URL.
    - get_db_session: A context manager for sessions with logging.
    - create_db_and_tables: Creates the credential table on startup.
"""

import time
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from console_session.core.config.settings import Settings, settings as default_settings
from console_session.core.logging import logger
from console_session.domain.entities.stored_credential import StoredCredential


def create_credential_engine(
    database_url: Optional[str] = None,
    app_settings: Optional[Settings] = None,
) -> Engine:
    """
    Create the engine for the credential database.

    In-memory SQLite URLs get a static pool so every session sees the same
    database for the lifetime of the engine.

    Args:
        database_url: Explicit URL; defaults to CREDENTIAL_DATABASE_URL.
        app_settings: Settings to read defaults from.

    Returns:
        Engine: A configured SQLAlchemy engine.
    """
    cfg = app_settings or default_settings
    url = database_url or cfg.CREDENTIAL_DATABASE_URL

    kwargs = {"echo": cfg.CREDENTIAL_DATABASE_ECHO}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {
            "check_same_thread": False,
            "timeout": cfg.CREDENTIAL_DATABASE_TIMEOUT_SECONDS,
        }
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool

    engine = create_engine(url, **kwargs)
    logger.debug("credential_engine_created", dialect=engine.dialect.name)
    return engine


@contextmanager
def get_db_session(engine: Engine) -> Generator[Session, None, None]:
    """
    Context manager for database sessions with logging.

    Rolls back on error and always closes the session.

    Yields:
        Session: A database session
    """
    session = Session(engine)
    start_time = time.time()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
        logger.debug(
            "database_session_closed",
            execution_time=round(time.time() - start_time, 6),
        )


def create_db_and_tables(engine: Engine) -> None:
    """
    Creates the credential table with logging.
    """
    start_time = time.time()
    SQLModel.metadata.create_all(engine, tables=[StoredCredential.__table__])
    execution_time = time.time() - start_time
    logger.info(
        "database_tables_created",
        execution_time=execution_time,
        tables=[StoredCredential.__tablename__],
    )
