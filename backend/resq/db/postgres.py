"""
PostgreSQL connection via SQLAlchemy with psycopg3.

This is the authoritative store for records, ledger entries and audit
entries. Any SQLAlchemy URL is accepted so tests can run on SQLite.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, exc
from sqlalchemy.orm import sessionmaker, scoped_session, declarative_base

from resq.config import config
from resq.errors import StorageUnavailableError

logger = logging.getLogger("db.postgres")

# SQLAlchemy base for model declarations
Base = declarative_base()

# Engine and session factory (initialized lazily)
_engine = None
_session_factory = None

# Errors meaning "the store went away", as opposed to a semantic failure
TRANSIENT_ERRORS = (exc.OperationalError, exc.InterfaceError, exc.DisconnectionError)


def _normalize_url(url: str) -> str:
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+psycopg://", 1)
    return url


def configure_engine(url: str, **engine_kwargs):
    """Bind the module-level engine and session factory to ``url``.

    Replaces any previously configured engine. Returns the new engine.
    """
    global _engine, _session_factory
    if _session_factory is not None:
        _session_factory.remove()
    if _engine is not None:
        _engine.dispose()

    url = _normalize_url(url)
    if url.startswith("postgresql"):
        engine_kwargs.setdefault("pool_pre_ping", True)  # Verify connections before use
        engine_kwargs.setdefault("pool_recycle", 300)  # Recycle connections every 5 minutes
        engine_kwargs.setdefault("pool_reset_on_return", "rollback")

    _engine = create_engine(url, echo=config.DEBUG, **engine_kwargs)
    _session_factory = scoped_session(
        sessionmaker(bind=_engine, autocommit=False, autoflush=False, expire_on_commit=False)
    )
    return _engine


def get_engine():
    """Get or create the SQLAlchemy engine."""
    if _engine is None:
        configure_engine(config.get_database_url())
    return _engine


def get_db_session():
    """Get a scoped database session.

    Returns the thread-local session from the scoped session factory.
    The session is cleaned up at the end of each request via close_db_session().
    """
    if _session_factory is None:
        get_engine()
    return _session_factory()


def init_db():
    """Initialize database tables (for development/testing)."""
    # Import models so they register with Base.metadata
    from resq import models  # noqa: F401

    Base.metadata.create_all(bind=get_engine())


def close_db_session(exception=None):
    """Remove the current session (call at end of request).

    Always rollback to ensure clean state for next request,
    then remove the session from the registry.
    """
    if _session_factory is None:
        return
    try:
        _session_factory.rollback()
    finally:
        _session_factory.remove()


def rollback_session():
    """Explicitly rollback the current session.

    Call this at the start of a request to ensure clean state,
    especially after a previous request may have left the session dirty.
    """
    if _session_factory is not None:
        session = _session_factory()
        if session.is_active:
            session.rollback()


def dialect_insert(session, model):
    """INSERT construct supporting ON CONFLICT for the session's dialect."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Atomic upsert is not supported on {dialect}")
    return insert(model)


@contextmanager
def storage_guard(session, operation: str):
    """Translate connection-level failures into StorageUnavailableError.

    The session is rolled back on any error before it propagates.
    """
    try:
        yield session
    except TRANSIENT_ERRORS as e:
        logger.error(f"Storage unavailable during {operation}: {e.__class__.__name__}")
        session.rollback()
        raise StorageUnavailableError() from e
    except Exception:
        session.rollback()
        raise


# Alias for convenience
db = Base
