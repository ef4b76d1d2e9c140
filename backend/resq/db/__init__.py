"""
Database access for the ResQ core.

- PostgreSQL (or any SQLAlchemy URL in tests): system of record for
  medical records, the staff access ledger and the disclosure audit trail.
"""

from .postgres import (
    Base,
    db,
    init_db,
    get_db_session,
    configure_engine,
    storage_guard,
    dialect_insert,
)

__all__ = [
    "Base",
    "db",
    "init_db",
    "get_db_session",
    "configure_engine",
    "storage_guard",
    "dialect_insert",
]
