"""
Shared SQLAlchemy base and helpers.
"""
from datetime import datetime, UTC

from sqlalchemy.orm import declarative_base

# PostgreSQL-only types must compile under SQLite during tests.
from .. import sqlite_compiler_shims  # noqa: F401
from ..types import UTCDateTime  # noqa: F401 - re-exported for model modules


def now_utc():
    """Return an aware UTC datetime for default/updated timestamps."""
    return datetime.now(UTC)


Base = declarative_base()
