"""
pgsearchpath - PostgreSQL search_path selection for SQLAlchemy schema handles

Lets one schema handle target any of several PostgreSQL schemas that share
the same table structure, and keeps the selected schema in effect across
disconnects and reconnects.
"""

from pgsearchpath._version import __version__
from pgsearchpath.db import ConnectionConfig, PgSearchPathSchema, Schema, SearchPathMixin, Storage
from pgsearchpath.exceptions import (
    ConnectionError,
    PgSearchPathError,
    UnsupportedConfigError,
    UsageError,
    ValidationError,
)

__all__ = [
    "__version__",
    "ConnectionConfig",
    "ConnectionError",
    "PgSearchPathError",
    "PgSearchPathSchema",
    "Schema",
    "SearchPathMixin",
    "Storage",
    "UnsupportedConfigError",
    "UsageError",
    "ValidationError",
]
