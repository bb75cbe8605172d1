"""
Database module for pgsearchpath.

This module provides schema handles, connection management and
PostgreSQL search_path selection.
"""

from pgsearchpath.db.connection import (
    ConnectionConfig,
    Storage,
    do_statement,
)
from pgsearchpath.db.search_path import (
    SEARCH_PATH_PATTERN,
    SearchPathMixin,
    set_search_path_on,
    validate_search_path,
)
from pgsearchpath.db.schema import (
    PgSearchPathSchema,
    Schema,
)

__all__ = [
    # Connection management
    "ConnectionConfig",
    "Storage",
    "do_statement",
    # Search path
    "SEARCH_PATH_PATTERN",
    "SearchPathMixin",
    "set_search_path_on",
    "validate_search_path",
    # Schema handles
    "PgSearchPathSchema",
    "Schema",
]
