"""
PostgreSQL search_path support for schema handles.

A schema handle mixing in ``SearchPathMixin`` targets one of several
PostgreSQL schemas that share the same table structure.  The selected
search path is stored on the handle and re-applied by an ``on_connect_call``
hook every time the storage opens a new physical connection, so it survives
disconnects and reconnects without the caller doing anything.

The term *search path* is used for a PostgreSQL schema throughout, to
avoid confusion with the ``Schema`` handle class.

Only the characters ``[A-Za-z0-9_]`` are accepted in a search path name.
``CREATE SCHEMA`` / ``DROP SCHEMA`` do not accept a bound parameter for the
schema name, so the name is interpolated into those statements as a quoted
identifier, and this allow-list (which excludes ``"``) is what keeps that
safe.  Quoting keeps the name's exact case and allows names such as
``1tenant`` or ``user``, matching what ``SET search_path`` selects.  That
statement takes a bound parameter and always uses one.
"""

import re
import threading
from typing import Any, Optional

from pgsearchpath.db.connection import ConnectionConfig, do_statement
from pgsearchpath.exceptions import ConnectionError, UsageError, ValidationError
from pgsearchpath.logging_config import (
    get_logger,
    log_search_path_change,
    log_search_path_ddl,
)

logger = get_logger(__name__)

SEARCH_PATH_PATTERN = re.compile(r"^[A-Za-z0-9_]+$")

SET_SEARCH_PATH_SQL = "SET search_path = %s"
CREATE_SCHEMA_SQL = 'CREATE SCHEMA IF NOT EXISTS "{search_path}"'
DROP_SCHEMA_SQL = 'DROP SCHEMA IF EXISTS "{search_path}" CASCADE'


def validate_search_path(search_path: Any, operation: str) -> str:
    """
    Check a search path name against the allow-list.

    Args:
        search_path: Candidate name.
        operation: Name of the calling operation, reported in the error.

    Returns:
        The validated name.

    Raises:
        ValidationError: If the name is empty, not a string, or contains
            anything other than letters, numbers and _.
    """
    if not isinstance(search_path, str) or not SEARCH_PATH_PATTERN.fullmatch(search_path):
        raise ValidationError(search_path, operation)
    return search_path


def set_search_path_on(dbapi_connection: Any, search_path: str) -> None:
    """Issue ``SET search_path`` on a raw DBAPI connection."""
    validate_search_path(search_path, "set_search_path")
    do_statement(dbapi_connection, SET_SEARCH_PATH_SQL, (search_path,))


def _dbh_set_search_path(storage, dbapi_connection, search_path: str) -> None:
    set_search_path_on(dbapi_connection, search_path)


def _dbh_create_search_path(storage, dbapi_connection, search_path: str) -> None:
    do_statement(dbapi_connection, CREATE_SCHEMA_SQL.format(search_path=search_path))


def _dbh_drop_search_path(storage, dbapi_connection, search_path: str) -> None:
    do_statement(dbapi_connection, DROP_SCHEMA_SQL.format(search_path=search_path))


class SearchPathMixin:
    """
    Select a PostgreSQL search_path for a schema handle and keep it across
    reconnects.

    Combine with ``Schema`` (see ``PgSearchPathSchema``)::

        schema = PgSearchPathSchema(Base.metadata).connection({
            "dsn": "postgresql+psycopg2://app@localhost/app",
        })
        schema.set_search_path("customer_1")

        # Still customer_1 after the storage reconnects
        schema.storage.disconnect()
        with schema.session_scope() as session:
            session.execute(select(Foo)).all()

    Switching between search paths whose tables differ in structure is not
    supported; SQLAlchemy reflection and the ORM assume the tables match.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._search_path_lock = threading.RLock()
        initial = self.config.search_path
        if initial is not None:
            validate_search_path(initial, "__init__")
        self._search_path: Optional[str] = initial

    def search_path(self, *args) -> Optional[str]:
        """Return the current search path name."""
        # Guard against calling search_path("x") when set_search_path was meant
        if args:
            raise UsageError(
                "search_path() accepts no arguments. Use set_search_path() instead"
            )
        return self._search_path

    def set_search_path(self, search_path: Optional[str] = None) -> None:
        """
        Set the search path for the database connection.

        With no argument (or an empty one) the stored search path is issued
        again; if nothing is stored either, this is a no-op.

        The statement runs on the live connection when one exists; the new
        name is only stored once it succeeded.  Without a live connection
        the name is stored and applied when the storage next connects.

        Raises:
            ValidationError: If the name contains disallowed characters.
            ConnectionError: If the SET statement fails.
        """
        with self._search_path_lock:
            search_path = search_path or self._search_path
            if not search_path:
                return
            validate_search_path(search_path, "set_search_path")

            storage = self._storage
            applied = storage is not None and storage.connected
            if applied:
                try:
                    storage.dbh_do(
                        _dbh_set_search_path,
                        search_path,
                        operation="set_search_path",
                        value=search_path,
                    )
                except ConnectionError:
                    logger.error(
                        "set_search_path_failed",
                        search_path=search_path,
                        current=self._search_path,
                    )
                    raise

            previous = self._search_path
            self._search_path = search_path

        log_search_path_change(logger, search_path, previous, applied)

    def create_search_path(self, search_path: str) -> None:
        """
        Create a PostgreSQL schema with the given name.

        Succeeds whether or not the schema already exists.  Does not change
        the current search path.
        """
        self._search_path_ddl("create", _dbh_create_search_path, search_path)

    def drop_search_path(self, search_path: str) -> None:
        """
        Drop the PostgreSQL schema with the given name, and everything in it.

        Succeeds whether or not the schema exists.  Does not change the
        current search path.
        """
        self._search_path_ddl("drop", _dbh_drop_search_path, search_path)

    def _search_path_ddl(self, operation: str, fn, search_path: str) -> None:
        operation_name = f"{operation}_search_path"
        validate_search_path(search_path, operation_name)
        try:
            self.storage.dbh_do(fn, search_path, operation=operation_name, value=search_path)
        except ConnectionError as e:
            log_search_path_ddl(logger, operation, search_path, success=False, reason=str(e))
            raise
        log_search_path_ddl(logger, operation, search_path, success=True)

    def _on_connect_set_search_path(self, dbapi_connection: Any) -> None:
        """Reconnect hook: apply the stored search path to a new connection."""
        search_path = self._search_path
        if not search_path:
            return
        set_search_path_on(dbapi_connection, search_path)
        logger.debug("search_path_reapplied", search_path=search_path)

    def configure_connection(self, connect_info: Any) -> ConnectionConfig:
        """
        Return a copy of connect_info with the search path hook appended.

        Hooks already present in connect_info are kept and run first.

        Raises:
            UnsupportedConfigError: If connect_info is not a ConnectionConfig
                or a mapping with a ``dsn``.
        """
        config = ConnectionConfig.from_connect_info(connect_info)
        return config.add_on_connect_call(self._on_connect_set_search_path)

    def connection(self, connect_info: Any):
        """Connect the handle, keeping the search path across reconnects."""
        return super().connection(self.configure_connection(connect_info))
