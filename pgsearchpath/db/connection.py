"""
Database connection management for pgsearchpath.

``Storage`` plays the role of the connection manager a schema handle talks
to: it owns the SQLAlchemy engine, holds at most one live connection, and
runs every ``on_connect_call`` hook against each new physical DBAPI
connection before that connection is handed out for queries.

Connect info is accepted in one shape only: a ``ConnectionConfig`` or a
mapping with a non-empty ``dsn`` key.
"""

import logging
from collections.abc import Mapping
from contextlib import contextmanager
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Generator, List, Optional

from sqlalchemy import create_engine, event as sa_event
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.engine.url import URL
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session
from sqlalchemy.pool import QueuePool

from pgsearchpath.exceptions import ConnectionError, UnsupportedConfigError

logger = logging.getLogger(__name__)

# Called with the raw DBAPI connection each time a physical connection opens.
OnConnectHook = Callable[[Any], None]

# Accepted spellings in mapping-style connect info
_KEY_ALIASES = {"pass": "password"}


def _normalize_hooks(value: Any) -> List[OnConnectHook]:
    """Turn an absent, single, or sequence ``on_connect_call`` into a new list."""
    if value is None:
        return []
    if callable(value):
        return [value]
    if isinstance(value, (list, tuple)):
        hooks = list(value)
        for hook in hooks:
            if not callable(hook):
                raise UnsupportedConfigError(
                    f"on_connect_call entries must be callable, got {hook!r}"
                )
        return hooks
    raise UnsupportedConfigError(
        f"on_connect_call must be a callable or a list of callables, got {value!r}"
    )


@dataclass
class ConnectionConfig:
    """Connect info for a schema handle.

    ``on_connect_call`` is an ordered list of hooks; each receives the raw
    DBAPI connection right after it is established.
    """

    dsn: str
    user: Optional[str] = None
    password: Optional[str] = None
    on_connect_call: List[OnConnectHook] = field(default_factory=list)
    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 3600
    pool_pre_ping: bool = True
    auto_commit: bool = True
    echo: bool = False

    @classmethod
    def from_connect_info(cls, connect_info: Any) -> "ConnectionConfig":
        """
        Build a fresh ``ConnectionConfig`` from supported connect info.

        The input is never mutated; existing hooks are copied in order.

        Raises:
            UnsupportedConfigError: If connect_info is not a ConnectionConfig
                or a mapping with a non-empty ``dsn``.
        """
        if isinstance(connect_info, ConnectionConfig):
            return replace(
                connect_info,
                on_connect_call=_normalize_hooks(connect_info.on_connect_call),
            )

        if not isinstance(connect_info, Mapping) or not connect_info.get("dsn"):
            raise UnsupportedConfigError(
                "Only mapping style connect info with a 'dsn' key is supported, "
                f"got {type(connect_info).__name__}"
            )

        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in connect_info.items():
            name = _KEY_ALIASES.get(key, key)
            if name not in known:
                raise UnsupportedConfigError(f"Unknown connect info key: {key!r}")
            kwargs[name] = value
        kwargs["on_connect_call"] = _normalize_hooks(kwargs.get("on_connect_call"))
        return cls(**kwargs)

    def add_on_connect_call(self, hook: OnConnectHook) -> "ConnectionConfig":
        """Append a hook after any existing ones."""
        if not callable(hook):
            raise UnsupportedConfigError(f"on_connect_call hook must be callable, got {hook!r}")
        self.on_connect_call.append(hook)
        return self

    def get_connection_url(self) -> URL:
        """Parse ``dsn`` and overlay explicit user/password."""
        url = make_url(self.dsn)
        if self.user is not None:
            url = url.set(username=self.user)
        if self.password is not None:
            url = url.set(password=self.password)
        return url

    def engine_kwargs(self) -> dict:
        kwargs = dict(
            poolclass=QueuePool,
            pool_size=self.pool_size,
            max_overflow=self.max_overflow,
            pool_timeout=self.pool_timeout,
            pool_recycle=self.pool_recycle,
            pool_pre_ping=self.pool_pre_ping,
            echo=self.echo,
        )
        if self.auto_commit:
            kwargs["isolation_level"] = "AUTOCOMMIT"
        return kwargs


def do_statement(dbapi_connection: Any, statement: str, params: Optional[tuple] = None) -> None:
    """Execute one statement on a raw DBAPI connection.

    Commits afterwards unless the connection is in autocommit mode, so
    session-level settings survive the end of the implicit transaction.
    """
    cursor = dbapi_connection.cursor()
    try:
        if params is None:
            cursor.execute(statement)
        else:
            cursor.execute(statement, params)
    finally:
        cursor.close()
    if not getattr(dbapi_connection, "autocommit", False):
        dbapi_connection.commit()


class Storage:
    """
    Owns the engine and the live connection for one schema handle.

    """

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self._engine: Optional[Engine] = None
        self._connection: Optional[Connection] = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def engine(self) -> Engine:
        """The SQLAlchemy engine, created on first use."""
        if self._engine is None:
            self._engine = create_engine(
                self.config.get_connection_url(), **self.config.engine_kwargs()
            )
            sa_event.listen(self._engine, "connect", self._run_on_connect_calls)
            logger.debug("Created engine for %s", self.url)
        return self._engine

    @property
    def url(self) -> str:
        return self.config.get_connection_url().render_as_string(hide_password=True)

    def _run_on_connect_calls(self, dbapi_connection, connection_record) -> None:
        # Runs before the pool hands the connection out; an exception here
        # fails the connect attempt.
        for hook in list(self.config.on_connect_call):
            hook(dbapi_connection)

    @property
    def connected(self) -> bool:
        """``True`` while a live, valid connection is held."""
        conn = self._connection
        return conn is not None and not conn.closed and not conn.invalidated

    def ensure_connected(self) -> Connection:
        """Return the live connection, (re)connecting if needed.

        Raises ``ConnectionError`` if PostgreSQL is unreachable.
        """
        if self.connected:
            return self._connection

        if self._connection is not None:
            # Invalidated by a disconnect; the pool will open a new one.
            self._connection.close()
            self._connection = None

        try:
            self._connection = self.engine.connect()
        except DBAPIError as e:
            logger.error("PostgreSQL connection failed: %s", e)
            raise ConnectionError(
                f"PostgreSQL connection to {self.url} failed: {e}", operation="connect"
            ) from e

        logger.info("Connected to %s", self.url)
        return self._connection

    def disconnect(self) -> None:
        """Close the live connection and every pooled physical connection.

        The next use of the storage opens a brand new physical connection,
        which runs the ``on_connect_call`` hooks again.
        """
        if self._connection is not None:
            self._connection.close()
            self._connection = None
        if self._engine is not None:
            logger.info("Closing database connection pool")
            self._engine.dispose()

    def close(self) -> None:
        """Dispose of the engine entirely."""
        self.disconnect()
        self._engine = None

    # ------------------------------------------------------------------
    # Statement helpers
    # ------------------------------------------------------------------

    def dbh_do(
        self,
        fn: Callable[..., Any],
        *args: Any,
        operation: Optional[str] = None,
        value: Optional[str] = None,
    ) -> Any:
        """Run ``fn(storage, dbapi_connection, *args)`` on the live connection.

        Driver errors are re-raised as ``ConnectionError``.  If the driver
        reports a disconnect the held connection is invalidated so the next
        call reconnects.  ``operation`` and ``value`` are carried on the
        raised error.
        """
        operation = operation or getattr(fn, "__name__", "dbh_do")
        conn = self.ensure_connected()
        dbapi_connection = conn.connection.dbapi_connection
        dialect = self.engine.dialect

        try:
            return fn(self, dbapi_connection, *args)
        except dialect.loaded_dbapi.Error as e:
            if dialect.is_disconnect(e, dbapi_connection, None):
                logger.warning("Connection lost during %s, invalidating: %s", operation, e)
                conn.invalidate(e)
            elif not getattr(dbapi_connection, "autocommit", False):
                self._rollback_after_error(conn, dbapi_connection, operation)
            raise ConnectionError(
                f"{operation} failed: {e}", operation=operation, value=value
            ) from e

    def _rollback_after_error(self, conn: Connection, dbapi_connection: Any, operation: str) -> None:
        try:
            dbapi_connection.rollback()
        except self.engine.dialect.loaded_dbapi.Error as e:
            logger.warning("Rollback after failed %s failed, invalidating: %s", operation, e)
            conn.invalidate(e)

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Transactional scope on the live connection.

        Auto-commits on success, rolls back on error.
        """
        session = Session(bind=self.ensure_connected(), autoflush=False)
        try:
            yield session
            session.commit()
        except Exception as e:
            session.rollback()
            logger.error("Database transaction failed, rolling back: %s", e)
            raise
        finally:
            session.close()
