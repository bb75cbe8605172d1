"""
Schema handles.

A ``Schema`` is the long-lived, application facing object standing for "the
database": a table ``MetaData`` plus a ``Storage`` that manages the physical
connection underneath it.  ``PgSearchPathSchema`` adds PostgreSQL
search_path selection on top.
"""

import logging
from contextlib import contextmanager
from typing import Any, Generator, Optional

from sqlalchemy import MetaData
from sqlalchemy.orm import Session

from pgsearchpath.config.settings import SchemaConfig
from pgsearchpath.db.connection import ConnectionConfig, Storage
from pgsearchpath.db.search_path import SearchPathMixin
from pgsearchpath.exceptions import UsageError

logger = logging.getLogger(__name__)


class Schema:
    """
    Logical database handle, independent of any one physical connection.

    Args:
        metadata: Table definitions deployed by ``deploy()``.
        config: Handle settings; defaults to ``SchemaConfig()``.
    """

    storage_class = Storage

    def __init__(self, metadata: Optional[MetaData] = None, config: Optional[SchemaConfig] = None):
        self.metadata = metadata if metadata is not None else MetaData()
        self.config = config if config is not None else SchemaConfig()
        self._storage: Optional[Storage] = None

    def connection(self, connect_info: Any) -> "Schema":
        """Attach a storage built from connect_info and return the handle."""
        config = ConnectionConfig.from_connect_info(connect_info)
        if self._storage is not None:
            self._storage.close()
        self._storage = self.storage_class(config)
        logger.info("Schema connected to %s", self._storage.url)
        return self

    @property
    def storage(self) -> Storage:
        if self._storage is None:
            raise UsageError("Schema has no storage. Call connection() first.")
        return self._storage

    def deploy(self) -> None:
        """Create the metadata's tables in the active search path."""
        with self.storage.session_scope() as session:
            self.metadata.create_all(session.connection())
        logger.info("Deployed %d tables", len(self.metadata.tables))

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Yield an ORM session on the live connection."""
        with self.storage.session_scope() as session:
            yield session


class PgSearchPathSchema(SearchPathMixin, Schema):
    """Schema handle with a PostgreSQL search_path that persists across reconnects."""
