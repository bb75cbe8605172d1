"""
Pytest configuration and shared fixtures for pgsearchpath tests.
"""

import os
import tempfile
from pathlib import Path
from typing import Generator, List, Optional

import pytest
from hypothesis import settings, Verbosity

from pgsearchpath.db.connection import ConnectionConfig
from pgsearchpath.db.schema import PgSearchPathSchema
from pgsearchpath.exceptions import ConnectionError


# Environment variable holding a PostgreSQL DSN for integration tests
TEST_DSN_ENV = "PGSEARCHPATH_TEST_DSN"


class FakeDBAPIError(Exception):
    """Stands in for a driver error raised by cursor.execute()."""


class FakeCursor:
    def __init__(self, connection: "FakeDBAPIConnection"):
        self.connection = connection
        self.closed = False

    def execute(self, statement, params=None):
        if self.connection.fail_with is not None:
            raise self.connection.fail_with
        self.connection.statements.append((statement, params))

    def close(self):
        self.closed = True


class FakeDBAPIConnection:
    """Records statements issued through its cursors."""

    def __init__(self, autocommit: bool = True):
        self.autocommit = autocommit
        self.statements: List[tuple] = []
        self.commits = 0
        self.fail_with: Optional[Exception] = None

    def cursor(self):
        return FakeCursor(self)

    def commit(self):
        self.commits += 1

    def rollback(self):
        pass


class RecordingStorage:
    """
    In-process stand-in for ``Storage``.

    Each "physical connection" is a ``FakeDBAPIConnection``; the
    ``on_connect_call`` hooks run against it before it becomes live, just
    like the SQLAlchemy ``connect`` event does for the real storage.
    """

    error_class = FakeDBAPIError

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self.url = "postgresql://fake/test"
        self.physical_connections: List[FakeDBAPIConnection] = []
        self.fail_with: Optional[Exception] = None
        self._live: Optional[FakeDBAPIConnection] = None

    @property
    def connected(self) -> bool:
        return self._live is not None

    def ensure_connected(self) -> FakeDBAPIConnection:
        if self._live is None:
            conn = FakeDBAPIConnection()
            for hook in list(self.config.on_connect_call):
                hook(conn)
            self.physical_connections.append(conn)
            self._live = conn
        return self._live

    def disconnect(self) -> None:
        self._live = None

    def close(self) -> None:
        self.disconnect()

    def dbh_do(self, fn, *args, operation=None, value=None):
        conn = self.ensure_connected()
        conn.fail_with = self.fail_with
        try:
            return fn(self, conn, *args)
        except FakeDBAPIError as e:
            raise ConnectionError(
                f"{operation} failed: {e}", operation=operation, value=value
            ) from e
        finally:
            conn.fail_with = None

    @property
    def live(self) -> Optional[FakeDBAPIConnection]:
        return self._live

    @property
    def statements(self) -> List[tuple]:
        return [s for conn in self.physical_connections for s in conn.statements]


class RecordingSchema(PgSearchPathSchema):
    storage_class = RecordingStorage


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """
    Create a temporary directory for test files.

    Yields:
        Path to temporary directory that is cleaned up after test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def recording_schema() -> RecordingSchema:
    """
    A search path schema handle connected to a ``RecordingStorage``.

    No physical connection is open yet.
    """
    return RecordingSchema().connection({"dsn": "postgresql://fake/test"})


@pytest.fixture
def make_recording_schema():
    """
    Factory fixture for recording schema handles.

    Usage:
        def test_something(make_recording_schema):
            schema = make_recording_schema(SchemaConfig(search_path=None))
    """
    def _make(config=None, connect_info=None):
        schema = RecordingSchema(config=config)
        if connect_info is None:
            connect_info = {"dsn": "postgresql://fake/test"}
        return schema.connection(connect_info)
    return _make


@pytest.fixture
def fake_connection_factory():
    """Factory for standalone recording DBAPI connections."""
    return FakeDBAPIConnection


@pytest.fixture
def pg_dsn() -> str:
    """
    PostgreSQL DSN for integration tests.

    Skips the test when ``PGSEARCHPATH_TEST_DSN`` is not set.
    """
    dsn = os.getenv(TEST_DSN_ENV)
    if not dsn:
        pytest.skip(f"{TEST_DSN_ENV} not set")
    return dsn


# Hypothesis settings for property-based tests
settings.register_profile("pgsearchpath", max_examples=100, verbosity=Verbosity.normal)
settings.register_profile("pgsearchpath-ci", max_examples=1000, verbosity=Verbosity.verbose)
settings.register_profile("pgsearchpath-dev", max_examples=10, verbosity=Verbosity.verbose)

# Load profile from environment or use default
settings.load_profile(os.getenv("HYPOTHESIS_PROFILE", "pgsearchpath"))
