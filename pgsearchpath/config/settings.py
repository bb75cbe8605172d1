"""
Configuration management for pgsearchpath.

Loads YAML configuration from file with sensible defaults and validation.
Supports environment variable substitution using ${ENV_VAR} syntax.

Database values can additionally be overridden with ``PGSEARCHPATH_DB_*``
environment variables (or the shorter ``DB_*`` prefix, e.g. from a ``.env``
file).  Environment variables take precedence over the YAML values.
"""

import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional
from urllib.parse import quote_plus

import yaml
from dotenv import load_dotenv

from pgsearchpath.exceptions import (
    ConfigurationLoadError,
    InvalidConfigurationError,
    ValidationError,
)
from pgsearchpath.logging_config import get_logger

logger = get_logger(__name__)

# ---------------------------------------------------------------------------
# Environment variable names (all optional, override config.yaml values)
# ---------------------------------------------------------------------------
_ENV_PREFIX = "PGSEARCHPATH_DB_"
_ENV_DSN = f"{_ENV_PREFIX}DSN"
_ENV_HOST = f"{_ENV_PREFIX}HOST"
_ENV_PORT = f"{_ENV_PREFIX}PORT"
_ENV_NAME = f"{_ENV_PREFIX}NAME"
_ENV_USER = f"{_ENV_PREFIX}USER"
_ENV_PASSWORD = f"{_ENV_PREFIX}PASSWORD"

_VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _env(name: str, fallback: str = "") -> str:
    """Read an environment variable, returning *fallback* when unset/empty.

    Checks ``PGSEARCHPATH_DB_*`` first, then falls back to the shorter
    ``DB_*`` prefix (used by docker-compose / .env files) for convenience.
    """
    value = os.environ.get(name, "")
    if value:
        return value
    if name.startswith(_ENV_PREFIX):
        short = "DB_" + name[len(_ENV_PREFIX):]
        value = os.environ.get(short, "")
        if value:
            return value
    return fallback


def _ensure_dotenv_loaded() -> None:
    """Load the nearest ``.env`` file into ``os.environ`` once.

    Values already set in the environment are NOT overwritten.
    """
    if getattr(_ensure_dotenv_loaded, "_done", False):
        return
    _ensure_dotenv_loaded._done = True  # type: ignore[attr-defined]
    load_dotenv(override=False)


def _expand_env_vars(value: Any) -> Any:
    """
    Recursively expand environment variables in configuration values.

    Supports ${ENV_VAR} syntax with optional default values: ${ENV_VAR:default}

    Args:
        value: Configuration value (string, dict, list, or other)

    Returns:
        Value with environment variables expanded

    Examples:
        "${DATABASE_HOST}" -> value of DATABASE_HOST env var
        "${DATABASE_HOST:localhost}" -> value of DATABASE_HOST or "localhost" if not set
    """
    if isinstance(value, str):
        pattern = r'\$\{([^}:]+)(?::([^}]*))?\}'

        def replace_env_var(match):
            var_name = match.group(1)
            default_value = match.group(2) if match.group(2) is not None else ""
            return os.environ.get(var_name, default_value)

        return re.sub(pattern, replace_env_var, value)
    elif isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [_expand_env_vars(item) for item in value]
    else:
        return value


@dataclass
class DatabaseConfig:
    """PostgreSQL connection configuration.

    When ``dsn`` is set it is used as-is (any SQLAlchemy URL); otherwise a
    ``postgresql+psycopg2://`` URL is built from the individual fields.
    """

    dsn: str = ""
    host: str = "localhost"
    port: int = 5432
    database: str = "postgres"
    user: str = "postgres"
    password: str = ""
    pool_size: int = 5
    max_overflow: int = 5
    pool_timeout: int = 30
    pool_recycle: int = 3600
    pool_pre_ping: bool = True
    auto_commit: bool = True
    echo: bool = False

    def apply_env_overrides(self) -> "DatabaseConfig":
        """Overlay ``PGSEARCHPATH_DB_*`` / ``DB_*`` environment variables."""
        _ensure_dotenv_loaded()
        self.dsn = _env(_ENV_DSN, self.dsn)
        self.host = _env(_ENV_HOST, self.host)
        self.port = int(_env(_ENV_PORT, str(self.port)))
        self.database = _env(_ENV_NAME, self.database)
        self.user = _env(_ENV_USER, self.user)
        self.password = _env(_ENV_PASSWORD, self.password)
        return self

    def get_connection_url(self) -> str:
        """Get database connection URL."""
        if self.dsn:
            return self.dsn
        return (
            f"postgresql+psycopg2://{self.user}:{quote_plus(self.password)}"
            f"@{self.host}:{self.port}/{self.database}"
        )

    def to_connect_info(self):
        """Build a ``ConnectionConfig`` suitable for ``Schema.connection()``."""
        from pgsearchpath.db.connection import ConnectionConfig

        return ConnectionConfig(
            dsn=self.get_connection_url(),
            pool_size=self.pool_size,
            max_overflow=self.max_overflow,
            pool_timeout=self.pool_timeout,
            pool_recycle=self.pool_recycle,
            pool_pre_ping=self.pool_pre_ping,
            auto_commit=self.auto_commit,
            echo=self.echo,
        )


@dataclass
class SchemaConfig:
    """Schema handle configuration.

    ``search_path`` seeds every handle built from this config.  ``None``
    means the handle starts without a stored search path.
    """

    search_path: Optional[str] = "public"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "INFO"
    file: str = ""
    json_format: bool = True


@dataclass
class PgSearchPathConfig:
    """Main pgsearchpath configuration."""

    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    schema: SchemaConfig = field(default_factory=SchemaConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_default_config_path() -> str:
    """Get the default configuration file path."""
    return os.path.expanduser("~/.pgsearchpath/config.yaml")


def get_default_config() -> PgSearchPathConfig:
    """
    Get default configuration with sensible defaults.

    Returns:
        PgSearchPathConfig: Default configuration object
    """
    config = PgSearchPathConfig()
    config.database.apply_env_overrides()
    return config


def load_config(config_path: Optional[str] = None) -> PgSearchPathConfig:
    """
    Load configuration from YAML file with validation.

    If config file is not found, returns default configuration.
    If config file is malformed or invalid, raises ConfigurationError.

    Args:
        config_path: Path to configuration file. If None, uses default path.

    Returns:
        PgSearchPathConfig: Loaded and validated configuration

    Raises:
        InvalidConfigurationError: If configuration is invalid or malformed
        ConfigurationLoadError: If the configuration file cannot be read
    """
    if config_path is None:
        config_path = get_default_config_path()

    config_path = os.path.expanduser(config_path)

    if not os.path.exists(config_path):
        logger.info(f"Configuration file not found at {config_path}, using defaults")
        return get_default_config()

    try:
        with open(config_path, 'r') as f:
            config_data = yaml.safe_load(f)
        logger.debug(f"Loaded configuration from {config_path}")
    except yaml.YAMLError as e:
        logger.error(f"Failed to parse YAML configuration file '{config_path}': {e}")
        raise InvalidConfigurationError(
            f"Failed to parse YAML configuration file '{config_path}': {e}"
        ) from e
    except OSError as e:
        logger.error(f"Failed to read configuration file '{config_path}': {e}")
        raise ConfigurationLoadError(
            f"Failed to read configuration file '{config_path}': {e}"
        ) from e

    if config_data is None:
        logger.info(f"Configuration file {config_path} is empty, using defaults")
        return get_default_config()

    if not isinstance(config_data, dict):
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': top level must be a mapping"
        )

    config_data = _expand_env_vars(config_data)

    try:
        config = _build_config_from_dict(config_data)
        _validate_config(config)
    except (TypeError, ValueError, InvalidConfigurationError) as e:
        logger.error(f"Invalid configuration in '{config_path}': {e}")
        raise InvalidConfigurationError(
            f"Invalid configuration in '{config_path}': {e}"
        ) from e

    logger.info(f"Successfully loaded and validated configuration from {config_path}")
    return config


def _section(config_data: Dict[str, Any], name: str) -> Dict[str, Any]:
    data = config_data.get(name) or {}
    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"'{name}' section must be a mapping")
    return data


def _as_bool(value: Any) -> bool:
    # ${VAR} expansion always yields strings
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _build_config_from_dict(config_data: Dict[str, Any]) -> PgSearchPathConfig:
    """
    Build PgSearchPathConfig from dictionary loaded from YAML.

    Merges user configuration with defaults.
    """
    defaults = PgSearchPathConfig()

    database_data = _section(config_data, 'database')
    d = defaults.database
    database = DatabaseConfig(
        dsn=str(database_data.get('dsn', d.dsn) or ""),
        host=database_data.get('host', d.host),
        port=int(database_data.get('port', d.port)),
        database=database_data.get('database', d.database),
        user=database_data.get('user', d.user),
        password=str(database_data.get('password', d.password) or ""),
        pool_size=int(database_data.get('pool_size', d.pool_size)),
        max_overflow=int(database_data.get('max_overflow', d.max_overflow)),
        pool_timeout=int(database_data.get('pool_timeout', d.pool_timeout)),
        pool_recycle=int(database_data.get('pool_recycle', d.pool_recycle)),
        pool_pre_ping=_as_bool(database_data.get('pool_pre_ping', d.pool_pre_ping)),
        auto_commit=_as_bool(database_data.get('auto_commit', d.auto_commit)),
        echo=_as_bool(database_data.get('echo', d.echo)),
    ).apply_env_overrides()

    schema_data = _section(config_data, 'schema')
    schema = SchemaConfig(
        search_path=schema_data.get('search_path', defaults.schema.search_path),
    )

    logging_data = _section(config_data, 'logging')
    logging = LoggingConfig(
        level=logging_data.get('level', defaults.logging.level),
        file=os.path.expanduser(logging_data.get('file', defaults.logging.file) or ""),
        json_format=_as_bool(logging_data.get('json_format', defaults.logging.json_format)),
    )

    return PgSearchPathConfig(database=database, schema=schema, logging=logging)


def _validate_config(config: PgSearchPathConfig) -> None:
    """
    Validate configuration values.

    Raises:
        InvalidConfigurationError: If configuration is invalid
    """
    from pgsearchpath.db.search_path import validate_search_path

    if config.database.pool_size < 1:
        raise InvalidConfigurationError(
            f"pool_size must be at least 1, got {config.database.pool_size}"
        )
    if config.database.max_overflow < 0:
        raise InvalidConfigurationError(
            f"max_overflow cannot be negative, got {config.database.max_overflow}"
        )
    if config.database.pool_timeout <= 0:
        raise InvalidConfigurationError(
            f"pool_timeout must be positive, got {config.database.pool_timeout}"
        )
    if not config.database.dsn and not config.database.database:
        raise InvalidConfigurationError("either dsn or database must be set")

    if config.schema.search_path is not None:
        try:
            validate_search_path(config.schema.search_path, "load_config")
        except ValidationError as e:
            raise InvalidConfigurationError(str(e)) from e

    if str(config.logging.level).upper() not in _VALID_LOG_LEVELS:
        raise InvalidConfigurationError(
            f"logging level must be one of {_VALID_LOG_LEVELS}, "
            f"got '{config.logging.level}'"
        )
