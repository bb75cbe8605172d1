"""
Configuration management for pgsearchpath.

Handles loading and validation of configuration files.
"""

from pgsearchpath.config.settings import (
    DatabaseConfig,
    LoggingConfig,
    PgSearchPathConfig,
    SchemaConfig,
    get_default_config,
    get_default_config_path,
    load_config,
)

__all__ = [
    "DatabaseConfig",
    "LoggingConfig",
    "PgSearchPathConfig",
    "SchemaConfig",
    "get_default_config",
    "get_default_config_path",
    "load_config",
]
