"""Configuration management: profiles, TOML loading, and config models.

Usage:
    >>> from db_bridge.config import load_db_config, DatabaseProfile, DatabaseConfig
"""

from db_bridge.config.loader import load_db_config
from db_bridge.config.models import DatabaseConfig, DatabaseProfile, MigrationSettings

__all__ = ["load_db_config", "DatabaseConfig", "DatabaseProfile", "MigrationSettings"]
