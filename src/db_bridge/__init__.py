"""db-bridge: schema and data migration between SQLite and MySQL.

Analyzes a live connection into a dialect-neutral schema snapshot,
synthesizes target DDL/DML, and copies rows in batches with progress
reporting and cooperative cancellation.

Usage:
    from db_bridge import MigrationEngine, connect_profile
    from db_bridge import analyze_schema, generate_create_table_sql
    from db_bridge import Dialect, detect_dialect, load_db_config
"""

__version__ = "0.1.0"

# Dialects
from db_bridge.dialects import (
    Dialect,
    UnsupportedDialectError,
    detect_dialect,
    quote_identifier,
)

# Config
from db_bridge.config.loader import load_db_config
from db_bridge.config.models import DatabaseConfig, DatabaseProfile, MigrationSettings

# Factory
from db_bridge.factory import (
    DatabaseConnectionError,
    ProfileNotFoundError,
    connect_profile,
    create_engine_for_url,
    open_connection,
    resolve_url,
)

# Schema
from db_bridge.schema.converter import generate_create_table_sql, generate_insert_sql
from db_bridge.schema.introspector import analyze_schema
from db_bridge.schema.models import ColumnSchema, IndexSchema, TableSchema

# Migration
from db_bridge.migration.engine import CancellationToken, MigrationEngine
from db_bridge.migration.models import MigrationResult, MigrationState
from db_bridge.migration.progress import LoggingProgressSink, ProgressSink
from db_bridge.migration.verify import verify_migration
from db_bridge.migration.worker import BackgroundMigration

__all__ = [
    # Dialects
    "Dialect",
    "UnsupportedDialectError",
    "detect_dialect",
    "quote_identifier",
    # Config
    "load_db_config",
    "DatabaseConfig",
    "DatabaseProfile",
    "MigrationSettings",
    # Factory
    "DatabaseConnectionError",
    "ProfileNotFoundError",
    "connect_profile",
    "create_engine_for_url",
    "open_connection",
    "resolve_url",
    # Schema
    "analyze_schema",
    "generate_create_table_sql",
    "generate_insert_sql",
    "ColumnSchema",
    "IndexSchema",
    "TableSchema",
    # Migration
    "MigrationEngine",
    "MigrationResult",
    "MigrationState",
    "CancellationToken",
    "ProgressSink",
    "LoggingProgressSink",
    "BackgroundMigration",
    "verify_migration",
]
