"""Migration engine, progress reporting and background execution.

Usage:
    >>> from db_bridge.migration import MigrationEngine, MigrationResult
"""

from db_bridge.migration.engine import (
    BATCH_SIZE,
    COMMIT_INTERVAL,
    CancellationToken,
    MigrationCancelled,
    MigrationEngine,
    normalize_value,
)
from db_bridge.migration.models import MigrationResult, MigrationState
from db_bridge.migration.progress import LoggingProgressSink, ProgressModel, ProgressSink
from db_bridge.migration.verify import verify_migration
from db_bridge.migration.worker import BackgroundMigration

__all__ = [
    "BATCH_SIZE",
    "COMMIT_INTERVAL",
    "BackgroundMigration",
    "CancellationToken",
    "LoggingProgressSink",
    "MigrationCancelled",
    "MigrationEngine",
    "MigrationResult",
    "MigrationState",
    "ProgressModel",
    "ProgressSink",
    "normalize_value",
    "verify_migration",
]
