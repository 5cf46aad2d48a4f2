"""Result and state models for a migration run."""

from datetime import datetime, timedelta
from enum import Enum

from pydantic import BaseModel, Field

from db_bridge.dialects import Dialect


class MigrationState(str, Enum):
    """Run state machine.

    ``IDLE -> ANALYZING -> CREATING_SCHEMA -> COPYING_DATA`` and then one
    of the terminal states ``COMMITTED``, ``ROLLED_BACK``, ``FAILED`` or
    ``CANCELLED``.  ``FAILED`` is a failure before any target transaction
    began, so there was nothing to roll back.
    """

    IDLE = "idle"
    ANALYZING = "analyzing"
    CREATING_SCHEMA = "creating_schema"
    COPYING_DATA = "copying_data"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (
            MigrationState.COMMITTED,
            MigrationState.ROLLED_BACK,
            MigrationState.FAILED,
            MigrationState.CANCELLED,
        )


class MigrationResult(BaseModel):
    """Outcome of one migration run.

    Created when the run starts and mutated only by the engine; callers
    receive it once the run has returned.

    Attributes:
        success: True if every table was created and copied and the run
            committed.
        error_message: Human-readable reason on failure (never empty then).
        cancelled: True if the run stopped on a cancellation request.
        state: Terminal state of the run.
        total_tables: Number of user tables found in the source.
        migrated_tables: Tables fully copied (empty tables included).
        total_rows: Rows copied across all tables.
        table_rows: Rows copied per table, in migration order.
        source_dialect: Dialect of the source connection, if recognized.
        target_dialect: Dialect of the target connection, if recognized.
        start_time: When the run started.
        end_time: When the run returned.
    """

    success: bool = False
    error_message: str | None = None
    cancelled: bool = False
    state: MigrationState = MigrationState.IDLE
    total_tables: int = 0
    migrated_tables: int = 0
    total_rows: int = 0
    table_rows: dict[str, int] = Field(default_factory=dict)
    source_dialect: Dialect | None = None
    target_dialect: Dialect | None = None
    start_time: datetime = Field(default_factory=datetime.now)
    end_time: datetime | None = None

    @property
    def duration(self) -> timedelta:
        """Elapsed run time (up to now if the run has not returned)."""
        end = self.end_time or datetime.now()
        return end - self.start_time

    def summary(self) -> str:
        """One-line outcome description."""
        seconds = self.duration.total_seconds()
        if self.success:
            return (
                f"Migrated {self.migrated_tables}/{self.total_tables} tables, "
                f"{self.total_rows} rows in {seconds:.1f}s"
            )
        if self.cancelled:
            return (
                f"Cancelled after {self.migrated_tables}/{self.total_tables} "
                f"tables, {self.total_rows} rows"
            )
        return f"Migration failed: {self.error_message}"
