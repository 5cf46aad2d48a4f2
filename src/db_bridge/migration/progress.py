"""Progress sink interface and the run's progress-fraction model.

The engine reports four kinds of events to a caller-owned sink, always
synchronously from the thread running the migration:

- ``on_progress(message, fraction)``: overall progress in ``[0, 1]``
- ``on_table_start(table_name, total_rows_estimate)``
- ``on_table_complete(table_name, migrated_rows)``
- ``on_error(message, cause)``: last event of a failed run

Marshaling events onto another thread (a UI loop, say) is the sink's job.

Usage:
    from db_bridge.migration.progress import LoggingProgressSink

    engine.migrate(source, target, sink=LoggingProgressSink())
"""

import logging
from typing import Protocol

from db_bridge.schema.models import TableSchema

logger = logging.getLogger(__name__)


class ProgressSink(Protocol):
    """Receiver of migration lifecycle and progress events."""

    def on_progress(self, message: str, fraction: float) -> None:
        """Report overall progress.

        Args:
            message: Short description of the current step.
            fraction: Overall completion in ``[0, 1]``.
        """
        ...

    def on_table_start(self, table_name: str, total_rows_estimate: int) -> None:
        """A table's row copy is starting (estimate is advisory)."""
        ...

    def on_table_complete(self, table_name: str, migrated_rows: int) -> None:
        """A table has been fully copied."""
        ...

    def on_error(self, message: str, cause: BaseException | None) -> None:
        """The run failed; no further events follow for this run."""
        ...


class LoggingProgressSink:
    """Default sink: writes every event to a logger."""

    def __init__(self, log: logging.Logger | None = None):
        self._log = log or logger

    def on_progress(self, message: str, fraction: float) -> None:
        self._log.debug("[%3.0f%%] %s", fraction * 100, message)

    def on_table_start(self, table_name: str, total_rows_estimate: int) -> None:
        self._log.info("Copying %s (~%d rows)", table_name, total_rows_estimate)

    def on_table_complete(self, table_name: str, migrated_rows: int) -> None:
        self._log.info("Copied %s: %d rows", table_name, migrated_rows)

    def on_error(self, message: str, cause: BaseException | None) -> None:
        self._log.error("Migration failed: %s", message)


def clamp_fraction(value: float) -> float:
    return min(1.0, max(0.0, value))


class ProgressModel:
    """Maps run position to an overall completion fraction.

    - 0.0 - 0.1: source analysis
    - 0.1 - 0.2: table creation, split evenly across tables
    - 0.2 - 1.0: row copy, split across tables by analyzed row count,
      interpolated linearly inside a table

    When no table has rows, the copy range is split evenly.  Row counts
    are advisory, so every fraction is clamped to ``[0, 1]``.
    """

    ANALYSIS_DONE = 0.1
    SCHEMA_DONE = 0.2

    def __init__(self, tables: list[TableSchema]):
        self._table_count = len(tables)
        self._spans: dict[str, tuple[float, float, int]] = {}

        copy_range = 1.0 - self.SCHEMA_DONE
        total_rows = sum(t.row_count for t in tables)
        start = self.SCHEMA_DONE
        for table in tables:
            if total_rows > 0:
                span = copy_range * table.row_count / total_rows
            else:
                span = copy_range / len(tables)
            self._spans[table.name] = (start, span, table.row_count)
            start += span

    def schema_fraction(self, tables_created: int) -> float:
        """Fraction after ``tables_created`` CREATE TABLE statements."""
        if self._table_count == 0:
            return self.SCHEMA_DONE
        step = (self.SCHEMA_DONE - self.ANALYSIS_DONE) / self._table_count
        return clamp_fraction(self.ANALYSIS_DONE + step * tables_created)

    def copy_fraction(self, table_name: str, rows_copied: int) -> float:
        """Fraction after copying ``rows_copied`` rows of a table."""
        start, span, estimate = self._spans[table_name]
        if estimate > 0:
            done = min(rows_copied / estimate, 1.0)
        else:
            done = 1.0
        return clamp_fraction(start + span * done)

    def table_done_fraction(self, table_name: str) -> float:
        start, span, _ = self._spans[table_name]
        return clamp_fraction(start + span)
