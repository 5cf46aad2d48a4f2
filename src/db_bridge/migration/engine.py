"""Migration engine: analyze, create target schema, batch-copy rows.

One run moves every user table of a source connection into a target
connection of either dialect:

1. Identify both dialects (unsupported drivers fail the run).
2. Analyze the source schema.  No tables means nothing to do.
3. Switch the target out of auto-commit.
4. For each table: ``DROP TABLE IF EXISTS``, ``CREATE TABLE``, indexes.
5. For each non-empty table: stream the source rows, normalize values,
   insert them in batches of ``batch_size`` rows, and commit every
   ``commit_interval`` rows.
6. Commit, and restore auto-commit on the target whatever happened.

Atomicity: interior commits make a failed run partially durable.  Rows
committed before the failing point stay in the target; the rollback only
discards work since the last interior commit.  Pass
``commit_interval=None`` (or set ``atomic = true`` under ``[migration]``)
to commit only once, at the end of the run.

Cancellation is cooperative.  The token is polled before each table and
before each row; a cancelled run commits the batches it already
executed and discards rows still buffered for the next batch.

Usage:
    from db_bridge.migration import MigrationEngine

    engine = MigrationEngine()
    result = engine.migrate(source_conn, target_conn, sink=my_sink)
    if not result.success:
        print(result.error_message)
"""

import logging
import threading
from collections.abc import Sequence
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy.engine import Connection
from sqlalchemy.exc import DBAPIError

from db_bridge.config.models import MigrationSettings
from db_bridge.dialects import (
    NO_PARAMETERS,
    Dialect,
    UnsupportedDialectError,
    detect_dialect,
)
from db_bridge.migration.models import MigrationResult, MigrationState
from db_bridge.migration.progress import LoggingProgressSink, ProgressModel, ProgressSink
from db_bridge.schema.converter import (
    generate_create_index_sql,
    generate_create_table_sql,
    generate_drop_table_sql,
    generate_insert_sql,
    generate_select_sql,
)
from db_bridge.schema.introspector import analyze_schema
from db_bridge.schema.models import TableSchema

logger = logging.getLogger(__name__)

BATCH_SIZE = 1000
COMMIT_INTERVAL = 5000


class MigrationCancelled(Exception):
    """Raised inside a run when a cancellation request is observed."""

    pass


class CancellationToken:
    """Thread-safe cancellation flag shared by a run and its callers.

    ``cancel()`` may be called from any thread, any number of times.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    def clear(self) -> None:
        self._event.clear()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise MigrationCancelled("Migration cancelled")


def _format_timedelta(value: timedelta) -> str:
    # MySQL TIME values arrive as timedelta; render as [-]HH:MM:SS
    total = int(value.total_seconds())
    sign = "-" if total < 0 else ""
    hours, remainder = divmod(abs(total), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"


def normalize_value(value: Any, target: Dialect) -> Any:
    """Convert one source value into something the target driver binds.

    Booleans become 0/1.  For a SQLite target, temporal values and
    ``Decimal`` are stored as text.  Everything else passes through.
    """
    if isinstance(value, bool):
        return int(value)
    if target is Dialect.SQLITE:
        if isinstance(value, datetime):
            return value.isoformat(sep=" ")
        if isinstance(value, (date, time)):
            return value.isoformat()
        if isinstance(value, timedelta):
            return _format_timedelta(value)
        if isinstance(value, Decimal):
            return str(value)
    return value


def _error_message(error: BaseException) -> str:
    """Human-readable message for a failure, never empty."""
    if isinstance(error, DBAPIError) and error.orig is not None:
        message = str(error.orig)
    else:
        message = str(error)
    return message or type(error).__name__


class MigrationEngine:
    """Runs schema-and-data migrations between SQLite and MySQL.

    Args:
        batch_size: Rows per executed insert batch.
        commit_interval: Rows between interior commits on the target, or
            ``None`` to commit only at the end of the run.
        cancel_token: Shared cancellation flag; a private one is created
            when omitted.

    Example:
        engine = MigrationEngine(batch_size=500)
        result = engine.migrate(source, target)
        print(result.summary())
    """

    def __init__(
        self,
        batch_size: int = BATCH_SIZE,
        commit_interval: int | None = COMMIT_INTERVAL,
        cancel_token: CancellationToken | None = None,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        if commit_interval is not None and commit_interval < 1:
            raise ValueError("commit_interval must be at least 1 or None")

        self.batch_size = batch_size
        self.commit_interval = commit_interval
        self.cancel_token = cancel_token or CancellationToken()
        self._state = MigrationState.IDLE
        self._rows_since_commit = 0

    @classmethod
    def from_settings(
        cls,
        settings: MigrationSettings,
        cancel_token: CancellationToken | None = None,
    ) -> "MigrationEngine":
        """Build an engine from the ``[migration]`` config table."""
        return cls(
            batch_size=settings.batch_size,
            commit_interval=settings.effective_commit_interval,
            cancel_token=cancel_token,
        )

    @property
    def state(self) -> MigrationState:
        return self._state

    def cancel(self) -> None:
        """Request cancellation of the current run (idempotent)."""
        if not self.cancel_token.is_cancelled:
            logger.info("Cancellation requested")
        self.cancel_token.cancel()

    def migrate(
        self,
        source: Connection,
        target: Connection,
        sink: ProgressSink | None = None,
        reset_cancel: bool = True,
    ) -> MigrationResult:
        """Migrate every user table from ``source`` into ``target``.

        A cancellation requested before this call has no effect on it,
        unless ``reset_cancel`` is False (the caller already reset the
        token when it scheduled the run).

        Args:
            source: Open connection to read from.
            target: Open connection to write to (auto-commit mode).
            sink: Progress receiver; defaults to ``LoggingProgressSink``.
            reset_cancel: Clear the cancellation token before running.

        Returns:
            ``MigrationResult``.  This method does not raise for
            analysis, DDL or data failures; they are reported in the
            result and through ``sink.on_error``.
        """
        if reset_cancel:
            self.cancel_token.clear()
        return self._run(source, target, sink or LoggingProgressSink())

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def _set_state(self, state: MigrationState, result: MigrationResult) -> None:
        self._state = state
        result.state = state

    def _run(
        self,
        source: Connection,
        target: Connection,
        sink: ProgressSink,
    ) -> MigrationResult:
        result = MigrationResult()
        self._set_state(MigrationState.IDLE, result)
        self._rows_since_commit = 0
        in_transaction = False

        try:
            source_dialect, target_dialect = self._resolve_dialects(
                source, target, result
            )
            logger.info(
                "Starting migration %s -> %s",
                source_dialect.value, target_dialect.value,
            )

            self._set_state(MigrationState.ANALYZING, result)
            sink.on_progress("Analyzing source schema", 0.0)
            tables = analyze_schema(source)
            result.total_tables = len(tables)

            if not tables:
                self._set_state(MigrationState.COMMITTED, result)
                result.success = True
                sink.on_progress("No tables found in source", 1.0)
                return result

            progress = ProgressModel(tables)
            sink.on_progress(
                f"Found {len(tables)} tables, creating schema",
                ProgressModel.ANALYSIS_DONE,
            )

            self._disable_autocommit(target)
            in_transaction = True

            self._set_state(MigrationState.CREATING_SCHEMA, result)
            self._create_tables(tables, target, target_dialect, progress, sink)
            sink.on_progress("Schema created, copying data", ProgressModel.SCHEMA_DONE)

            self._set_state(MigrationState.COPYING_DATA, result)
            self._copy_tables(
                tables, source, target, source_dialect, target_dialect,
                progress, sink, result,
            )

            target.commit()
            self._set_state(MigrationState.COMMITTED, result)
            result.success = True
            sink.on_progress("Migration complete", 1.0)

        except MigrationCancelled:
            self._finish_cancelled(target, result, in_transaction)

        except Exception as e:
            self._finish_failed(target, result, e, sink, in_transaction)

        finally:
            if in_transaction:
                self._restore_autocommit(target)
            result.end_time = datetime.now()
            logger.info(result.summary())

        return result

    def _resolve_dialects(
        self,
        source: Connection,
        target: Connection,
        result: MigrationResult,
    ) -> tuple[Dialect, Dialect]:
        result.source_dialect = detect_dialect(source)
        result.target_dialect = detect_dialect(target)
        if result.source_dialect is None:
            raise UnsupportedDialectError(
                f"Unsupported source database: {source.engine.url.drivername}"
            )
        if result.target_dialect is None:
            raise UnsupportedDialectError(
                f"Unsupported target database: {target.engine.url.drivername}"
            )
        return result.source_dialect, result.target_dialect

    def _create_tables(
        self,
        tables: list[TableSchema],
        target: Connection,
        target_dialect: Dialect,
        progress: ProgressModel,
        sink: ProgressSink,
    ) -> None:
        for i, table in enumerate(tables):
            self.cancel_token.raise_if_cancelled()

            sink.on_progress(
                f"Creating table {table.name}", progress.schema_fraction(i)
            )
            target.exec_driver_sql(
                generate_drop_table_sql(table.name, target_dialect),
                execution_options=NO_PARAMETERS,
            )

            create_sql = generate_create_table_sql(table, target_dialect)
            logger.debug("Creating %s:\n%s", table.name, create_sql)
            target.exec_driver_sql(create_sql, execution_options=NO_PARAMETERS)

            for index_sql in generate_create_index_sql(table, target_dialect):
                logger.debug(index_sql)
                target.exec_driver_sql(index_sql, execution_options=NO_PARAMETERS)

    def _copy_tables(
        self,
        tables: list[TableSchema],
        source: Connection,
        target: Connection,
        source_dialect: Dialect,
        target_dialect: Dialect,
        progress: ProgressModel,
        sink: ProgressSink,
        result: MigrationResult,
    ) -> None:
        for table in tables:
            self.cancel_token.raise_if_cancelled()

            if table.row_count == 0:
                logger.debug("Skipping empty table %s", table.name)
                result.migrated_tables += 1
                result.table_rows[table.name] = 0
                continue

            sink.on_table_start(table.name, table.row_count)
            migrated = self._copy_table(
                table, source, target, source_dialect, target_dialect,
                progress, sink,
            )

            result.migrated_tables += 1
            result.total_rows += migrated
            result.table_rows[table.name] = migrated

            sink.on_table_complete(table.name, migrated)
            sink.on_progress(
                f"Copied {table.name}: {migrated} rows",
                progress.table_done_fraction(table.name),
            )
            logger.info("Copied table %s: %d rows", table.name, migrated)

    def _copy_table(
        self,
        table: TableSchema,
        source: Connection,
        target: Connection,
        source_dialect: Dialect,
        target_dialect: Dialect,
        progress: ProgressModel,
        sink: ProgressSink,
    ) -> int:
        """Stream one table's rows into the target; return rows copied."""
        select_sql = generate_select_sql(table, source_dialect)
        insert_sql = generate_insert_sql(table.name, table.columns, target_dialect)

        migrated = 0
        batch: list[tuple] = []

        rows = source.exec_driver_sql(
            select_sql,
            execution_options={"stream_results": True, **NO_PARAMETERS},
        )
        try:
            for row in rows:
                self.cancel_token.raise_if_cancelled()

                batch.append(tuple(normalize_value(v, target_dialect) for v in row))
                migrated += 1

                if len(batch) >= self.batch_size:
                    self._execute_batch(target, insert_sql, batch)
                    batch = []
                    sink.on_progress(
                        f"Copying {table.name}: {migrated}/{table.row_count} rows",
                        progress.copy_fraction(table.name, migrated),
                    )

            if batch:
                self._execute_batch(target, insert_sql, batch)
        finally:
            rows.close()

        return migrated

    def _execute_batch(
        self, target: Connection, insert_sql: str, batch: Sequence[tuple]
    ) -> None:
        target.exec_driver_sql(insert_sql, list(batch))

        self._rows_since_commit += len(batch)
        if (
            self.commit_interval is not None
            and self._rows_since_commit >= self.commit_interval
        ):
            target.commit()
            logger.debug("Committed %d rows", self._rows_since_commit)
            self._rows_since_commit = 0

    # ------------------------------------------------------------------
    # Transaction handling
    # ------------------------------------------------------------------

    @staticmethod
    def _disable_autocommit(conn: Connection) -> None:
        # Isolation level can only change outside a transaction
        if conn.in_transaction():
            conn.commit()
        conn.execution_options(isolation_level=conn.default_isolation_level)

    @staticmethod
    def _restore_autocommit(conn: Connection) -> None:
        try:
            conn.execution_options(isolation_level="AUTOCOMMIT")
        except Exception as e:
            logger.warning("Failed to restore auto-commit on target: %s", e)

    @staticmethod
    def _rollback(conn: Connection) -> None:
        try:
            conn.rollback()
        except Exception as e:
            logger.warning("Rollback failed: %s", e)

    def _finish_cancelled(
        self,
        target: Connection,
        result: MigrationResult,
        in_transaction: bool,
    ) -> None:
        self._set_state(MigrationState.CANCELLED, result)
        result.cancelled = True
        result.error_message = "Migration cancelled"

        if not in_transaction:
            return
        # Keep executed batches; completed tables stay migrated
        try:
            target.commit()
        except Exception as e:
            logger.warning("Commit after cancellation failed: %s", e)
            self._rollback(target)

    def _finish_failed(
        self,
        target: Connection,
        result: MigrationResult,
        error: Exception,
        sink: ProgressSink,
        in_transaction: bool,
    ) -> None:
        logger.exception("Migration failed")
        result.success = False
        result.error_message = _error_message(error)

        if in_transaction:
            self._rollback(target)
            self._set_state(MigrationState.ROLLED_BACK, result)
        else:
            self._set_state(MigrationState.FAILED, result)

        try:
            sink.on_error(f"Migration failed: {result.error_message}", error)
        except Exception as e:
            logger.warning("Progress sink failed to handle error: %s", e)
