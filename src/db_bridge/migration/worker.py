"""Run a migration on a single background worker thread.

Usage:
    from db_bridge.migration import BackgroundMigration, MigrationEngine

    job = BackgroundMigration(MigrationEngine(), source_conn, target_conn, sink)
    job.start()
    ...
    job.cancel()              # from any thread
    result = job.result()     # blocks until the run returns

Sink callbacks are invoked on the worker thread.  The connections are
used by the worker only, so the caller must not touch them while the run
is in progress.
"""

import logging
from concurrent.futures import Future, ThreadPoolExecutor

from sqlalchemy.engine import Connection

from db_bridge.migration.engine import MigrationEngine
from db_bridge.migration.models import MigrationResult
from db_bridge.migration.progress import ProgressSink

logger = logging.getLogger(__name__)


class BackgroundMigration:
    """One migration run driven by a one-thread executor."""

    def __init__(
        self,
        engine: MigrationEngine,
        source: Connection,
        target: Connection,
        sink: ProgressSink | None = None,
    ):
        self.engine = engine
        self._source = source
        self._target = target
        self._sink = sink
        self._executor: ThreadPoolExecutor | None = None
        self._future: Future[MigrationResult] | None = None

    def start(self) -> None:
        """Schedule the run.

        Raises:
            RuntimeError: If the run was already started.
        """
        if self._future is not None:
            raise RuntimeError("Migration already started")

        # Reset here so a cancel() right after start() is not lost
        self.engine.cancel_token.clear()
        self._executor = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="db-bridge-migration"
        )
        self._future = self._executor.submit(
            self.engine.migrate,
            self._source,
            self._target,
            self._sink,
            reset_cancel=False,
        )
        self._executor.shutdown(wait=False)
        logger.debug("Migration scheduled on background worker")

    def cancel(self) -> None:
        """Request cooperative cancellation; no effect once the run is done."""
        if self._future is not None and not self._future.done():
            self.engine.cancel()

    def done(self) -> bool:
        return self._future is not None and self._future.done()

    def result(self, timeout: float | None = None) -> MigrationResult:
        """Wait for the run and return its result.

        Raises:
            RuntimeError: If the run was never started.
            concurrent.futures.TimeoutError: If ``timeout`` expires first.
        """
        if self._future is None:
            raise RuntimeError("Migration not started")
        return self._future.result(timeout=timeout)
