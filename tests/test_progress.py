"""Tests for the progress model and the logging sink."""

import logging

import pytest

from db_bridge.migration.progress import (
    LoggingProgressSink,
    ProgressModel,
    clamp_fraction,
)
from db_bridge.schema.models import TableSchema


def _tables(**row_counts: int) -> list[TableSchema]:
    return [TableSchema(name=name, row_count=count) for name, count in row_counts.items()]


class TestProgressModel:
    """Verify the analysis / schema / copy split of the progress range."""

    def test_schema_range_split_evenly(self) -> None:
        model = ProgressModel(_tables(a=1, b=1, c=1, d=1))
        assert model.schema_fraction(0) == pytest.approx(0.1)
        assert model.schema_fraction(2) == pytest.approx(0.15)
        assert model.schema_fraction(4) == pytest.approx(0.2)

    def test_copy_range_weighted_by_rows(self) -> None:
        model = ProgressModel(_tables(big=75, small=25))
        assert model.table_done_fraction("big") == pytest.approx(0.8)
        assert model.table_done_fraction("small") == pytest.approx(1.0)
        assert model.copy_fraction("big", 0) == pytest.approx(0.2)
        assert model.copy_fraction("small", 5) == pytest.approx(0.84)

    def test_all_empty_tables_split_evenly(self) -> None:
        model = ProgressModel(_tables(a=0, b=0))
        assert model.table_done_fraction("a") == pytest.approx(0.6)
        assert model.copy_fraction("b", 0) == pytest.approx(1.0)

    def test_estimate_overrun_is_clamped(self) -> None:
        """Advisory counts may be low; fractions never leave the table's span."""
        model = ProgressModel(_tables(a=10, b=10))
        assert model.copy_fraction("a", 50) == pytest.approx(0.6)
        assert model.copy_fraction("b", 50) <= 1.0

    def test_no_tables(self) -> None:
        assert ProgressModel([]).schema_fraction(0) == ProgressModel.SCHEMA_DONE

    @pytest.mark.parametrize("value, expected", [(-0.5, 0.0), (0.3, 0.3), (1.7, 1.0)])
    def test_clamp(self, value: float, expected: float) -> None:
        assert clamp_fraction(value) == expected


class TestLoggingProgressSink:
    """Verify events are written to the logger."""

    def test_events_logged(self, caplog: pytest.LogCaptureFixture) -> None:
        log = logging.getLogger("tests.progress")
        sink = LoggingProgressSink(log)

        with caplog.at_level(logging.DEBUG, logger="tests.progress"):
            sink.on_progress("Copying users", 0.5)
            sink.on_table_start("users", 3)
            sink.on_table_complete("users", 3)
            sink.on_error("disk full", None)

        messages = [r.getMessage() for r in caplog.records]
        assert messages == [
            "[ 50%] Copying users",
            "Copying users (~3 rows)",
            "Copied users: 3 rows",
            "Migration failed: disk full",
        ]
        assert caplog.records[-1].levelno == logging.ERROR
