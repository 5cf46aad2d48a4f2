"""Tests for the schema snapshot and validation result models."""

import pytest
from pydantic import ValidationError

from db_bridge.schema.models import (
    ColumnDiff,
    ColumnSchema,
    IndexSchema,
    RowCountDiff,
    SchemaValidationResult,
    TableSchema,
)


# ============================================================================
# ColumnSchema
# ============================================================================


class TestColumnSchema:
    """Verify column defaults, derived predicates and the invariant."""

    def test_defaults(self) -> None:
        """A bare column is nullable, untyped and carries no key flags."""
        col = ColumnSchema(name="note")
        assert col.data_type is None
        assert col.size == 0
        assert col.is_nullable is True
        assert col.default is None
        assert col.primary_key is False
        assert col.auto_increment is False
        assert col.unique is False

    @pytest.mark.parametrize(
        "data_type, size, digits, expected",
        [
            ("VARCHAR", 64, 0, "VARCHAR(64)"),
            ("DECIMAL", 10, 2, "DECIMAL(10,2)"),
            ("TEXT", 0, 0, "TEXT"),
            (None, 0, 0, ""),
        ],
    )
    def test_full_data_type(
        self, data_type: str | None, size: int, digits: int, expected: str
    ) -> None:
        """full_data_type appends size and digits when known."""
        col = ColumnSchema(
            name="c", data_type=data_type, size=size, decimal_digits=digits
        )
        assert col.full_data_type == expected

    def test_type_predicates(self) -> None:
        """Type family predicates match on type-name markers."""
        assert ColumnSchema(name="a", data_type="BIGINT").is_numeric_type
        assert ColumnSchema(name="b", data_type="varchar").is_string_type
        assert ColumnSchema(name="c", data_type="DATETIME").is_datetime_type
        assert ColumnSchema(name="d", data_type="LONGBLOB").is_binary_type
        assert not ColumnSchema(name="e").is_numeric_type

    def test_auto_increment_requires_numeric_type(self) -> None:
        """An auto-increment column with a text type is rejected."""
        with pytest.raises(ValidationError, match="auto-increment"):
            ColumnSchema(name="id", data_type="TEXT", auto_increment=True)

    def test_auto_increment_integer_accepted(self) -> None:
        """An auto-increment integer column is valid."""
        col = ColumnSchema(
            name="id", data_type="INTEGER", auto_increment=True, primary_key=True
        )
        assert col.auto_increment


# ============================================================================
# TableSchema
# ============================================================================


class TestTableSchema:
    """Verify table accessors and index grouping."""

    def _table(self) -> TableSchema:
        return TableSchema(
            name="orders",
            columns=[
                ColumnSchema(name="shop_id", data_type="INT", primary_key=True),
                ColumnSchema(name="order_no", data_type="INT", primary_key=True),
                ColumnSchema(name="customer", data_type="TEXT"),
                ColumnSchema(name="placed_at", data_type="DATETIME"),
            ],
            indexes=[
                IndexSchema(
                    name="idx_customer_date", table_name="orders",
                    column_name="placed_at", ordinal_position=2,
                ),
                IndexSchema(
                    name="idx_customer_date", table_name="orders",
                    column_name="customer", ordinal_position=1,
                ),
                IndexSchema(
                    name="idx_placed", table_name="orders",
                    column_name="placed_at",
                ),
            ],
            row_count=12,
        )

    def test_column_names_keep_order(self) -> None:
        """column_names follows declared column order."""
        assert self._table().column_names == [
            "shop_id", "order_no", "customer", "placed_at",
        ]

    def test_primary_key_columns(self) -> None:
        """Without key positions, composite keys are reported in column order."""
        table = self._table()
        assert table.has_primary_key
        assert [c.name for c in table.primary_key_columns] == ["shop_id", "order_no"]

    def test_primary_key_columns_follow_key_position(self) -> None:
        table = TableSchema(
            name="t",
            columns=[
                ColumnSchema(name="a", primary_key=True, primary_key_position=2),
                ColumnSchema(name="b"),
                ColumnSchema(name="c", primary_key=True, primary_key_position=1),
            ],
        )
        assert [c.name for c in table.primary_key_columns] == ["c", "a"]

    def test_no_primary_key(self) -> None:
        """A table without key columns reports no primary key."""
        table = TableSchema(name="log", columns=[ColumnSchema(name="line")])
        assert not table.has_primary_key
        assert table.primary_key_columns == []

    def test_get_column(self) -> None:
        """get_column finds by exact name and returns None otherwise."""
        table = self._table()
        assert table.get_column("customer").data_type == "TEXT"
        assert table.get_column("Customer") is None

    def test_index_groups_order_by_position(self) -> None:
        """Composite index entries are sorted by ordinal position."""
        groups = self._table().index_groups()
        assert list(groups) == ["idx_customer_date", "idx_placed"]
        assert [e.column_name for e in groups["idx_customer_date"]] == [
            "customer", "placed_at",
        ]


# ============================================================================
# SchemaValidationResult
# ============================================================================


class TestSchemaValidationResult:
    """Verify error counting and report formatting."""

    def test_valid_report(self) -> None:
        """A valid result has no errors and a one-line report."""
        result = SchemaValidationResult(valid=True)
        assert result.error_count == 0
        assert result.format_report() == "Target matches source"

    def test_error_count_includes_row_mismatches(self) -> None:
        """Missing tables, columns and row mismatches are all errors."""
        result = SchemaValidationResult(
            valid=False,
            missing_tables=["a"],
            missing_columns=[ColumnDiff(table="b", column="x")],
            row_count_mismatches=[RowCountDiff(table="c", source_rows=3, target_rows=2)],
            extra_tables=["z"],
        )
        assert result.error_count == 3

    def test_invalid_report_lists_everything(self) -> None:
        """The report names each problem and the extra-table warning."""
        report = SchemaValidationResult(
            valid=False,
            missing_tables=["a"],
            missing_columns=[ColumnDiff(table="b", column="x")],
            row_count_mismatches=[RowCountDiff(table="c", source_rows=3, target_rows=2)],
            extra_tables=["z"],
        ).format_report()

        assert "Missing tables (1)" in report
        assert "- b.x" in report
        assert "- c: source 3, target 2" in report
        assert "Extra tables (warning): z" in report
