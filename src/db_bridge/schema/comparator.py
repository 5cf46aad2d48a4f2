"""Schema comparison using set operations.

Compares a source schema snapshot against a target snapshot after a
migration.  Pure logic -- no I/O, no database connections.

Usage:
    from db_bridge.schema.comparator import compare_schemas

    result = compare_schemas(source_tables, target_tables)
    if not result.valid:
        print(result.format_report())
"""

from db_bridge.schema.models import (
    ColumnDiff,
    RowCountDiff,
    SchemaValidationResult,
    TableSchema,
)


def validate_schema(
    actual_columns: dict[str, set[str]],
    expected_columns: dict[str, set[str]],
) -> SchemaValidationResult:
    """Validate actual columns against expected columns.

    Performs pure set operations to find:
    - Missing tables: Tables in *expected_columns* but not in *actual_columns*
    - Missing columns: Columns in *expected_columns* but not in the actual table
    - Extra tables: Tables in *actual_columns* but not in *expected_columns*
      (warning only -- does not affect ``valid`` status)

    Table and column names are compared exactly; identifier case is kept
    by both dialects.

    Args:
        actual_columns: Dict mapping table name to set of column names
            found in the target.
        expected_columns: Dict mapping table name to set of column names
            the target should have (usually the source schema).

    Returns:
        ``SchemaValidationResult`` (row-count mismatches left empty).

    Examples:
        >>> result = validate_schema(
        ...     {"users": {"id"}},
        ...     {"users": {"id", "name"}},
        ... )
        >>> result.valid
        False
        >>> result.missing_columns[0].column
        'name'
    """
    actual_tables: set[str] = set(actual_columns.keys())
    expected_tables: set[str] = set(expected_columns.keys())

    missing_tables: list[str] = sorted(expected_tables - actual_tables)
    extra_tables: list[str] = sorted(actual_tables - expected_tables)

    missing_columns: list[ColumnDiff] = []
    for table_name in sorted(expected_tables & actual_tables):
        missing_cols = expected_columns[table_name] - actual_columns[table_name]
        for col_name in sorted(missing_cols):
            missing_columns.append(
                ColumnDiff(
                    table=table_name,
                    column=col_name,
                    message=f"Column '{col_name}' missing from table '{table_name}'",
                )
            )

    return SchemaValidationResult(
        valid=not missing_tables and not missing_columns,
        missing_tables=missing_tables,
        missing_columns=missing_columns,
        extra_tables=extra_tables,
    )


def compare_row_counts(
    source_counts: dict[str, int],
    target_counts: dict[str, int],
) -> list[RowCountDiff]:
    """List tables present on both sides whose row counts differ."""
    return [
        RowCountDiff(
            table=name,
            source_rows=source_counts[name],
            target_rows=target_counts[name],
        )
        for name in sorted(source_counts.keys() & target_counts.keys())
        if source_counts[name] != target_counts[name]
    ]


def compare_schemas(
    source_tables: list[TableSchema],
    target_tables: list[TableSchema],
) -> SchemaValidationResult:
    """Compare two analyzed snapshots: tables, columns and row counts."""
    result = validate_schema(
        {t.name: set(t.column_names) for t in target_tables},
        {t.name: set(t.column_names) for t in source_tables},
    )
    result.row_count_mismatches = compare_row_counts(
        {t.name: t.row_count for t in source_tables},
        {t.name: t.row_count for t in target_tables},
    )
    result.valid = result.error_count == 0
    return result
