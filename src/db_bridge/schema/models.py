"""Pydantic models for the dialect-neutral schema snapshot.

This module contains the schema-domain models produced by the analyzer
and consumed read-only by the converter and the migration engine:
- ColumnSchema: one column with type, size, nullability, default, keys
- IndexSchema: one (index, column) pair of a non-primary-key index
- TableSchema: ordered columns, indexes and an advisory row count

Validation result models used by post-migration verification live here
too: ColumnDiff, RowCountDiff, SchemaValidationResult.
"""

from pydantic import BaseModel, Field, model_validator


_NUMERIC_MARKERS = ("INT", "DECIMAL", "NUMERIC", "FLOAT", "DOUBLE", "REAL")
_STRING_MARKERS = ("CHAR", "TEXT", "CLOB", "STRING")
_DATETIME_MARKERS = ("DATE", "TIME")
_BINARY_MARKERS = ("BLOB", "BINARY")


def _type_contains(data_type: str | None, markers: tuple[str, ...]) -> bool:
    if not data_type:
        return False
    upper = data_type.upper()
    return any(marker in upper for marker in markers)


# ============================================================================
# Schema Snapshot Models
# ============================================================================


class ColumnSchema(BaseModel):
    """Schema for a table column.

    ``default`` is the literal as the source dialect reports it, without
    surrounding quotes for string values.

    Example:
        >>> col = ColumnSchema(name="name", data_type="VARCHAR", size=64)
        >>> col.full_data_type
        'VARCHAR(64)'
        >>> col.is_nullable
        True
    """

    name: str
    data_type: str | None = None
    size: int = 0
    decimal_digits: int = 0
    is_nullable: bool = True
    default: str | None = None
    comment: str | None = None
    primary_key: bool = False
    # 1-based position within a composite primary key; 0 when unknown
    primary_key_position: int = 0
    auto_increment: bool = False
    unique: bool = False

    @model_validator(mode="after")
    def _auto_increment_is_numeric(self) -> "ColumnSchema":
        if self.auto_increment and not self.is_numeric_type:
            raise ValueError(
                f"Column '{self.name}' is auto-increment but has "
                f"non-numeric type {self.data_type!r}"
            )
        return self

    @property
    def full_data_type(self) -> str:
        """Data type with its size (and decimal digits) suffix, if any."""
        if self.size > 0:
            if self.decimal_digits > 0:
                return f"{self.data_type}({self.size},{self.decimal_digits})"
            return f"{self.data_type}({self.size})"
        return self.data_type or ""

    @property
    def is_numeric_type(self) -> bool:
        return _type_contains(self.data_type, _NUMERIC_MARKERS)

    @property
    def is_string_type(self) -> bool:
        return _type_contains(self.data_type, _STRING_MARKERS)

    @property
    def is_datetime_type(self) -> bool:
        return _type_contains(self.data_type, _DATETIME_MARKERS)

    @property
    def is_binary_type(self) -> bool:
        return _type_contains(self.data_type, _BINARY_MARKERS)


class IndexSchema(BaseModel):
    """One column entry of a non-primary-key index.

    Composite indexes appear as several entries sharing ``name`` with
    increasing ``ordinal_position``.
    """

    name: str
    table_name: str
    column_name: str
    ordinal_position: int = 1
    is_unique: bool = False
    index_type: str | None = None
    comment: str | None = None


class TableSchema(BaseModel):
    """Schema for a table.

    Column order is significant: it is both the DDL column order and the
    positional binding order for row copies.  ``row_count`` is captured
    at analysis time and is advisory only.
    """

    name: str
    comment: str | None = None
    columns: list[ColumnSchema] = Field(default_factory=list)
    indexes: list[IndexSchema] = Field(default_factory=list)
    row_count: int = 0

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def primary_key_columns(self) -> list[ColumnSchema]:
        """Primary-key columns in key order.

        Columns without a key position keep table column order.
        """
        keyed = [c for c in self.columns if c.primary_key]
        return sorted(keyed, key=lambda c: c.primary_key_position)

    @property
    def has_primary_key(self) -> bool:
        return any(c.primary_key for c in self.columns)

    def get_column(self, name: str) -> ColumnSchema | None:
        """Find a column by name (exact match)."""
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def index_groups(self) -> dict[str, list[IndexSchema]]:
        """Group index entries by index name, columns ordered by position.

        Groups keep the order in which each index name first appears.
        """
        groups: dict[str, list[IndexSchema]] = {}
        for index in self.indexes:
            groups.setdefault(index.name, []).append(index)
        for entries in groups.values():
            entries.sort(key=lambda i: i.ordinal_position)
        return groups


# ============================================================================
# Validation Result Models
# ============================================================================


class ColumnDiff(BaseModel):
    """A missing column detected during validation."""

    table: str
    column: str
    message: str = ""


class RowCountDiff(BaseModel):
    """A table whose target row count differs from the source."""

    table: str
    source_rows: int
    target_rows: int


class SchemaValidationResult(BaseModel):
    """Result of comparing a migrated target against its source.

    Example:
        >>> result = SchemaValidationResult(valid=True)
        >>> result.error_count
        0
        >>> result.format_report()
        'Target matches source'
    """

    valid: bool
    missing_tables: list[str] = Field(default_factory=list)
    missing_columns: list[ColumnDiff] = Field(default_factory=list)
    row_count_mismatches: list[RowCountDiff] = Field(default_factory=list)
    extra_tables: list[str] = Field(default_factory=list)  # Warning only

    @property
    def error_count(self) -> int:
        """Count of critical errors (missing tables, columns, row mismatches)."""
        return (
            len(self.missing_tables)
            + len(self.missing_columns)
            + len(self.row_count_mismatches)
        )

    def format_report(self) -> str:
        """Format validation result as human-readable report."""
        if self.valid:
            return "Target matches source"

        lines = ["Target does not match source:"]

        if self.missing_tables:
            lines.append(f"\n  Missing tables ({len(self.missing_tables)}):")
            for table in self.missing_tables:
                lines.append(f"    - {table}")

        if self.missing_columns:
            lines.append(f"\n  Missing columns ({len(self.missing_columns)}):")
            for diff in self.missing_columns:
                lines.append(f"    - {diff.table}.{diff.column}")

        if self.row_count_mismatches:
            lines.append(
                f"\n  Row count mismatches ({len(self.row_count_mismatches)}):"
            )
            for diff in self.row_count_mismatches:
                lines.append(
                    f"    - {diff.table}: source {diff.source_rows}, "
                    f"target {diff.target_rows}"
                )

        if self.extra_tables:
            lines.append(f"\n  Extra tables (warning): {', '.join(self.extra_tables)}")

        return "\n".join(lines)
