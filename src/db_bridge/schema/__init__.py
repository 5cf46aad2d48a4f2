"""Schema snapshot, introspection, dialect conversion and comparison.

Provides the dialect-neutral schema models (``TableSchema`` and friends),
live introspection (``analyze_schema``), DDL/DML synthesis
(``generate_create_table_sql``, ``generate_insert_sql``, ...) and
snapshot comparison (``compare_schemas``).

Usage:
    from db_bridge.schema import analyze_schema, generate_create_table_sql
    from db_bridge.schema import TableSchema, ColumnSchema
"""

from db_bridge.schema.comparator import compare_row_counts, compare_schemas, validate_schema
from db_bridge.schema.converter import (
    MYSQL_TO_SQLITE_TYPES,
    SQLITE_TO_MYSQL_TYPES,
    convert_data_type,
    convert_default_value,
    generate_column_definition,
    generate_count_sql,
    generate_create_index_sql,
    generate_create_table_sql,
    generate_drop_table_sql,
    generate_insert_sql,
    generate_select_sql,
)
from db_bridge.schema.introspector import (
    MySQLIntrospector,
    SchemaIntrospector,
    SQLiteIntrospector,
    analyze_schema,
    get_introspector,
)
from db_bridge.schema.models import (
    ColumnDiff,
    ColumnSchema,
    IndexSchema,
    RowCountDiff,
    SchemaValidationResult,
    TableSchema,
)

__all__ = [
    "analyze_schema",
    "get_introspector",
    "SchemaIntrospector",
    "SQLiteIntrospector",
    "MySQLIntrospector",
    "ColumnSchema",
    "IndexSchema",
    "TableSchema",
    "ColumnDiff",
    "RowCountDiff",
    "SchemaValidationResult",
    "validate_schema",
    "compare_schemas",
    "compare_row_counts",
    "SQLITE_TO_MYSQL_TYPES",
    "MYSQL_TO_SQLITE_TYPES",
    "convert_data_type",
    "convert_default_value",
    "generate_column_definition",
    "generate_create_table_sql",
    "generate_create_index_sql",
    "generate_drop_table_sql",
    "generate_select_sql",
    "generate_count_sql",
    "generate_insert_sql",
]
