"""SQL dialect conversion between SQLite and MySQL.

Pure functions -- no I/O, no database connections.  They map data type
names and default literals between the two dialects and assemble the SQL
text the migration engine sends to the drivers:

- ``DROP TABLE IF EXISTS <t>``
- ``CREATE TABLE <t> (...)`` and ``CREATE [UNIQUE] INDEX ...``
- ``SELECT <cols> FROM <t>`` and ``SELECT COUNT(*) FROM <t>``
- ``INSERT INTO <t> (<cols>) VALUES (<placeholders>)``

Every identifier is quoted for the dialect the statement is sent to.
Column order always follows ``TableSchema.columns``, which binds the
SELECT on the source to the INSERT on the target positionally.

Usage:
    from db_bridge.dialects import Dialect
    from db_bridge.schema.converter import (
        generate_create_table_sql,
        generate_insert_sql,
    )

    ddl = generate_create_table_sql(table, Dialect.MYSQL)
    dml = generate_insert_sql(table.name, table.columns, Dialect.MYSQL)
"""

import logging
import re
from collections.abc import Mapping, Sequence
from types import MappingProxyType

from db_bridge.dialects import Dialect, quote_identifier
from db_bridge.schema.models import ColumnSchema, TableSchema

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------
# Type maps
# ------------------------------------------------------------------

SQLITE_TO_MYSQL_TYPES: Mapping[str, str] = MappingProxyType({
    "INTEGER": "INT",
    "INT": "INT",
    "TINYINT": "TINYINT",
    "SMALLINT": "SMALLINT",
    "MEDIUMINT": "MEDIUMINT",
    "BIGINT": "BIGINT",
    "UNSIGNED BIG INT": "BIGINT UNSIGNED",
    "INT2": "SMALLINT",
    "INT8": "BIGINT",
    "TEXT": "TEXT",
    "CLOB": "LONGTEXT",
    "REAL": "DOUBLE",
    "DOUBLE": "DOUBLE",
    "DOUBLE PRECISION": "DOUBLE",
    "FLOAT": "FLOAT",
    "BLOB": "LONGBLOB",
    "NUMERIC": "DECIMAL",
    "DECIMAL": "DECIMAL",
    "BOOLEAN": "BOOLEAN",
    "VARCHAR": "VARCHAR",
    "VARYING CHARACTER": "VARCHAR",
    "NCHAR": "CHAR",
    "NATIVE CHARACTER": "CHAR",
    "NVARCHAR": "VARCHAR",
    "CHAR": "CHAR",
    "CHARACTER": "CHAR",
    "DATETIME": "DATETIME",
    "DATE": "DATE",
    "TIME": "TIME",
    "TIMESTAMP": "TIMESTAMP",
})

MYSQL_TO_SQLITE_TYPES: Mapping[str, str] = MappingProxyType({
    "TINYINT": "INTEGER",
    "SMALLINT": "INTEGER",
    "MEDIUMINT": "INTEGER",
    "INT": "INTEGER",
    "INTEGER": "INTEGER",
    "BIGINT": "INTEGER",
    "BIT": "INTEGER",
    "BOOL": "INTEGER",
    "BOOLEAN": "INTEGER",
    "FLOAT": "REAL",
    "DOUBLE": "REAL",
    "REAL": "REAL",
    "DECIMAL": "NUMERIC",
    "NUMERIC": "NUMERIC",
    "CHAR": "TEXT",
    "VARCHAR": "TEXT",
    "TINYTEXT": "TEXT",
    "TEXT": "TEXT",
    "MEDIUMTEXT": "TEXT",
    "LONGTEXT": "TEXT",
    "ENUM": "TEXT",
    "SET": "TEXT",
    "JSON": "TEXT",
    "BINARY": "BLOB",
    "VARBINARY": "BLOB",
    "TINYBLOB": "BLOB",
    "BLOB": "BLOB",
    "MEDIUMBLOB": "BLOB",
    "LONGBLOB": "BLOB",
    "DATE": "TEXT",
    "TIME": "TEXT",
    "DATETIME": "TEXT",
    "TIMESTAMP": "TEXT",
    "YEAR": "INTEGER",
})

_TYPE_MAPS: Mapping[Dialect, Mapping[str, str]] = MappingProxyType({
    Dialect.MYSQL: SQLITE_TO_MYSQL_TYPES,
    Dialect.SQLITE: MYSQL_TO_SQLITE_TYPES,
})

# MySQL types that take a (size) or (size,digits) suffix
_SIZED_MYSQL_TYPES = frozenset({"VARCHAR", "CHAR", "DECIMAL", "NUMERIC"})
_DECIMAL_TYPES = frozenset({"DECIMAL", "NUMERIC"})
_DEFAULT_VARCHAR_SIZE = 255

_MYSQL_TEXT_TYPES = frozenset({"TINYTEXT", "TEXT", "MEDIUMTEXT", "LONGTEXT"})
_MYSQL_BLOB_TYPES = frozenset({"TINYBLOB", "BLOB", "MEDIUMBLOB", "LONGBLOB"})

# MySQL cannot key TEXT/BLOB columns without a key-prefix length
_PREFIX_INDEXED_MYSQL_TYPES = _MYSQL_TEXT_TYPES | _MYSQL_BLOB_TYPES
_INDEX_PREFIX_LENGTH = 255

# MySQL only accepts parenthesized expression defaults on these
_EXPRESSION_DEFAULT_MYSQL_TYPES = _MYSQL_TEXT_TYPES | {"JSON"}

_PAREN_SUFFIX = re.compile(r"\([^)]*\)")
_NUMBER_LITERAL = re.compile(r"[-+]?\d+(\.\d+)?")
_TIMESTAMP_KEYWORDS = frozenset({"CURRENT_TIMESTAMP", "CURRENT_TIMESTAMP()", "NOW()"})
_PASSTHROUGH_KEYWORDS = frozenset({"CURRENT_DATE", "CURRENT_TIME"})

_MYSQL_TABLE_OPTIONS = "ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci"


# ------------------------------------------------------------------
# Type and literal conversion
# ------------------------------------------------------------------


def base_type_name(data_type: str) -> str:
    """Upper-cased type name with any parenthesized suffix removed.

    Example:
        >>> base_type_name("varchar(64)")
        'VARCHAR'
        >>> base_type_name("decimal(10, 2) unsigned")
        'DECIMAL UNSIGNED'
    """
    stripped = _PAREN_SUFFIX.sub("", data_type.upper())
    return " ".join(stripped.split())


def convert_data_type(
    source_type: str | None,
    size: int,
    target: Dialect,
    decimal_digits: int = 0,
) -> str:
    """Map a source data type name to the target dialect's name.

    Matching is case-insensitive on the type name without its size
    suffix.  Unmapped types are returned unchanged.  A size suffix is
    reattached only for MySQL character and decimal types; SQLite never
    gets one.

    Args:
        source_type: Type name as reported by the source dialect.
        size: Declared size or precision (0 when unknown).
        target: Dialect the type is being converted to.
        decimal_digits: Declared scale for decimal types.

    Returns:
        Target type name, e.g. ``"VARCHAR(64)"`` or ``"INTEGER"``.

    Examples:
        >>> convert_data_type("INTEGER", 0, Dialect.MYSQL)
        'INT'
        >>> convert_data_type("varchar", 64, Dialect.MYSQL)
        'VARCHAR(64)'
        >>> convert_data_type("DATETIME", 0, Dialect.SQLITE)
        'TEXT'
        >>> convert_data_type("GEOMETRY", 0, Dialect.SQLITE)
        'GEOMETRY'
    """
    if source_type is None:
        return "TEXT"

    converted = _TYPE_MAPS[target].get(base_type_name(source_type), source_type)

    if target is Dialect.MYSQL and converted in _SIZED_MYSQL_TYPES:
        if size > 0:
            if converted in _DECIMAL_TYPES and decimal_digits > 0:
                return f"{converted}({size},{decimal_digits})"
            return f"{converted}({size})"
        if converted == "VARCHAR":
            return f"VARCHAR({_DEFAULT_VARCHAR_SIZE})"

    return converted


def escape_string(value: str | None) -> str:
    """Escape a value for use inside a single-quoted SQL literal."""
    if value is None:
        return ""
    return value.replace("'", "''").replace("\\", "\\\\")


def convert_default_value(default_value: str | None, target: Dialect) -> str:
    """Render a default-value literal for the target dialect.

    Rules, in precedence order:

    1. Current-timestamp keyword forms become ``CURRENT_TIMESTAMP``
       (``CURRENT_DATE``/``CURRENT_TIME`` pass through as-is).
    2. Signed decimal numbers pass through unquoted.
    3. ``true``/``false`` (any case) become ``1``/``0``.
    4. Anything else is a quoted string literal.

    Re-converting the output of rules 1-3 yields the same literal.

    Examples:
        >>> convert_default_value("now()", Dialect.MYSQL)
        'CURRENT_TIMESTAMP'
        >>> convert_default_value("-1.5", Dialect.SQLITE)
        '-1.5'
        >>> convert_default_value("TRUE", Dialect.MYSQL)
        '1'
        >>> convert_default_value("it's", Dialect.SQLITE)
        "'it''s'"
    """
    if not default_value:
        return "NULL"

    upper = default_value.strip().upper()
    if upper in _TIMESTAMP_KEYWORDS:
        return "CURRENT_TIMESTAMP"
    if upper in _PASSTHROUGH_KEYWORDS:
        return upper

    if _NUMBER_LITERAL.fullmatch(default_value):
        return default_value

    if upper in ("TRUE", "1"):
        return "1"
    if upper in ("FALSE", "0"):
        return "0"

    return f"'{escape_string(default_value)}'"


# ------------------------------------------------------------------
# DDL synthesis
# ------------------------------------------------------------------


def _folds_primary_key(table: TableSchema, target: Dialect) -> ColumnSchema | None:
    """Column whose PRIMARY KEY AUTOINCREMENT is folded into its clause.

    Only SQLite folds, and only for a single-column auto-increment key.
    """
    if target is not Dialect.SQLITE:
        return None
    pk_columns = table.primary_key_columns
    if len(pk_columns) == 1 and pk_columns[0].auto_increment:
        return pk_columns[0]
    return None


def _default_clause(column: ColumnSchema, mapped_type: str, target: Dialect) -> str:
    """``DEFAULT ...`` for a column, or ``""`` when the target cannot hold it.

    MySQL rejects literal defaults on TEXT, JSON and BLOB columns.  TEXT
    and JSON defaults are written as an expression default, ``DEFAULT ('x')``
    (MySQL 8.0.13+); BLOB defaults are dropped.
    """
    literal = convert_default_value(column.default, target)
    if target is not Dialect.MYSQL:
        return f"DEFAULT {literal}"

    base = base_type_name(mapped_type)
    if base in _MYSQL_BLOB_TYPES:
        logger.warning(
            "Dropping default %s of BLOB column %s", literal, column.name
        )
        return ""
    if base in _EXPRESSION_DEFAULT_MYSQL_TYPES:
        return f"DEFAULT ({literal})"
    return f"DEFAULT {literal}"


def generate_column_definition(
    column: ColumnSchema,
    target: Dialect,
    fold_primary_key: bool = False,
) -> str:
    """Generate one column clause of a CREATE TABLE statement.

    Args:
        column: Column to render.
        target: Dialect the DDL is generated for.
        fold_primary_key: SQLite only -- attach ``PRIMARY KEY
            AUTOINCREMENT`` to this column instead of a table-level key.

    Returns:
        Column clause, e.g. ```id` INT NOT NULL AUTO_INCREMENT``.
    """
    mapped_type = convert_data_type(
        column.data_type, column.size, target, column.decimal_digits
    )
    parts = [quote_identifier(column.name, target), mapped_type]

    if not column.is_nullable:
        parts.append("NOT NULL")

    if column.auto_increment:
        if target is Dialect.MYSQL:
            parts.append("AUTO_INCREMENT")
        elif fold_primary_key:
            parts.append("PRIMARY KEY AUTOINCREMENT")

    if column.default:
        default_sql = _default_clause(column, mapped_type, target)
        if default_sql:
            parts.append(default_sql)

    if column.comment and target is Dialect.MYSQL:
        parts.append(f"COMMENT '{escape_string(column.comment)}'")

    return " ".join(parts)


def generate_create_table_sql(table: TableSchema, target: Dialect) -> str:
    """Generate the CREATE TABLE statement for a table.

    Deterministic: the same ``TableSchema`` always yields the same text.

    Args:
        table: Table to render.
        target: Dialect the DDL is generated for.

    Returns:
        CREATE TABLE statement terminated by ``;``.

    Example:
        >>> print(generate_create_table_sql(users, Dialect.MYSQL))
        CREATE TABLE `users` (
          `id` INT NOT NULL AUTO_INCREMENT,
          `name` TEXT NOT NULL,
          PRIMARY KEY (`id`)
        ) ENGINE=InnoDB DEFAULT CHARSET=utf8mb4 COLLATE=utf8mb4_unicode_ci;
    """
    folded = _folds_primary_key(table, target)

    clauses = [
        generate_column_definition(
            column, target, fold_primary_key=column is folded
        )
        for column in table.columns
    ]

    if folded is None and table.has_primary_key:
        key_columns = ", ".join(
            _key_column(c.name, table, target) for c in table.primary_key_columns
        )
        clauses.append(f"PRIMARY KEY ({key_columns})")

    body = ",\n".join(f"  {clause}" for clause in clauses)
    sql = f"CREATE TABLE {quote_identifier(table.name, target)} (\n{body}\n)"

    if target is Dialect.MYSQL:
        sql += f" {_MYSQL_TABLE_OPTIONS}"

    logger.debug("Generated CREATE TABLE for %s (%s)", table.name, target.value)
    return sql + ";"


def _key_column(column_name: str, table: TableSchema, target: Dialect) -> str:
    """Quoted key column, with a key-prefix length where MySQL needs one."""
    quoted = quote_identifier(column_name, target)
    if target is not Dialect.MYSQL:
        return quoted
    column = table.get_column(column_name)
    if column is None:
        return quoted
    mapped = convert_data_type(
        column.data_type, column.size, target, column.decimal_digits
    )
    if base_type_name(mapped) in _PREFIX_INDEXED_MYSQL_TYPES:
        return f"{quoted}({_INDEX_PREFIX_LENGTH})"
    return quoted


def generate_create_index_sql(table: TableSchema, target: Dialect) -> list[str]:
    """Generate CREATE INDEX statements for a table's indexes.

    One statement per index name, columns in ordinal order.  An index is
    unique when any of its entries is flagged unique.

    Returns:
        List of statements (empty when the table has no indexes).
    """
    statements: list[str] = []
    for name, entries in table.index_groups().items():
        unique = "UNIQUE " if any(e.is_unique for e in entries) else ""
        columns = ", ".join(_key_column(e.column_name, table, target) for e in entries)
        statements.append(
            f"CREATE {unique}INDEX {quote_identifier(name, target)} "
            f"ON {quote_identifier(table.name, target)} ({columns});"
        )
    return statements


def generate_drop_table_sql(table_name: str, target: Dialect) -> str:
    """DROP TABLE IF EXISTS for a quoted table name."""
    return f"DROP TABLE IF EXISTS {quote_identifier(table_name, target)}"


# ------------------------------------------------------------------
# DML synthesis
# ------------------------------------------------------------------


def generate_select_sql(table: TableSchema, source: Dialect) -> str:
    """SELECT every column of a table in declared column order."""
    columns = ", ".join(quote_identifier(c.name, source) for c in table.columns)
    return f"SELECT {columns} FROM {quote_identifier(table.name, source)}"


def generate_count_sql(table_name: str, dialect: Dialect) -> str:
    """SELECT COUNT(*) for a quoted table name."""
    return f"SELECT COUNT(*) FROM {quote_identifier(table_name, dialect)}"


def generate_insert_sql(
    table_name: str,
    columns: Sequence[ColumnSchema],
    target: Dialect,
) -> str:
    """Generate a positional INSERT statement.

    Column order here must match the order of ``generate_select_sql`` on
    the source, since values are bound by position.

    Example:
        >>> generate_insert_sql("users", users.columns, Dialect.SQLITE)
        'INSERT INTO "users" ("id", "name") VALUES (?, ?)'
    """
    names = ", ".join(quote_identifier(c.name, target) for c in columns)
    placeholders = ", ".join(target.placeholder for _ in columns)
    table = quote_identifier(table_name, target)
    if target.placeholder == "%s":
        # pyformat drivers run the statement through % even for identifiers
        table = table.replace("%", "%%")
        names = names.replace("%", "%%")
    return f"INSERT INTO {table} ({names}) VALUES ({placeholders})"
