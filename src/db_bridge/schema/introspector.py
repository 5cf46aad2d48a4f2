"""Schema introspection for SQLite and MySQL connections.

This module queries a live connection to build the dialect-neutral
schema snapshot (``TableSchema`` list):
- Tables visible to the connection, minus engine-internal tables
- Primary-key columns (read first, used to annotate columns)
- Columns in declared order: type, size, nullability, default, comment
- Non-primary-key indexes, deduplicated by (name, column, position)
- An advisory row count per table

SQLite is read from ``sqlite_master`` and PRAGMAs; MySQL from
``information_schema`` for the connection's current database.

Auto-increment detection is asymmetric.  MySQL reports it directly
(``COLUMNS.EXTRA``).  SQLite has no such metadata, so the table's stored
CREATE statement is searched (case-insensitively) for the column name
followed by ``INTEGER PRIMARY KEY AUTOINCREMENT``.  That search is a
best-effort inference: a CREATE statement with unusual whitespace
between those tokens is reported as not auto-increment.

Usage:
    from db_bridge.schema.introspector import analyze_schema

    with engine.connect() as conn:
        tables = analyze_schema(conn)
"""

import logging
import re

from sqlalchemy import text
from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from db_bridge.dialects import (
    NO_PARAMETERS,
    Dialect,
    UnsupportedDialectError,
    detect_dialect,
    quote_identifier,
)
from db_bridge.schema.converter import generate_count_sql
from db_bridge.schema.models import ColumnSchema, IndexSchema, TableSchema

logger = logging.getLogger(__name__)


_DECLARED_TYPE = re.compile(
    r"^\s*(?P<name>[^(]*?)\s*(?:\(\s*(?P<size>\d+)\s*(?:,\s*(?P<digits>\d+)\s*)?\))?\s*$"
)


def _normalize_default(default: str | None) -> str | None:
    """Strip SQL quoting from a reported default literal.

    ``'abc'`` becomes ``abc`` (with ``''`` unescaped) and a literal
    ``NULL`` means no default at all.
    """
    if default is None:
        return None
    value = str(default).strip()
    if value.upper() == "NULL":
        return None
    if len(value) >= 2 and value[0] == "'" and value[-1] == "'":
        return value[1:-1].replace("''", "'")
    return value


def _key_position(name: str, primary_keys: list[str]) -> int:
    """1-based position of a column in the primary key, 0 if not a key."""
    return primary_keys.index(name) + 1 if name in primary_keys else 0


class SchemaIntrospector:
    """Base introspector: runs the per-table loop over dialect hooks.

    Subclasses implement the catalog queries.  Any failure while
    enumerating tables propagates -- no partial table list is returned.
    Row counting is the only step allowed to fail softly.

    Usage:
        introspector = get_introspector(conn)
        tables = introspector.introspect()
    """

    dialect: Dialect

    # Name prefixes of engine-internal tables
    SYSTEM_TABLE_PREFIXES: tuple[str, ...] = ()

    def __init__(self, conn: Connection):
        """Initialize with an open connection.

        Args:
            conn: Live SQLAlchemy connection of this introspector's dialect.
        """
        self._conn = conn

    def introspect(self) -> list[TableSchema]:
        """Introspect every user table visible to the connection.

        Returns:
            Tables in catalog order, each with columns, indexes and an
            advisory row count.
        """
        tables: list[TableSchema] = []

        for table_name, comment in self._get_tables():
            if self.is_system_table(table_name):
                logger.debug("Skipping system table %s", table_name)
                continue

            primary_keys = self._get_primary_keys(table_name)

            table = TableSchema(
                name=table_name,
                comment=comment or None,
                columns=self._get_columns(table_name, primary_keys),
                indexes=self._dedupe_indexes(self._get_indexes(table_name)),
            )
            self._mark_unique_columns(table)
            table.row_count = self.count_rows(table_name)

            tables.append(table)
            logger.debug(
                "Analyzed table %s (%d columns, %d rows)",
                table_name, len(table.columns), table.row_count,
            )

        logger.info("Analyzed %d tables (%s)", len(tables), self.dialect.value)
        return tables

    def is_system_table(self, table_name: str) -> bool:
        """True if the table is engine-internal and must be skipped."""
        return table_name.startswith(self.SYSTEM_TABLE_PREFIXES)

    def count_rows(self, table_name: str) -> int:
        """Count rows with a dialect-quoted ``COUNT(*)``.

        Failure degrades to 0 because the count is advisory.
        """
        try:
            result = self._conn.exec_driver_sql(
                generate_count_sql(table_name, self.dialect),
                execution_options=NO_PARAMETERS,
            )
            return int(result.scalar() or 0)
        except SQLAlchemyError as e:
            logger.warning("Could not count rows of %s: %s", table_name, e)
            return 0

    # ------------------------------------------------------------------
    # Dialect hooks
    # ------------------------------------------------------------------

    def _get_tables(self) -> list[tuple[str, str | None]]:
        raise NotImplementedError

    def _get_primary_keys(self, table_name: str) -> list[str]:
        raise NotImplementedError

    def _get_columns(
        self, table_name: str, primary_keys: list[str]
    ) -> list[ColumnSchema]:
        raise NotImplementedError

    def _get_indexes(self, table_name: str) -> list[IndexSchema]:
        raise NotImplementedError

    def _mark_unique_columns(self, table: TableSchema) -> None:
        """Hook for dialects that derive ``Column.unique`` from indexes."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _dedupe_indexes(indexes: list[IndexSchema]) -> list[IndexSchema]:
        seen: set[tuple[str, str, int]] = set()
        unique: list[IndexSchema] = []
        for index in indexes:
            key = (index.name, index.column_name, index.ordinal_position)
            if key in seen:
                continue
            seen.add(key)
            unique.append(index)
        return unique


class SQLiteIntrospector(SchemaIntrospector):
    """Introspects SQLite via ``sqlite_master`` and PRAGMAs."""

    dialect = Dialect.SQLITE
    SYSTEM_TABLE_PREFIXES = ("sqlite_",)

    def _get_tables(self) -> list[tuple[str, str | None]]:
        query = """
            SELECT name
            FROM sqlite_master
            WHERE type = 'table'
            ORDER BY name
        """
        rows = self._conn.execute(text(query)).fetchall()
        return [(row[0], None) for row in rows]

    def _table_info(self, table_name: str) -> list:
        return self._conn.exec_driver_sql(
            f"PRAGMA table_info({quote_identifier(table_name, self.dialect)})"
        ).fetchall()

    def _get_primary_keys(self, table_name: str) -> list[str]:
        # pk column holds the 1-based position within the primary key
        keyed = [(row[5], row[1]) for row in self._table_info(table_name) if row[5]]
        return [name for _, name in sorted(keyed)]

    def _get_create_sql(self, table_name: str) -> str:
        query = """
            SELECT sql
            FROM sqlite_master
            WHERE type = 'table' AND name = :name
        """
        row = self._conn.execute(text(query), {"name": table_name}).fetchone()
        return (row[0] or "") if row else ""

    @staticmethod
    def _is_autoincrement(create_sql: str, column_name: str) -> bool:
        """Search the CREATE statement for ``<col> INTEGER PRIMARY KEY AUTOINCREMENT``.

        The column may appear bare or in any of SQLite's identifier quotes.
        """
        name = re.escape(column_name.upper())
        # A bare name must not be the tail of a longer identifier (user_id vs id)
        pattern = (
            rf'(?:(?<![\w$]){name}|"{name}"|`{name}`|\[{name}\])'
            r" INTEGER PRIMARY KEY AUTOINCREMENT"
        )
        return re.search(pattern, create_sql.upper()) is not None

    @staticmethod
    def _parse_declared_type(declared: str | None) -> tuple[str | None, int, int]:
        """Split ``DECIMAL(10,2)`` into ``("DECIMAL", 10, 2)``."""
        if not declared or not declared.strip():
            return None, 0, 0
        match = _DECLARED_TYPE.match(declared)
        if match is None:
            return declared.strip().upper(), 0, 0
        size = int(match.group("size") or 0)
        digits = int(match.group("digits") or 0)
        return match.group("name").upper(), size, digits

    def _get_columns(
        self, table_name: str, primary_keys: list[str]
    ) -> list[ColumnSchema]:
        create_sql = self._get_create_sql(table_name)
        columns = []
        for row in self._table_info(table_name):
            _cid, name, declared, notnull, default, _pk = row
            data_type, size, digits = self._parse_declared_type(declared)
            columns.append(
                ColumnSchema(
                    name=name,
                    data_type=data_type,
                    size=size,
                    decimal_digits=digits,
                    is_nullable=not notnull,
                    default=_normalize_default(default),
                    primary_key=name in primary_keys,
                    primary_key_position=_key_position(name, primary_keys),
                    auto_increment=self._is_autoincrement(create_sql, name),
                )
            )
        return columns

    def _get_indexes(self, table_name: str) -> list[IndexSchema]:
        index_list = self._conn.exec_driver_sql(
            f"PRAGMA index_list({quote_identifier(table_name, self.dialect)})"
        ).fetchall()

        indexes: list[IndexSchema] = []
        for row in index_list:
            index_name, is_unique, origin = row[1], bool(row[2]), row[3]
            if origin == "pk":
                continue

            info = self._conn.exec_driver_sql(
                f"PRAGMA index_info({quote_identifier(index_name, self.dialect)})"
            ).fetchall()
            # Expression index entries have no column name
            entries = sorted((r[0], r[2]) for r in info if r[2] is not None)
            if not entries:
                continue

            if origin == "u":
                # sqlite_autoindex_* names are reserved and cannot be recreated
                index_name = "uq_{}_{}".format(
                    table_name, "_".join(col for _, col in entries)
                )

            for seqno, column_name in entries:
                indexes.append(
                    IndexSchema(
                        name=index_name,
                        table_name=table_name,
                        column_name=column_name,
                        ordinal_position=seqno + 1,
                        is_unique=is_unique,
                    )
                )
        return indexes

    def _mark_unique_columns(self, table: TableSchema) -> None:
        for entries in table.index_groups().values():
            if len(entries) == 1 and entries[0].is_unique:
                column = table.get_column(entries[0].column_name)
                if column is not None:
                    column.unique = True


class MySQLIntrospector(SchemaIntrospector):
    """Introspects MySQL via ``information_schema`` of ``DATABASE()``."""

    dialect = Dialect.MYSQL
    SYSTEM_TABLE_PREFIXES = (
        "information_schema",
        "performance_schema",
        "mysql",
        "sys",
    )

    def _get_tables(self) -> list[tuple[str, str | None]]:
        query = """
            SELECT TABLE_NAME, TABLE_COMMENT
            FROM information_schema.TABLES
            WHERE TABLE_SCHEMA = DATABASE()
              AND TABLE_TYPE = 'BASE TABLE'
            ORDER BY TABLE_NAME
        """
        rows = self._conn.execute(text(query)).fetchall()
        return [(row[0], row[1]) for row in rows]

    def _get_primary_keys(self, table_name: str) -> list[str]:
        query = """
            SELECT COLUMN_NAME
            FROM information_schema.KEY_COLUMN_USAGE
            WHERE TABLE_SCHEMA = DATABASE()
              AND TABLE_NAME = :table
              AND CONSTRAINT_NAME = 'PRIMARY'
            ORDER BY ORDINAL_POSITION
        """
        rows = self._conn.execute(text(query), {"table": table_name}).fetchall()
        return [row[0] for row in rows]

    def _get_columns(
        self, table_name: str, primary_keys: list[str]
    ) -> list[ColumnSchema]:
        query = """
            SELECT
                COLUMN_NAME,
                DATA_TYPE,
                CHARACTER_MAXIMUM_LENGTH,
                NUMERIC_PRECISION,
                NUMERIC_SCALE,
                IS_NULLABLE,
                COLUMN_DEFAULT,
                COLUMN_COMMENT,
                COLUMN_KEY,
                EXTRA
            FROM information_schema.COLUMNS
            WHERE TABLE_SCHEMA = DATABASE()
              AND TABLE_NAME = :table
            ORDER BY ORDINAL_POSITION
        """
        rows = self._conn.execute(text(query), {"table": table_name}).fetchall()

        columns = []
        for row in rows:
            (
                name,
                data_type,
                char_length,
                precision,
                scale,
                is_nullable,
                default,
                comment,
                column_key,
                extra,
            ) = row
            size = char_length if char_length is not None else precision
            columns.append(
                ColumnSchema(
                    name=name,
                    data_type=data_type.upper() if data_type else None,
                    size=int(size or 0),
                    decimal_digits=int(scale or 0),
                    is_nullable=(is_nullable == "YES"),
                    default=_normalize_default(default),
                    comment=comment or None,
                    primary_key=name in primary_keys,
                    primary_key_position=_key_position(name, primary_keys),
                    auto_increment="auto_increment" in (extra or "").lower(),
                    unique=(column_key == "UNI"),
                )
            )
        return columns

    def _get_indexes(self, table_name: str) -> list[IndexSchema]:
        query = """
            SELECT
                INDEX_NAME,
                COLUMN_NAME,
                SEQ_IN_INDEX,
                NON_UNIQUE,
                INDEX_TYPE,
                INDEX_COMMENT
            FROM information_schema.STATISTICS
            WHERE TABLE_SCHEMA = DATABASE()
              AND TABLE_NAME = :table
              AND INDEX_NAME <> 'PRIMARY'
            ORDER BY INDEX_NAME, SEQ_IN_INDEX
        """
        rows = self._conn.execute(text(query), {"table": table_name}).fetchall()

        indexes = []
        for row in rows:
            name, column_name, seq, non_unique, index_type, comment = row
            # Functional key parts have no column
            if column_name is None:
                continue
            indexes.append(
                IndexSchema(
                    name=name,
                    table_name=table_name,
                    column_name=column_name,
                    ordinal_position=int(seq),
                    is_unique=not int(non_unique),
                    index_type=index_type,
                    comment=comment or None,
                )
            )
        return indexes


_INTROSPECTORS: dict[Dialect, type[SchemaIntrospector]] = {
    Dialect.SQLITE: SQLiteIntrospector,
    Dialect.MYSQL: MySQLIntrospector,
}


def get_introspector(conn: Connection) -> SchemaIntrospector:
    """Return the introspector matching the connection's dialect.

    Raises:
        UnsupportedDialectError: If the connection is neither SQLite nor MySQL.
    """
    dialect = detect_dialect(conn)
    if dialect is None:
        raise UnsupportedDialectError(
            f"Unsupported database driver: {conn.engine.url.drivername}"
        )
    return _INTROSPECTORS[dialect](conn)


def analyze_schema(conn: Connection) -> list[TableSchema]:
    """Analyze a connection into a list of ``TableSchema``.

    Args:
        conn: Open SQLAlchemy connection (SQLite or MySQL).

    Returns:
        User tables in catalog order.

    Raises:
        UnsupportedDialectError: If the connection's dialect is unsupported.
        sqlalchemy.exc.SQLAlchemyError: If enumerating tables fails.
    """
    return get_introspector(conn).introspect()
