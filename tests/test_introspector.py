"""Tests for SQLite and MySQL schema introspection."""

from collections.abc import Callable
import logging
from unittest.mock import MagicMock

import pytest
from sqlalchemy.engine import Connection

from db_bridge.dialects import Dialect, UnsupportedDialectError
from db_bridge.schema.converter import generate_create_table_sql
from db_bridge.schema.introspector import (
    MySQLIntrospector,
    SQLiteIntrospector,
    _normalize_default,
    analyze_schema,
    get_introspector,
)


# ============================================================================
# SQLite
# ============================================================================


class TestSQLiteIntrospector:
    """Verify introspection against real SQLite databases."""

    def test_users_table(self, users_source: Connection) -> None:
        """Columns, key, auto-increment and row count of the users table."""
        tables = analyze_schema(users_source)

        assert [t.name for t in tables] == ["users"]
        users = tables[0]
        assert users.column_names == ["id", "name", "active"]
        assert users.row_count == 3

        id_col = users.get_column("id")
        assert id_col.data_type == "INTEGER"
        assert id_col.primary_key is True
        assert id_col.auto_increment is True

        name_col = users.get_column("name")
        assert name_col.is_nullable is False
        assert name_col.auto_increment is False

        active = users.get_column("active")
        assert active.data_type == "BOOLEAN"
        assert active.default == "1"

    def test_internal_tables_skipped_and_ordered(
        self, sqlite_db: Callable[..., Connection]
    ) -> None:
        """sqlite_sequence is excluded; tables come back sorted by name."""
        conn = sqlite_db(
            "ordered",
            "CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT)",
            "CREATE TABLE accounts (id INTEGER)",
            "INSERT INTO users (name) VALUES ('x')",
        )
        assert [t.name for t in analyze_schema(conn)] == ["accounts", "users"]

    def test_declared_types_parsed(self, sqlite_db: Callable[..., Connection]) -> None:
        conn = sqlite_db(
            "types",
            "CREATE TABLE t (price DECIMAL(10, 2), code varchar(8), note, blob_col BLOB)",
        )
        table = analyze_schema(conn)[0]

        price = table.get_column("price")
        assert (price.data_type, price.size, price.decimal_digits) == ("DECIMAL", 10, 2)
        code = table.get_column("code")
        assert (code.data_type, code.size) == ("VARCHAR", 8)
        assert table.get_column("note").data_type is None
        assert table.get_column("blob_col").data_type == "BLOB"

    def test_defaults_normalized(self, sqlite_db: Callable[..., Connection]) -> None:
        """Quoted literals lose their quotes and NULL means no default."""
        conn = sqlite_db(
            "defaults",
            "CREATE TABLE t ("
            "status TEXT DEFAULT 'new', "
            "quote TEXT DEFAULT 'it''s', "
            "gone TEXT DEFAULT NULL, "
            "created TEXT DEFAULT CURRENT_TIMESTAMP, "
            "plain TEXT)",
        )
        table = analyze_schema(conn)[0]

        assert table.get_column("status").default == "new"
        assert table.get_column("quote").default == "it's"
        assert table.get_column("gone").default is None
        assert table.get_column("created").default == "CURRENT_TIMESTAMP"
        assert table.get_column("plain").default is None

    def test_primary_key_without_autoincrement(
        self, sqlite_db: Callable[..., Connection]
    ) -> None:
        conn = sqlite_db("pk", "CREATE TABLE t (id INTEGER PRIMARY KEY, v TEXT)")
        id_col = analyze_schema(conn)[0].get_column("id")
        assert id_col.primary_key is True
        assert id_col.auto_increment is False

    def test_composite_primary_key_order(
        self, sqlite_db: Callable[..., Connection]
    ) -> None:
        conn = sqlite_db(
            "composite",
            "CREATE TABLE t (a INTEGER, b INTEGER, c TEXT, PRIMARY KEY (b, a))",
        )
        table = analyze_schema(conn)[0]
        assert [c.name for c in table.primary_key_columns] == ["b", "a"]
        assert table.get_column("b").primary_key_position == 1
        assert table.get_column("c").primary_key_position == 0
        assert not table.indexes
        assert 'PRIMARY KEY ("b", "a")' in generate_create_table_sql(table, Dialect.SQLITE)

    def test_quoted_autoincrement_column(
        self, sqlite_db: Callable[..., Connection]
    ) -> None:
        conn = sqlite_db(
            "quoted",
            'CREATE TABLE t ("Id" INTEGER PRIMARY KEY AUTOINCREMENT, v TEXT)',
        )
        assert analyze_schema(conn)[0].get_column("Id").auto_increment is True

    def test_autoincrement_with_odd_whitespace_not_detected(
        self, sqlite_db: Callable[..., Connection]
    ) -> None:
        """Detection is a text search; extra spaces defeat it."""
        conn = sqlite_db(
            "spaced",
            "CREATE TABLE t (id INTEGER  PRIMARY KEY AUTOINCREMENT, v TEXT)",
        )
        id_col = analyze_schema(conn)[0].get_column("id")
        assert id_col.primary_key is True
        assert id_col.auto_increment is False

    def test_indexes(self, sqlite_db: Callable[..., Connection]) -> None:
        """Explicit indexes keep their names; constraint indexes are renamed."""
        conn = sqlite_db(
            "indexed",
            "CREATE TABLE people (id INTEGER PRIMARY KEY, email TEXT UNIQUE, "
            "last TEXT, first TEXT)",
            "CREATE INDEX idx_name ON people (last, first)",
        )
        table = analyze_schema(conn)[0]
        groups = table.index_groups()

        assert set(groups) == {"idx_name", "uq_people_email"}
        assert [(e.column_name, e.ordinal_position) for e in groups["idx_name"]] == [
            ("last", 1),
            ("first", 2),
        ]
        assert not any(e.is_unique for e in groups["idx_name"])
        assert groups["uq_people_email"][0].is_unique is True
        assert table.get_column("email").unique is True
        assert table.get_column("last").unique is False

    def test_count_rows_failure_is_zero(
        self, sqlite_db: Callable[..., Connection]
    ) -> None:
        conn = sqlite_db("empty")
        assert SQLiteIntrospector(conn).count_rows("missing") == 0

    def test_empty_database(self, sqlite_db: Callable[..., Connection]) -> None:
        assert analyze_schema(sqlite_db("nothing")) == []

    def test_parse_declared_type(self) -> None:
        parse = SQLiteIntrospector._parse_declared_type
        assert parse("UNSIGNED BIG INT") == ("UNSIGNED BIG INT", 0, 0)
        assert parse("  ") == (None, 0, 0)
        assert parse("NUMERIC(8)") == ("NUMERIC", 8, 0)


class TestNormalizeDefault:
    """Verify default-literal normalization."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (None, None),
            ("NULL", None),
            ("null", None),
            ("'abc'", "abc"),
            ("'a''b'", "a'b"),
            ("42", "42"),
            ("CURRENT_TIMESTAMP", "CURRENT_TIMESTAMP"),
            ("''", ""),
        ],
    )
    def test_values(self, raw: str | None, expected: str | None) -> None:
        assert _normalize_default(raw) == expected


# ============================================================================
# MySQL (mocked catalog)
# ============================================================================


def _mysql_conn(
    primary_keys: list[tuple[str]] | None = None,
    tables: list[tuple[str, str]] | None = None,
) -> MagicMock:
    """Connection mock answering information_schema queries for ``orders``."""
    conn = MagicMock()
    conn.engine.url.drivername = "mysql+pymysql"

    catalog = {
        "information_schema.TABLES": tables or [("orders", "Customer orders")],
        "information_schema.KEY_COLUMN_USAGE": primary_keys or [("id",)],
        "information_schema.COLUMNS": [
            ("id", "int", None, 10, 0, "NO", None, "", "PRI", "auto_increment"),
            ("code", "varchar", 32, None, None, "NO", None, "SKU code", "UNI", ""),
            ("total", "decimal", None, 10, 2, "YES", "0.00", "", "", ""),
            ("status", "enum", 7, None, None, "YES", "'new'", "", "", ""),
        ],
        "information_schema.STATISTICS": [
            ("idx_status_total", "status", 1, 1, "BTREE", ""),
            ("idx_status_total", "total", 2, 1, "BTREE", ""),
            ("uq_code", "code", 1, 0, "BTREE", "unique sku"),
            ("idx_expr", None, 1, 1, "BTREE", ""),
        ],
    }

    def execute(statement, params=None):
        sql = str(statement)
        for table, rows in catalog.items():
            if table in sql:
                result = MagicMock()
                result.fetchall.return_value = rows
                return result
        raise AssertionError(f"unexpected query: {sql}")

    conn.execute.side_effect = execute
    conn.exec_driver_sql.return_value.scalar.return_value = 42
    return conn


class TestMySQLIntrospector:
    """Verify information_schema rows map onto the schema model."""

    def test_dispatch(self) -> None:
        assert isinstance(get_introspector(_mysql_conn()), MySQLIntrospector)

    def test_orders_table(self) -> None:
        conn = _mysql_conn()
        tables = analyze_schema(conn)

        assert len(tables) == 1
        orders = tables[0]
        assert orders.name == "orders"
        assert orders.comment == "Customer orders"
        assert orders.row_count == 42
        assert orders.column_names == ["id", "code", "total", "status"]
        conn.exec_driver_sql.assert_called_once_with(
            "SELECT COUNT(*) FROM `orders`",
            execution_options={"no_parameters": True},
        )

    def test_columns(self) -> None:
        orders = analyze_schema(_mysql_conn())[0]

        id_col = orders.get_column("id")
        assert id_col.data_type == "INT"
        assert id_col.size == 10
        assert id_col.primary_key and id_col.auto_increment
        assert id_col.is_nullable is False

        code = orders.get_column("code")
        assert (code.data_type, code.size) == ("VARCHAR", 32)
        assert code.unique is True
        assert code.comment == "SKU code"

        total = orders.get_column("total")
        assert (total.size, total.decimal_digits) == (10, 2)
        assert total.default == "0.00"
        assert total.is_nullable is True

        assert orders.get_column("status").default == "new"

    def test_indexes(self) -> None:
        """Functional key parts are dropped; uniqueness comes from NON_UNIQUE."""
        groups = analyze_schema(_mysql_conn())[0].index_groups()

        assert list(groups) == ["idx_status_total", "uq_code"]
        assert [e.column_name for e in groups["idx_status_total"]] == ["status", "total"]
        assert groups["uq_code"][0].is_unique is True
        assert groups["uq_code"][0].comment == "unique sku"
        assert groups["idx_status_total"][0].index_type == "BTREE"

    def test_system_tables_skipped(self) -> None:
        introspector = MySQLIntrospector(_mysql_conn())
        assert introspector.is_system_table("performance_schema")
        assert introspector.is_system_table("mysql")
        assert not introspector.is_system_table("orders")

    def test_prefix_match_skips_lookalike_user_tables(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Names starting with a system prefix are skipped and logged."""
        conn = _mysql_conn(
            tables=[("mysql_jobs", ""), ("orders", ""), ("sys_user", "")]
        )
        assert MySQLIntrospector(conn).is_system_table("sys_user")

        with caplog.at_level(logging.DEBUG, logger="db_bridge.schema.introspector"):
            tables = analyze_schema(conn)

        assert [t.name for t in tables] == ["orders"]
        skipped = [
            r.getMessage() for r in caplog.records
            if r.getMessage().startswith("Skipping system table")
        ]
        assert skipped == [
            "Skipping system table mysql_jobs",
            "Skipping system table sys_user",
        ]

    def test_composite_primary_key_order(self) -> None:
        """Key order follows ORDINAL_POSITION, not column order."""
        orders = analyze_schema(_mysql_conn(primary_keys=[("code",), ("id",)]))[0]

        assert [c.name for c in orders.primary_key_columns] == ["code", "id"]
        assert orders.get_column("code").primary_key_position == 1
        assert orders.get_column("total").primary_key_position == 0


class TestGetIntrospector:
    """Verify dialect dispatch."""

    def test_sqlite(self, sqlite_db: Callable[..., Connection]) -> None:
        assert isinstance(get_introspector(sqlite_db("dispatch")), SQLiteIntrospector)

    def test_unsupported_dialect(self) -> None:
        conn = MagicMock()
        conn.engine.url.drivername = "postgresql+psycopg"
        with pytest.raises(UnsupportedDialectError, match="postgresql"):
            get_introspector(conn)


class TestAutoincrementDetection:
    """Verify the CREATE-statement search used for SQLite auto-increment."""

    @pytest.mark.parametrize(
        "create_sql, column, expected",
        [
            ("CREATE TABLE t (id integer primary key autoincrement)", "id", True),
            ('CREATE TABLE t ("id" INTEGER PRIMARY KEY AUTOINCREMENT)', "id", True),
            ("CREATE TABLE t ([id] INTEGER PRIMARY KEY AUTOINCREMENT)", "id", True),
            ("CREATE TABLE t (`id` INTEGER PRIMARY KEY AUTOINCREMENT)", "id", True),
            ("CREATE TABLE t (user_id INTEGER PRIMARY KEY AUTOINCREMENT, id TEXT)", "id", False),
            ("CREATE TABLE t (id INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT)", "id", False),
            ("CREATE TABLE t (id INTEGER PRIMARY KEY)", "id", False),
        ],
    )
    def test_search(self, create_sql: str, column: str, expected: bool) -> None:
        assert SQLiteIntrospector._is_autoincrement(create_sql, column) is expected
