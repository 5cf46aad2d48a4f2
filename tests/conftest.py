"""Shared fixtures: file-backed SQLite databases opened through SQLAlchemy."""

from collections.abc import Callable, Iterator
from contextlib import ExitStack
from pathlib import Path

import pytest
from sqlalchemy.engine import Connection

from db_bridge.factory import open_connection

USERS_DDL = (
    "CREATE TABLE users ("
    "id INTEGER PRIMARY KEY AUTOINCREMENT, "
    "name TEXT NOT NULL, "
    "active BOOLEAN DEFAULT 1)"
)


@pytest.fixture
def sqlite_db(tmp_path: Path) -> Iterator[Callable[..., Connection]]:
    """Open a SQLite database file under tmp_path, running setup SQL first.

    Usage:
        conn = sqlite_db("source", "CREATE TABLE t (id INTEGER)")
    """
    with ExitStack() as stack:

        def _open(name: str, *statements: str) -> Connection:
            conn = stack.enter_context(
                open_connection(f"sqlite:///{tmp_path / name}.db")
            )
            for sql in statements:
                conn.exec_driver_sql(sql)
            return conn

        yield _open


@pytest.fixture
def users_source(sqlite_db: Callable[..., Connection]) -> Connection:
    """Source database with the three-row ``users`` table."""
    conn = sqlite_db("source", USERS_DDL)
    conn.exec_driver_sql(
        "INSERT INTO users (name, active) VALUES (?, ?)",
        [("alice", 1), ("bob", 0), ("carol", 1)],
    )
    return conn
