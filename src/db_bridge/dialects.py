"""Dialect identity for live connections.

The migration core supports exactly two dialects.  A connection is
classified by the driver-name prefix of its SQLAlchemy URL; anything else
is reported as ``None`` so callers can refuse to guess.

Usage:
    from db_bridge.dialects import Dialect, detect_dialect, quote_identifier

    dialect = detect_dialect(conn)
    if dialect is None:
        raise UnsupportedDialectError(...)

    quote_identifier("users", Dialect.MYSQL)   # '`users`'
    quote_identifier("users", Dialect.SQLITE)  # '"users"'
"""

from enum import Enum

from sqlalchemy.engine import Connection


class UnsupportedDialectError(Exception):
    """Raised when a connection is neither SQLite nor MySQL."""

    pass


class Dialect(str, Enum):
    """Supported database engines."""

    SQLITE = "sqlite"
    MYSQL = "mysql"

    @property
    def quote_char(self) -> str:
        """Identifier delimiter: backtick for MySQL, double quote for SQLite."""
        return "`" if self is Dialect.MYSQL else '"'

    @property
    def placeholder(self) -> str:
        """Positional bind marker of the dialect's DB-API driver.

        sqlite3 uses the ``qmark`` style, PyMySQL the ``format`` style.
        """
        return "%s" if self is Dialect.MYSQL else "?"


# Execution options for statements sent without bound parameters.  Keeps
# pyformat drivers (PyMySQL) from treating a literal "%" as a format marker.
NO_PARAMETERS: dict[str, bool] = {"no_parameters": True}

# URL driver-name prefix -> dialect
_DRIVER_PREFIXES: dict[str, Dialect] = {
    "sqlite": Dialect.SQLITE,
    "mysql": Dialect.MYSQL,
    "mariadb": Dialect.MYSQL,
}


def dialect_from_url(url: str) -> Dialect | None:
    """Classify a connection URL string by its scheme prefix.

    Args:
        url: Connection URL such as ``sqlite:///app.db`` or
            ``mysql+pymysql://user@host/db``.

    Returns:
        The matching ``Dialect``, or ``None`` if neither prefix matches.
    """
    scheme = url.split(":", 1)[0].lower()
    return _DRIVER_PREFIXES.get(scheme.split("+", 1)[0])


def detect_dialect(conn: Connection) -> Dialect | None:
    """Answer which of the two supported dialects a connection belongs to.

    Args:
        conn: Open SQLAlchemy connection.

    Returns:
        ``Dialect.SQLITE`` or ``Dialect.MYSQL``; ``None`` when the
        connection's driver is neither.
    """
    drivername = conn.engine.url.drivername.lower()
    return _DRIVER_PREFIXES.get(drivername.split("+", 1)[0])


def quote_identifier(name: str, dialect: Dialect) -> str:
    """Wrap an identifier in the dialect's delimiter.

    An embedded delimiter is doubled, which both engines accept as an
    escaped quote inside a quoted identifier.
    """
    q = dialect.quote_char
    return f"{q}{name.replace(q, q + q)}{q}"
