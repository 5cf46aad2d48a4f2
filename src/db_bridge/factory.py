"""Connection provider: profiles, URLs and validated connections.

Resolves a db.toml profile (or a raw URL) into an open, validated
SQLAlchemy connection of one of the two supported dialects.  Connectivity
is checked with ``SELECT 1`` before the connection is handed out, so
connection failures surface here, before any schema work begins.

Usage:
    from db_bridge.factory import connect_profile, open_connection

    with connect_profile("legacy") as source, connect_profile("prod") as target:
        result = MigrationEngine().migrate(source, target)

    with open_connection("sqlite:///app.db") as conn:
        tables = analyze_schema(conn)
"""

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any
from urllib.parse import quote

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from db_bridge.config.loader import load_db_config
from db_bridge.config.models import DatabaseProfile
from db_bridge.dialects import Dialect, dialect_from_url

logger = logging.getLogger(__name__)


class ProfileNotFoundError(Exception):
    """Raised when no database profile is configured or a name is unknown."""

    pass


class DatabaseConnectionError(Exception):
    """Raised when a connection cannot be opened or validated."""

    pass


# ============================================================================
# Profile Resolution
# ============================================================================


def get_active_profile_name(env_prefix: str = "") -> str:
    """Get active profile name from the ``<PREFIX>DB_PROFILE`` env var.

    Args:
        env_prefix: Prefix for the env var (``"APP_"`` reads ``APP_DB_PROFILE``).

    Returns:
        Profile name

    Raises:
        ProfileNotFoundError: If the env var is unset or empty
    """
    env_var = f"{env_prefix}DB_PROFILE"
    env_profile = os.environ.get(env_var)
    if env_profile:
        return env_profile

    raise ProfileNotFoundError(
        "No database profile configured.\n"
        f"Set {env_var}=<name> or pass the profile name to db-bridge."
    )


def get_profile(
    profile_name: str, config_path: Path | None = None
) -> DatabaseProfile:
    """Look up a profile by name in db.toml.

    Raises:
        ProfileNotFoundError: If the profile is not defined
        FileNotFoundError: If db.toml doesn't exist
    """
    config = load_db_config(config_path)
    if profile_name not in config.profiles:
        available = ", ".join(config.profiles.keys()) or "(none)"
        raise ProfileNotFoundError(
            f"Profile '{profile_name}' not found in db.toml.\n"
            f"Available profiles: {available}"
        )
    return config.profiles[profile_name]


def resolve_url(profile: DatabaseProfile) -> str:
    """Resolve profile URL with password substitution.

    Args:
        profile: Database profile from config

    Returns:
        Connection URL with password substituted (URL-encoded)
    """
    url = profile.url
    if profile.db_password and "[YOUR-PASSWORD]" in url:
        url = url.replace("[YOUR-PASSWORD]", quote(profile.db_password, safe=""))
    return url


# ============================================================================
# Engines and Connections
# ============================================================================


def create_engine_for_url(database_url: str, **kwargs: Any) -> Engine:
    """Create a SQLAlchemy engine with per-dialect pool defaults.

    MySQL engines get a small pool with ``pool_pre_ping`` and recycling;
    SQLite engines allow use from the migration worker thread.

    Args:
        database_url: ``sqlite:///...`` or ``mysql+pymysql://...`` URL.
        **kwargs: Additional keyword arguments forwarded to
            ``create_engine`` (caller kwargs override defaults).

    Returns:
        Configured ``Engine``.

    Raises:
        DatabaseConnectionError: If the URL is not SQLite or MySQL.
    """
    dialect = dialect_from_url(database_url)
    if dialect is None:
        raise DatabaseConnectionError(
            f"Unsupported database URL: {database_url.split(':', 1)[0]}"
        )

    defaults: dict[str, Any] = {"pool_pre_ping": True, "echo": False}
    if dialect is Dialect.MYSQL:
        defaults.update(pool_size=2, max_overflow=2, pool_recycle=300)
    else:
        defaults["connect_args"] = {"check_same_thread": False}

    # Caller kwargs override defaults
    merged = {**defaults, **kwargs}
    return create_engine(database_url, **merged)


@contextmanager
def open_connection(database_url: str, **kwargs: Any) -> Iterator[Connection]:
    """Open and validate a connection, disposing the engine on exit.

    The connection is left in auto-commit mode; the migration engine
    switches the target into a transaction for the duration of a run.

    Raises:
        DatabaseConnectionError: If the connection cannot be opened or
            fails the ``SELECT 1`` check.
    """
    engine = create_engine_for_url(database_url, **kwargs)
    try:
        try:
            conn = engine.connect()
        except SQLAlchemyError as e:
            raise DatabaseConnectionError(f"Failed to connect to database: {e}") from e

        try:
            conn.execution_options(isolation_level="AUTOCOMMIT")
            conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            conn.close()
            raise DatabaseConnectionError(f"Failed to validate connection: {e}") from e

        logger.debug("Connected (%s)", engine.url.render_as_string(hide_password=True))
        try:
            yield conn
        finally:
            conn.close()
    finally:
        engine.dispose()


@contextmanager
def connect_profile(
    profile_name: str, config_path: Path | None = None
) -> Iterator[Connection]:
    """Open a validated connection for a db.toml profile.

    Raises:
        ProfileNotFoundError: If the profile is not defined
        DatabaseConnectionError: If the connection cannot be validated
    """
    profile = get_profile(profile_name, config_path)
    with open_connection(resolve_url(profile)) as conn:
        yield conn
