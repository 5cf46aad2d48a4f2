"""Post-migration verification of a target against its source."""

import logging

from sqlalchemy.engine import Connection

from db_bridge.schema.comparator import compare_schemas
from db_bridge.schema.introspector import analyze_schema
from db_bridge.schema.models import SchemaValidationResult

logger = logging.getLogger(__name__)


def verify_migration(source: Connection, target: Connection) -> SchemaValidationResult:
    """Re-analyze both sides and report what the target is missing.

    Row counts are taken fresh from both connections, so a source that
    changed after the migration shows up as a mismatch.

    Raises:
        UnsupportedDialectError: If either connection is unsupported.
        sqlalchemy.exc.SQLAlchemyError: If analysis fails.
    """
    result = compare_schemas(analyze_schema(source), analyze_schema(target))
    if result.valid:
        logger.info("Verification passed")
    else:
        logger.warning("Verification found %d problems", result.error_count)
    return result
