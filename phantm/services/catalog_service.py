"""Physical schema access through information_schema."""

import logging
from typing import List

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from phantm.core.exceptions import StorageError
from phantm.core.naming import validate_identifier

logger = logging.getLogger(__name__)


class CatalogService:
    """Reads and changes physical schemas. Never commits."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def schema_exists(self, schema_name: str) -> bool:
        """Check if schema exists."""
        try:
            result = await self.db.execute(text("""
                SELECT EXISTS (
                    SELECT 1 FROM information_schema.schemata
                    WHERE schema_name = :schema_name
                )
            """), {"schema_name": schema_name})
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to check schema existence for '{schema_name}': {e}") from e
        return result.scalar() or False

    async def drop_schema(self, schema_name: str) -> None:
        """
        Drop a schema and everything in it.

        Args:
            schema_name: Name of the schema to drop

        Raises:
            ValidationError: If the name is not a plain identifier
            StorageError: If the drop fails
        """
        validate_identifier(schema_name)
        try:
            await self.db.execute(text(f'DROP SCHEMA IF EXISTS "{schema_name}" CASCADE'))
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to drop schema '{schema_name}': {e}") from e

        logger.warning(f"Schema '{schema_name}' DROPPED (all data deleted)")

    async def execute_ddl(self, sql: str, schema_name: str) -> None:
        """
        Run a rendered DDL script as-is.

        The script goes straight to the driver with no parameters at all, so
        colons in casts and percent signs in LIKE patterns or RAISE formats
        reach PostgreSQL untouched.
        """
        try:
            conn = await self.db.connection()
            await conn.exec_driver_sql(sql, execution_options={"no_parameters": True})
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to execute DDL for schema '{schema_name}': {e}") from e

        logger.info(f"Executed DDL for schema '{schema_name}'")

    async def list_base_tables(self, schema_name: str) -> List[str]:
        """Get list of base tables in schema."""
        try:
            result = await self.db.execute(text("""
                SELECT table_name
                FROM information_schema.tables
                WHERE table_schema = :schema_name
                AND table_type = 'BASE TABLE'
                ORDER BY table_name
            """), {"schema_name": schema_name})
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list tables for schema '{schema_name}': {e}") from e
        return [row[0] for row in result.fetchall()]
