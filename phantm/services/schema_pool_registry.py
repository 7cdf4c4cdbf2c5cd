"""
Schema pool registry

CRUD and status transitions on common.schema_pool. Every method works on the
caller's session and leaves the commit to the caller, so a registration can
share one transaction with the DDL that created the schema.
"""

import logging
import uuid
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from phantm.core.exceptions import (
    ConflictError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from phantm.models.schema_pool import SchemaPool
from phantm.schemas.schema_pool import SchemaRecord, SchemaStatus

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"


def parse_status(value: str) -> SchemaStatus:
    """Case-insensitive status lookup."""
    try:
        return SchemaStatus(value.strip().upper())
    except (AttributeError, ValueError):
        valid = ", ".join(s.value for s in SchemaStatus)
        raise ValidationError(f"Invalid status filter {value!r}. Expected one of: {valid}")


class SchemaPoolRegistry:
    """Registry of provisioned tenant schemas."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def register(self, schema_name: str) -> str:
        """
        Insert an AVAILABLE row for a freshly created schema.

        Returns:
            The generated schema_id as a string

        Raises:
            ConflictError: If a row with this name already exists
            StorageError: For any other database failure
        """
        entry = SchemaPool(
            schema_id=uuid.uuid4(),
            schema_name=schema_name,
            status=SchemaStatus.AVAILABLE.value,
        )
        self.db.add(entry)
        try:
            await self.db.flush()
        except IntegrityError as e:
            if getattr(e.orig, "sqlstate", None) == UNIQUE_VIOLATION:
                raise ConflictError(
                    f"Schema {schema_name} already exists in schema_pool"
                ) from e
            raise StorageError(f"Failed to register schema {schema_name}: {e}") from e
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to register schema {schema_name}: {e}") from e

        logger.info(f"Registered schema '{schema_name}' in schema_pool ({entry.schema_id})")
        return str(entry.schema_id)

    async def list_schemas(self, status_filter: Optional[str] = None) -> List[SchemaRecord]:
        """List registry rows, newest first, optionally filtered by status."""
        query = select(SchemaPool).order_by(SchemaPool.created_at.desc())
        if status_filter:
            query = query.where(SchemaPool.status == parse_status(status_filter).value)

        try:
            result = await self.db.execute(query)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to list schemas: {e}") from e

        return [SchemaRecord.model_validate(row) for row in result.scalars().all()]

    async def exists(self, schema_name: str) -> bool:
        """True if a row of any status carries this name."""
        try:
            result = await self.db.execute(
                select(func.count()).select_from(SchemaPool).where(
                    SchemaPool.schema_name == schema_name
                )
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to check schema {schema_name} in schema_pool: {e}") from e
        return (result.scalar() or 0) > 0

    async def get(self, schema_name: str) -> Optional[SchemaRecord]:
        try:
            result = await self.db.execute(
                select(SchemaPool).where(SchemaPool.schema_name == schema_name)
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to get schema {schema_name}: {e}") from e

        row = result.scalar_one_or_none()
        return SchemaRecord.model_validate(row) if row is not None else None

    async def remove(self, schema_name: str, hard: bool = False) -> None:
        """
        Soft delete (status DELETED) or hard delete (row removed).

        Raises:
            NotFoundError: If no row matches
        """
        if hard:
            stmt = delete(SchemaPool).where(SchemaPool.schema_name == schema_name)
        else:
            stmt = (
                update(SchemaPool)
                .where(SchemaPool.schema_name == schema_name)
                .values(status=SchemaStatus.DELETED.value, updated_at=func.now())
            )

        try:
            result = await self.db.execute(
                stmt.execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to delete schema {schema_name}: {e}") from e

        if result.rowcount == 0:
            raise NotFoundError(f"Schema {schema_name} not found in schema_pool")

        logger.info(f"Schema '{schema_name}' {'hard' if hard else 'soft'} deleted from schema_pool")

    async def allocate(self, schema_name: str, account_id: str) -> SchemaRecord:
        """
        Hand an AVAILABLE schema to an account.

        Raises:
            NotFoundError: If no row matches
            ConflictError: If the schema is not AVAILABLE
        """
        record = await self.get(schema_name)
        if record is None:
            raise NotFoundError(f"Schema {schema_name} not found in schema_pool")
        if record.status != SchemaStatus.AVAILABLE:
            raise ConflictError(
                f"Schema {schema_name} is {record.status.value}, only AVAILABLE schemas can be allocated"
            )

        try:
            result = await self.db.execute(
                update(SchemaPool)
                .where(
                    SchemaPool.schema_name == schema_name,
                    SchemaPool.status == SchemaStatus.AVAILABLE.value,
                )
                .values(
                    status=SchemaStatus.ALLOCATED.value,
                    account_id=account_id,
                    allocated_at=func.now(),
                    updated_at=func.now(),
                )
                .returning(SchemaPool)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to allocate schema {schema_name}: {e}") from e

        row = result.scalar_one_or_none()
        if row is None:
            raise ConflictError(f"Schema {schema_name} was allocated concurrently")

        logger.info(f"Schema '{schema_name}' allocated to account {account_id}")
        return SchemaRecord.model_validate(row)
