"""
Schema Provisioner

Creates tenant schemas from the environment's SQL template and records them
in the schema pool.

Protocol for one schema:
1. Resolve the name and render the template (no database access)
2. Check the catalog and the registry independently
3. On conflict either fail, or (force) drop/deregister and commit that cleanup
4. Execute the DDL, verify the schema in the catalog, register it, commit

Step 4 is one transaction: a failure anywhere leaves neither a schema nor a
registry row behind. A failed step 3 leaves the old schema untouched.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from phantm.config import settings
from phantm.core.exceptions import (
    ConflictError,
    ConsistencyError,
    StorageError,
    ValidationError,
)
from phantm.core.naming import derive_name
from phantm.core.sql_template import analyze, render, validate_structure
from phantm.services.catalog_service import CatalogService
from phantm.services.schema_pool_registry import SchemaPoolRegistry

logger = logging.getLogger(__name__)

UNKNOWN = "unknown"


class TemplateSource(Protocol):
    def load(self) -> str: ...

    def describe(self) -> str: ...


@dataclass
class ProvisionResult:
    """Outcome of one provisioning attempt."""
    schema_name: str
    schema_id: str
    success: bool
    error: Optional[str] = None
    exception: Optional[Exception] = field(default=None, repr=False, compare=False)


@dataclass
class BulkProvisionResult:
    """Outcome of a bulk run, split into successes and failures."""
    requested: int
    successful: List[ProvisionResult] = field(default_factory=list)
    failed: List[ProvisionResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.failed


@dataclass
class StructureReport:
    """Expected versus actual base tables of a provisioned schema."""
    schema_name: str
    expected_tables: List[str] = field(default_factory=list)
    actual_tables: List[str] = field(default_factory=list)
    missing_tables: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.missing_tables


ProgressCallback = Callable[[int, int, ProvisionResult], None]


class SchemaProvisioner:
    """Provision, recreate and inspect tenant schemas."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        template_source: TemplateSource,
        registry_factory: Callable[[AsyncSession], SchemaPoolRegistry] = SchemaPoolRegistry,
        catalog_factory: Callable[[AsyncSession], CatalogService] = CatalogService,
        expected_tables: Optional[List[str]] = None,
        bulk_max: Optional[int] = None,
    ):
        self.session_factory = session_factory
        self.template_source = template_source
        self.registry_factory = registry_factory
        self.catalog_factory = catalog_factory
        self.expected_tables = expected_tables if expected_tables is not None else settings.EXPECTED_TABLES
        self.bulk_max = bulk_max or settings.BULK_MAX_COUNT

    def _generate_ddl(self, schema_name: str) -> str:
        template = self.template_source.load()
        sql = render(template, schema_name)
        validate_structure(sql)
        return sql

    async def _commit(self, db: AsyncSession, what: str) -> None:
        try:
            await db.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to commit {what}: {e}") from e

    async def _cleanup(
        self,
        db: AsyncSession,
        catalog: CatalogService,
        registry: SchemaPoolRegistry,
        schema_name: str,
        in_catalog: bool,
        in_registry: bool,
    ) -> None:
        """Remove an existing schema and its row, committed on their own."""
        try:
            if in_catalog:
                await catalog.drop_schema(schema_name)
            if in_registry:
                await registry.remove(schema_name, hard=True)
            await self._commit(db, f"cleanup of schema {schema_name}")
        except Exception as e:
            await db.rollback()
            logger.error(f"Cleanup of schema {schema_name} failed, nothing was changed: {e}")
            raise

        logger.warning(f"Schema {schema_name} removed for recreation")

    async def _create(
        self,
        db: AsyncSession,
        catalog: CatalogService,
        registry: SchemaPoolRegistry,
        schema_name: str,
        sql: str,
    ) -> str:
        """Run DDL, verify and register in one transaction."""
        try:
            await catalog.execute_ddl(sql, schema_name)

            if not await catalog.schema_exists(schema_name):
                raise ConsistencyError(
                    f"Schema {schema_name} was not created successfully"
                )

            schema_id = await registry.register(schema_name)
            await self._commit(db, f"creation of schema {schema_name}")
        except Exception as e:
            await db.rollback()
            logger.error(f"Creation of schema {schema_name} rolled back: {e}")
            raise

        return schema_id

    async def provision(
        self,
        force: bool = False,
        custom_name: Optional[str] = None,
    ) -> ProvisionResult:
        """
        Create one tenant schema and register it as AVAILABLE.

        The template is loaded, rendered and validated before any database
        access. A missing or broken template therefore leaves an existing
        schema and its registry row untouched, even with force.

        Args:
            force: Drop and deregister an existing schema of the same name first
            custom_name: Use this name instead of a generated one

        Returns:
            ProvisionResult; failures are reported, not raised
        """
        schema_name = None
        schema_id = None

        try:
            schema_name = derive_name(custom_name)
            sql = self._generate_ddl(schema_name)

            async with self.session_factory() as db:
                catalog = self.catalog_factory(db)
                registry = self.registry_factory(db)

                in_catalog = await catalog.schema_exists(schema_name)
                in_registry = await registry.exists(schema_name)

                if in_catalog or in_registry:
                    if not force:
                        raise ConflictError(
                            f"Schema {schema_name} already exists "
                            f"(catalog: {in_catalog}, schema_pool: {in_registry}). "
                            "Use --force to recreate it"
                        )
                    await self._cleanup(db, catalog, registry, schema_name, in_catalog, in_registry)

                schema_id = await self._create(db, catalog, registry, schema_name, sql)

        except Exception as e:
            logger.error(f"Failed to provision schema {schema_name or UNKNOWN}: {e}")
            return ProvisionResult(
                schema_name=schema_name or UNKNOWN,
                schema_id=schema_id or UNKNOWN,
                success=False,
                error=str(e),
                exception=e,
            )

        logger.info(f"Schema {schema_name} provisioned ({schema_id})")
        return ProvisionResult(schema_name=schema_name, schema_id=schema_id, success=True)

    def expected_table_names(self) -> List[str]:
        """Configured table list, or the tables the template creates."""
        if self.expected_tables:
            return list(self.expected_tables)
        return list(dict.fromkeys(analyze(self.template_source.load()).table_names))

    async def inspect_structure(self, schema_name: str) -> StructureReport:
        """
        Compare the schema's base tables against the expected set.

        Purely diagnostic: missing tables are logged and reported, nothing is
        rolled back.
        """
        expected = self.expected_table_names()

        async with self.session_factory() as db:
            actual = await self.catalog_factory(db).list_base_tables(schema_name)

        missing = [table for table in expected if table not in actual]
        if missing:
            logger.warning(f"Schema {schema_name} is missing tables: {', '.join(missing)}")
        else:
            logger.info(f"Schema {schema_name} structure validated ({len(actual)} tables)")

        return StructureReport(
            schema_name=schema_name,
            expected_tables=expected,
            actual_tables=actual,
            missing_tables=missing,
        )

    async def validate_structure(self, schema_name: str) -> bool:
        report = await self.inspect_structure(schema_name)
        return report.is_valid

    async def bulk_provision(
        self,
        count: int,
        progress: Optional[ProgressCallback] = None,
    ) -> BulkProvisionResult:
        """
        Provision ``count`` schemas one after another.

        Every item runs without force; a failed item is recorded and the run
        continues.

        Raises:
            ValidationError: If count is not an integer in 1..bulk_max
        """
        if isinstance(count, bool) or not isinstance(count, int) or not 1 <= count <= self.bulk_max:
            raise ValidationError(
                f"Count must be an integer between 1 and {self.bulk_max}, got {count!r}"
            )

        result = BulkProvisionResult(requested=count)
        for index in range(1, count + 1):
            item = await self.provision(force=False)
            if item.success:
                result.successful.append(item)
            else:
                result.failed.append(item)
            if progress:
                progress(index, count, item)

        logger.info(
            f"Bulk provisioning finished: {len(result.successful)} created, "
            f"{len(result.failed)} failed of {count}"
        )
        return result
