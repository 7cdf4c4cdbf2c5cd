"""Shared test fixtures.

The database is replaced by an in-memory cluster with transactional
sessions, so provisioning tests never require a running PostgreSQL.
"""

import re
import uuid
from typing import Any, Dict, Optional, Set

import pytest

from phantm.core.exceptions import ConflictError, NotFoundError, StorageError, TemplateError
from phantm.services.schema_provisioner import SchemaProvisioner

BASE_TEMPLATE = """
CREATE SCHEMA IF NOT EXISTS {{SCHEMA_NAME}};

CREATE TYPE {{SCHEMA_NAME}}.member_role AS ENUM ('owner', 'member');

CREATE TABLE {{SCHEMA_NAME}}.users (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    email VARCHAR(255) UNIQUE NOT NULL,
    role {{SCHEMA_NAME}}.member_role NOT NULL DEFAULT 'member'::{{SCHEMA_NAME}}.member_role
);

CREATE TABLE IF NOT EXISTS {{SCHEMA_NAME}}.projects (
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    owner_id UUID NOT NULL,
    FOREIGN KEY (owner_id) REFERENCES {{SCHEMA_NAME}}.users(id) ON DELETE CASCADE
);

CREATE INDEX idx_projects_owner ON {{SCHEMA_NAME}}.projects(owner_id);
"""

_CREATE_SCHEMA_RE = re.compile(r"CREATE\s+SCHEMA\s+(IF\s+NOT\s+EXISTS\s+)?(\w+)", re.IGNORECASE)
_CREATE_TABLE_RE = re.compile(
    r"CREATE\s+TABLE\s+(?:IF\s+NOT\s+EXISTS\s+)?(\w+)\.(\w+)", re.IGNORECASE
)


class FakeCluster:
    """Committed state of a fake database plus failure switches."""

    def __init__(self):
        self.schemas: Dict[str, Set[str]] = {}
        self.rows: Dict[str, Dict[str, Any]] = {}
        self.sessions_opened = 0
        self.commits = 0
        self.rollbacks = 0
        self.fail_ddl = False
        self.fail_drop = False
        self.fail_register = False
        self.lose_created_schemas = False

    def session_factory(self) -> "FakeSession":
        self.sessions_opened += 1
        return FakeSession(self)

    def add_existing(self, schema_name: str, in_catalog: bool = True, in_registry: bool = True) -> Optional[str]:
        """Seed a schema that was provisioned earlier."""
        if in_catalog:
            self.schemas[schema_name] = {"users", "projects"}
        if in_registry:
            schema_id = str(uuid.uuid4())
            self.rows[schema_name] = {
                "schema_id": schema_id,
                "schema_name": schema_name,
                "status": "AVAILABLE",
                "account_id": None,
            }
            return schema_id
        return None


class FakeSession:
    """Works on a private copy of the cluster state until commit."""

    def __init__(self, cluster: FakeCluster):
        self.cluster = cluster
        self._reset()

    def _reset(self):
        self.schemas = {name: set(tables) for name, tables in self.cluster.schemas.items()}
        self.rows = {name: dict(row) for name, row in self.cluster.rows.items()}

    async def commit(self):
        self.cluster.schemas = {name: set(tables) for name, tables in self.schemas.items()}
        self.cluster.rows = {name: dict(row) for name, row in self.rows.items()}
        self.cluster.commits += 1

    async def rollback(self):
        self.cluster.rollbacks += 1
        self._reset()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        # Closing a session discards whatever was not committed
        self._reset()
        return False


class FakeCatalog:
    """CatalogService stand-in that understands CREATE SCHEMA / CREATE TABLE."""

    def __init__(self, db: FakeSession):
        self.db = db

    async def schema_exists(self, schema_name: str) -> bool:
        return schema_name in self.db.schemas

    async def drop_schema(self, schema_name: str) -> None:
        if self.db.cluster.fail_drop:
            raise StorageError(f"Failed to drop schema '{schema_name}': permission denied")
        self.db.schemas.pop(schema_name, None)

    async def execute_ddl(self, sql: str, schema_name: str) -> None:
        if self.db.cluster.fail_ddl:
            raise StorageError(f"Failed to execute DDL for schema '{schema_name}': syntax error")

        for match in _CREATE_SCHEMA_RE.finditer(sql):
            name = match.group(2)
            if name in self.db.schemas and not match.group(1):
                raise StorageError(f'schema "{name}" already exists')
            if not self.db.cluster.lose_created_schemas:
                self.db.schemas.setdefault(name, set())

        for schema, table in _CREATE_TABLE_RE.findall(sql):
            if schema in self.db.schemas:
                self.db.schemas[schema].add(table)

    async def list_base_tables(self, schema_name: str):
        return sorted(self.db.schemas.get(schema_name, set()))


class FakeRegistry:
    """SchemaPoolRegistry stand-in keyed by schema name."""

    def __init__(self, db: FakeSession):
        self.db = db

    async def register(self, schema_name: str) -> str:
        if schema_name in self.db.rows or self.db.cluster.fail_register:
            raise ConflictError(f"Schema {schema_name} already exists in schema_pool")
        schema_id = str(uuid.uuid4())
        self.db.rows[schema_name] = {
            "schema_id": schema_id,
            "schema_name": schema_name,
            "status": "AVAILABLE",
            "account_id": None,
        }
        return schema_id

    async def exists(self, schema_name: str) -> bool:
        return schema_name in self.db.rows

    async def get(self, schema_name: str):
        return self.db.rows.get(schema_name)

    async def remove(self, schema_name: str, hard: bool = False) -> None:
        if schema_name not in self.db.rows:
            raise NotFoundError(f"Schema {schema_name} not found in schema_pool")
        if hard:
            del self.db.rows[schema_name]
        else:
            self.db.rows[schema_name]["status"] = "DELETED"


class StaticTemplateSource:
    """Template held in memory; ``None`` behaves like an unconfigured template."""

    def __init__(self, template: Optional[str] = BASE_TEMPLATE):
        self.template = template
        self.loads = 0

    def load(self) -> str:
        self.loads += 1
        if self.template is None:
            raise TemplateError("No schema template configured for environment 'test'")
        return self.template

    def describe(self) -> str:
        return "<memory>"


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def template_source() -> StaticTemplateSource:
    return StaticTemplateSource()


@pytest.fixture
def provisioner(cluster, template_source) -> SchemaProvisioner:
    return SchemaProvisioner(
        cluster.session_factory,
        template_source,
        registry_factory=FakeRegistry,
        catalog_factory=FakeCatalog,
        expected_tables=[],
        bulk_max=100,
    )


@pytest.fixture
def registry_factory():
    return FakeRegistry


@pytest.fixture
def catalog_factory():
    return FakeCatalog


@pytest.fixture
def make_provisioner(cluster):
    """Build a provisioner over the fake cluster with a given template."""
    def _make(template: Optional[str] = BASE_TEMPLATE, **overrides) -> SchemaProvisioner:
        options = {"expected_tables": [], "bulk_max": 100}
        options.update(overrides)
        return SchemaProvisioner(
            cluster.session_factory,
            StaticTemplateSource(template),
            registry_factory=FakeRegistry,
            catalog_factory=FakeCatalog,
            **options,
        )
    return _make
