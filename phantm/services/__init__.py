# Services module
from phantm.services.catalog_service import CatalogService
from phantm.services.schema_pool_registry import SchemaPoolRegistry
from phantm.services.schema_provisioner import (
    BulkProvisionResult,
    ProvisionResult,
    SchemaProvisioner,
    StructureReport,
)

# Outer collaborators
from phantm.services.environment_store import EnvironmentStore
from phantm.services.template_source import EnvironmentTemplateSource, FileTemplateSource

__all__ = [
    "CatalogService",
    "SchemaPoolRegistry",
    "SchemaProvisioner",
    "ProvisionResult",
    "BulkProvisionResult",
    "StructureReport",
    # Outer collaborators
    "EnvironmentStore",
    "EnvironmentTemplateSource",
    "FileTemplateSource",
]
