"""Error taxonomy for schema provisioning and the pool registry.

Every error raised by the engine derives from PhantmError so callers can
report failures uniformly. Messages always name the offending schema,
environment or condition.
"""


class PhantmError(Exception):
    """Base class for all provisioning errors."""
    pass


class ValidationError(PhantmError):
    """Bad schema name, identifier or command input. Never mutates state."""
    pass


class TemplateError(PhantmError):
    """Missing or malformed SQL template. Never mutates state."""
    pass


class ConflictError(PhantmError):
    """Schema name already occupied in the catalog or the registry."""
    pass


class NotFoundError(PhantmError):
    """Operation targets a registry entry or environment that does not exist."""
    pass


class StorageError(PhantmError):
    """Underlying query or transaction failure."""
    pass


class ConsistencyError(PhantmError):
    """Catalog and registry disagree, or post-execute verification failed."""
    pass


class ConfigurationError(PhantmError):
    """Environment store is missing, unreadable or incomplete."""
    pass
