from phantm.models.schema_pool import SchemaPool

__all__ = ["SchemaPool"]
