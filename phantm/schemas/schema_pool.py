"""Schemas for schema pool registry records"""

from enum import Enum
from typing import Optional
from datetime import datetime

from pydantic import BaseModel, ConfigDict, field_validator


class SchemaStatus(str, Enum):
    """Registry status, stored as uppercase VARCHAR."""
    AVAILABLE = "AVAILABLE"
    ALLOCATED = "ALLOCATED"
    DELETED = "DELETED"


class SchemaRecord(BaseModel):
    """One row of common.schema_pool"""
    model_config = ConfigDict(from_attributes=True)

    schema_id: str
    schema_name: str
    status: SchemaStatus
    account_id: Optional[str] = None
    allocated_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('schema_id', mode='before')
    @classmethod
    def stringify_schema_id(cls, v):
        return str(v) if v is not None else v

    @field_validator('status', mode='before')
    @classmethod
    def normalize_status(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v
