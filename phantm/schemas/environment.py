"""Schemas for the named-environment store (config.json)"""

from typing import Dict, Optional

from pydantic import BaseModel, Field


class EnvironmentConfig(BaseModel):
    """Connection parameters and template location for one environment"""
    host: str
    port: int = Field(5432, ge=1, le=65535)
    database: str
    user: str
    password: str = ""
    ssl: bool = False
    template_path: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class EnvironmentFile(BaseModel):
    """Top-level layout of config.json"""
    active_env: Optional[str] = None
    environments: Dict[str, EnvironmentConfig] = Field(default_factory=dict)
