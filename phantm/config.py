from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Process-wide settings loaded from environment variables and .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Location of the environment store (config.json)
    PHANTM_HOME: str = str(Path.home() / ".phantm")

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 5  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 5  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes
    DB_CONNECT_TIMEOUT: int = 5  # Seconds to establish a new connection
    DB_ECHO: bool = False

    # Defaults offered by `phantm env add`
    DB_HOST: Optional[str] = None
    DB_PORT: int = 5432
    DB_NAME: Optional[str] = None
    DB_USER: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    DB_SSL: bool = False

    # Provisioning
    BULK_MAX_COUNT: int = 100
    # Tables every provisioned schema must contain; empty = taken from the template
    EXPECTED_TABLES: Annotated[list[str], NoDecode] = []

    # Logging
    LOG_LEVEL: str = "WARNING"
    LOG_FORMAT: str = "console"  # console | json

    @field_validator('EXPECTED_TABLES', mode='before')
    @classmethod
    def parse_expected_tables(cls, v):
        if isinstance(v, str):
            v = v.strip()
            if not v:
                return []
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [table.strip() for table in v.split(',') if table.strip()]
        return v

    @field_validator('LOG_FORMAT')
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError(f"LOG_FORMAT must be 'console' or 'json', got {v!r}")
        return v

    @property
    def config_file(self) -> Path:
        return Path(self.PHANTM_HOME).expanduser() / "config.json"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
