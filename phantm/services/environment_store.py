"""
Named environment store

Keeps connection parameters and the template location of every environment in
one JSON file (``<PHANTM_HOME>/config.json``). The first environment saved
becomes the active one.
"""

import json
import logging
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

from pydantic import ValidationError as PydanticValidationError

from phantm.config import settings
from phantm.core.exceptions import ConfigurationError, NotFoundError, ValidationError
from phantm.schemas.environment import EnvironmentConfig, EnvironmentFile

logger = logging.getLogger(__name__)

ENV_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class EnvironmentStore:
    """Load and persist named environments."""

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.config_file = Path(config_file).expanduser() if config_file else settings.config_file

    def load(self) -> EnvironmentFile:
        """Read the store. A missing file is an empty store."""
        if not self.config_file.exists():
            return EnvironmentFile()

        try:
            raw = self.config_file.read_text(encoding="utf-8")
        except OSError as e:
            raise ConfigurationError(f"Failed to read {self.config_file}: {e}") from e

        if not raw.strip():
            return EnvironmentFile()

        try:
            return EnvironmentFile.model_validate_json(raw)
        except PydanticValidationError as e:
            raise ConfigurationError(f"Malformed environment file {self.config_file}: {e}") from e

    def _write(self, data: EnvironmentFile) -> None:
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            self.config_file.write_text(
                json.dumps(data.model_dump(), indent=2) + "\n",
                encoding="utf-8",
            )
        except OSError as e:
            raise ConfigurationError(f"Failed to write {self.config_file}: {e}") from e

    def _require(self, data: EnvironmentFile, name: str) -> EnvironmentConfig:
        env = data.environments.get(name)
        if env is None:
            raise NotFoundError(f"Environment '{name}' not found")
        return env

    def save_environment(self, name: str, config: EnvironmentConfig) -> EnvironmentConfig:
        """Add or update an environment. Existing template path and created_at survive updates."""
        if not ENV_NAME_PATTERN.fullmatch(name or ""):
            raise ValidationError(
                f"Invalid environment name {name!r}. Use letters, numbers, '-' and '_' only."
            )

        data = self.load()
        existing = data.environments.get(name)
        now = _now()

        updates = {"updated_at": now, "created_at": existing.created_at if existing else now}
        if existing and config.template_path is None:
            updates["template_path"] = existing.template_path
        env = config.model_copy(update=updates)

        data.environments[name] = env
        if not data.active_env:
            data.active_env = name

        self._write(data)
        logger.info(f"Environment '{name}' {'updated' if existing else 'added'}")
        return env

    def list_environments(self) -> Dict[str, EnvironmentConfig]:
        return dict(self.load().environments)

    def get_environment(self, name: str) -> Optional[EnvironmentConfig]:
        return self.load().environments.get(name)

    def get_active_environment(self) -> Optional[str]:
        return self.load().active_env

    def set_active_environment(self, name: str) -> None:
        data = self.load()
        self._require(data, name)
        data.active_env = name
        self._write(data)
        logger.info(f"Active environment set to '{name}'")

    def delete_environment(self, name: str) -> None:
        """Remove an environment; the active selection moves to the first remaining one."""
        data = self.load()
        self._require(data, name)
        del data.environments[name]

        if data.active_env == name:
            data.active_env = next(iter(data.environments), None)

        self._write(data)
        logger.info(f"Environment '{name}' removed")

    def set_template_path(self, name: str, template_path: Union[str, Path]) -> str:
        """Point an environment at a template file. The file must be readable."""
        path = Path(template_path).expanduser().resolve()
        if not path.is_file():
            raise ValidationError(f"Template file not found: {path}")
        if not os.access(path, os.R_OK):
            raise ValidationError(f"Template file is not readable: {path}")

        data = self.load()
        env = self._require(data, name)
        data.environments[name] = env.model_copy(
            update={"template_path": str(path), "updated_at": _now()}
        )
        self._write(data)
        logger.info(f"Template for environment '{name}' set to {path}")
        return str(path)

    def get_template_path(self, name: str) -> Optional[str]:
        env = self.get_environment(name)
        return env.template_path if env else None

    def clear_template_path(self, name: str) -> None:
        data = self.load()
        env = self._require(data, name)
        data.environments[name] = env.model_copy(
            update={"template_path": None, "updated_at": _now()}
        )
        self._write(data)
        logger.info(f"Template for environment '{name}' cleared")

    def resolve(self, name: Optional[str] = None) -> Tuple[str, EnvironmentConfig]:
        """
        Pick the environment a command runs against.

        Raises:
            ConfigurationError: If no name is given and no environment is active
            NotFoundError: If the named environment does not exist
        """
        data = self.load()
        target = name or data.active_env
        if not target:
            raise ConfigurationError(
                "No environment configured. Add one with: phantm env add <name> ..."
            )
        return target, self._require(data, target)
