"""Where the provisioner gets its SQL template from."""

from pathlib import Path
from typing import Optional, Union

from phantm.core.exceptions import TemplateError
from phantm.core.sql_template import load_template
from phantm.services.environment_store import EnvironmentStore


class FileTemplateSource:
    """Template read from a fixed file path."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path).expanduser()

    def load(self) -> str:
        return load_template(self.path)

    def describe(self) -> str:
        return str(self.path)


class EnvironmentTemplateSource:
    """Template configured for a named environment (``phantm use PATH``)."""

    def __init__(self, store: EnvironmentStore, env_name: str):
        self.store = store
        self.env_name = env_name

    def _path(self) -> Optional[str]:
        return self.store.get_template_path(self.env_name)

    def load(self) -> str:
        path = self._path()
        if not path:
            raise TemplateError(
                f"No schema template configured for environment '{self.env_name}'. "
                "Set one with: phantm use <path-to-sql-file>"
            )
        return load_template(path)

    def describe(self) -> str:
        return self._path() or "<none>"
