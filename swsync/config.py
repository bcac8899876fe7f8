"""Configuration management for swsync."""

import logging
import os
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://cloud.uipath.com"

# Environment variable -> attribute name
CONFIG_KEYS: dict[str, str] = {
    "UIPATH_BASE_URL": "base_url",
    "UIPATH_ORG_ID": "org_id",
    "UIPATH_TENANT_ID": "tenant_id",
    "UIPATH_ACCESS_TOKEN": "access_token",
    "UIPATH_PROJECT_ID": "project_id",
}

REQUIRED_KEYS = (
    "UIPATH_ORG_ID",
    "UIPATH_TENANT_ID",
    "UIPATH_ACCESS_TOKEN",
    "UIPATH_PROJECT_ID",
)


class Config:
    """Settings read from the environment with a config file fallback.

    The config file lives at ``~/.config/swsync/config`` and holds
    ``KEY=VALUE`` lines using the same names as the environment variables.
    Environment variables always win over the file.
    """

    def __init__(self, config_path: Optional[Path] = None):
        self._config_path = config_path
        self._file_values: Optional[dict[str, str]] = None

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        if self._config_path is not None:
            return self._config_path
        base = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
        return Path(base) / "swsync" / "config"

    def _load_file(self) -> dict[str, str]:
        if self._file_values is not None:
            return self._file_values

        values: dict[str, str] = {}
        path = self.get_config_path()
        if path.is_file():
            try:
                for line in path.read_text(encoding="utf-8").splitlines():
                    line = line.strip()
                    if not line or line.startswith("#") or "=" not in line:
                        continue
                    key, value = line.split("=", 1)
                    values[key.strip()] = value.strip().strip('"').strip("'")
            except OSError as e:
                logger.warning(f"Could not read config file {path}: {e}")
        self._file_values = values
        return values

    def get(self, key: str) -> Optional[str]:
        """Look up a setting by its environment variable name."""
        value = os.environ.get(key)
        if value:
            return value
        return self._load_file().get(key) or None

    @property
    def base_url(self) -> str:
        return (self.get("UIPATH_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")

    @property
    def org_id(self) -> Optional[str]:
        return self.get("UIPATH_ORG_ID")

    @property
    def tenant_id(self) -> Optional[str]:
        return self.get("UIPATH_TENANT_ID")

    @property
    def access_token(self) -> Optional[str]:
        return self.get("UIPATH_ACCESS_TOKEN")

    @property
    def project_id(self) -> Optional[str]:
        return self.get("UIPATH_PROJECT_ID")

    def missing_keys(self) -> list[str]:
        """Return the required settings that have no value."""
        return [key for key in REQUIRED_KEYS if not self.get(key)]

    def is_configured(self) -> bool:
        """Check whether every required setting is present."""
        return not self.missing_keys()

    def save_value(self, key: str, value: str) -> Path:
        """Persist a single setting in the config file.

        Args:
            key: Environment variable name (e.g. ``UIPATH_PROJECT_ID``)
            value: Value to store

        Returns:
            Path of the written config file
        """
        if key not in CONFIG_KEYS:
            raise ValueError(f"Unknown configuration key: {key}")

        values = dict(self._load_file())
        values[key] = value

        path = self.get_config_path()
        path.parent.mkdir(parents=True, exist_ok=True)
        content = "".join(f"{k}={v}\n" for k, v in sorted(values.items()))
        path.write_text(content, encoding="utf-8")
        path.chmod(0o600)

        self._file_values = values
        return path

    def reload(self) -> None:
        """Forget cached file values."""
        self._file_values = None


config = Config()
