"""Configuration management for assetvcs.

Values are looked up in the environment first and then in a dotenv-style
file at ``~/.config/assetvcs/config``.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import dotenv_values, set_key

from .utils import DEFAULT_API_URL

logger = logging.getLogger(__name__)

API_KEY_VAR = "ASSETVCS_API_KEY"
API_URL_VAR = "ASSETVCS_API_URL"
PROJECT_ROOT_VAR = "ASSETVCS_PROJECT_ROOT"


class Config:
    """Configuration manager for assetvcs."""

    def __init__(self, config_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            config_dir: Directory holding the config file. Defaults to
                ~/.config/assetvcs/
        """
        if config_dir is None:
            config_dir = Path.home() / ".config" / "assetvcs"
        self.config_dir = config_dir
        self.config_file = config_dir / "config"

    def _file_values(self) -> dict[str, Optional[str]]:
        if not self.config_file.exists():
            return {}
        return dict(dotenv_values(self.config_file))

    def _get(self, name: str) -> Optional[str]:
        value = os.environ.get(name)
        if value:
            return value
        return self._file_values().get(name) or None

    @property
    def api_key(self) -> Optional[str]:
        """API key of the remote version control service."""
        return self._get(API_KEY_VAR)

    @property
    def api_url(self) -> str:
        """Base URL of the remote version control service."""
        return (self._get(API_URL_VAR) or DEFAULT_API_URL).rstrip("/")

    @property
    def project_root(self) -> Path:
        """Root folder that project paths are relative to."""
        root = self._get(PROJECT_ROOT_VAR)
        return Path(root) if root else Path.cwd()

    def is_configured(self) -> bool:
        """Check whether an API key is available."""
        return bool(self.api_key)

    def get_config_path(self) -> Path:
        """Return the path of the config file."""
        return self.config_file

    def save_api_key(self, api_key: str) -> None:
        """Persist the API key to the config file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.touch(mode=0o600, exist_ok=True)
        set_key(str(self.config_file), API_KEY_VAR, api_key)
        logger.debug(f"Saved API key to {self.config_file}")

    def save_api_url(self, api_url: str) -> None:
        """Persist the API URL to the config file."""
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_file.touch(mode=0o600, exist_ok=True)
        set_key(str(self.config_file), API_URL_VAR, api_url)


config = Config()
