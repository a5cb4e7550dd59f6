"""
Configuration management for Haku.

Settings come from ``~/.haku/config.ini``; each one can be overridden by a
``HAKU_*`` environment variable.
"""

import configparser
import os
from pathlib import Path
from typing import Optional, Dict, Any

from haku.logging_config import get_logger
from haku.state_schema import STORAGE_KEY

logger = get_logger(__name__)

DEFAULT_DATA_DIR = Path.home() / ".haku"
DEFAULT_DATABASE_URL = f"sqlite+aiosqlite:///{DEFAULT_DATA_DIR / 'haku.db'}"
DEFAULT_MAX_VALUE_BYTES = 5 * 1024 * 1024  # 5MiB
DEFAULT_DEBOUNCE_MS = 300


class Config:
    """INI-file configuration with environment overrides."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Load the configuration file, if there is one.

        Args:
            config_path: Path to config file, defaults to ~/.haku/config.ini
        """
        self.config_path = config_path or DEFAULT_DATA_DIR / "config.ini"
        self._config = configparser.ConfigParser()
        self._load()

    def _load(self):
        if not self.config_path.exists():
            logger.debug(f"No config file at {self.config_path}, using defaults")
            return
        try:
            self._config.read(self.config_path)
            logger.info(f"Loaded configuration from {self.config_path}")
        except configparser.Error as e:
            logger.warning(f"Ignoring unreadable config file {self.config_path}: {e}")

    def _setting(self, env_var: str, section: str, key: str, default: Any) -> str:
        """Environment variable, else config file value, else default."""
        value = os.getenv(env_var)
        if value:
            return value
        return self._config.get(section, key, fallback=str(default))

    def get_storage_config(self) -> Dict[str, Any]:
        """
        Get durable storage configuration.

        Environment variables take precedence over config file:
        - HAKU_DATABASE_URL
        - HAKU_STORAGE_KEY
        - HAKU_STORAGE_MAX_BYTES (0 disables the quota)

        Returns:
            Dictionary with database_url, storage_key and max_value_bytes
            (None when unlimited)
        """
        max_bytes = int(self._setting('HAKU_STORAGE_MAX_BYTES', 'storage', 'max_value_bytes',
                                      DEFAULT_MAX_VALUE_BYTES))
        config = {
            'database_url': self._setting('HAKU_DATABASE_URL', 'storage', 'database_url',
                                          DEFAULT_DATABASE_URL),
            'storage_key': self._setting('HAKU_STORAGE_KEY', 'storage', 'storage_key', STORAGE_KEY),
            'max_value_bytes': max_bytes if max_bytes > 0 else None,
        }

        logger.debug(f"Storage config: database_url={config['database_url']}, "
                     f"storage_key={config['storage_key']}, "
                     f"max_value_bytes={config['max_value_bytes']}")

        return config

    def get_persistence_config(self) -> Dict[str, Any]:
        """
        Get auto-persist configuration (HAKU_PERSIST_DEBOUNCE_MS overrides).

        Returns:
            Dictionary with debounce_seconds
        """
        debounce_ms = int(self._setting('HAKU_PERSIST_DEBOUNCE_MS', 'persistence', 'debounce_ms',
                                        DEFAULT_DEBOUNCE_MS))
        return {'debounce_seconds': debounce_ms / 1000}

    def get_export_config(self) -> Dict[str, Any]:
        """
        Get export configuration (HAKU_EXPORT_DIR overrides).

        Returns:
            Dictionary with the export directory
        """
        directory = Path(self._setting('HAKU_EXPORT_DIR', 'export', 'directory', '.')).expanduser()
        logger.debug(f"Export config: directory={directory}")
        return {'directory': directory}
