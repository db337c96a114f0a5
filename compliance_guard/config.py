"""
Configuration management for the ComplianceGuard screening engine.

Settings are stored as JSON and merged over the built-in defaults, so a config
file only needs to contain the keys it overrides. Keys are addressed with
dotted paths, e.g. ``config.get('sync.freshness_hours')``.
"""

import copy
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .utils.error_handler import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path.home() / ".compliance_guard"


class Config:
    """JSON-backed application configuration with dotted-key access."""

    _defaults: Dict[str, Any] = {
        'matching': {
            'min_score': 0.3,
            'exact_match_bonus': 0.2,
            'alias_match_bonus': 0.15,
            'partial_match_bonus': 0.1,
        },
        'sync': {
            'freshness_hours': 24,
            'interval_hours': 24,
            'fetch_timeout_seconds': 30,
            'auto_sync': True,
        },
        'screening': {
            'max_workers': 8,
            'max_matches_per_check': 5,
        },
        'database': {
            'path': None,
            'echo': False,
        },
        'storage': {
            'key_prefix': 'complianceguard',
        },
        'data_source': {
            'type': 'sample',
            'user_agent': 'ComplianceGuard/1.0 (Compliance Tool)',
        },
        'data_sources': {},
        'logging': {
            'level': 'INFO',
            'directory': None,
        },
    }

    def __init__(self, config_file: Optional[Union[str, Path]] = None,
                 data_directory: Optional[Union[str, Path]] = None):
        """
        Load configuration.

        Args:
            config_file: JSON file to load. Defaults to ~/.compliance_guard/config.json;
                a missing file means defaults only.
            data_directory: Directory for the database and logs. Defaults to the
                directory holding the config file.
        """
        self.config_file = Path(config_file) if config_file else DEFAULT_CONFIG_DIR / "config.json"
        self.data_directory = Path(data_directory) if data_directory else self.config_file.parent
        self._config_data = self._merge_config(self._defaults, self._load_file())

    def _load_file(self) -> Dict[str, Any]:
        if not self.config_file.exists():
            return {}

        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(
                f"Could not read configuration file {self.config_file}: {e}",
                original_exception=e
            )

        if not isinstance(data, dict):
            raise ConfigurationError(f"Configuration file {self.config_file} must contain a JSON object")

        logger.debug(f"Loaded configuration from {self.config_file}")
        return data

    @staticmethod
    def _merge_config(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge overrides into a copy of defaults."""
        merged = copy.deepcopy(defaults)
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = Config._merge_config(merged[key], value)
            else:
                merged[key] = value
        return merged

    def get(self, key: str, default: Any = None) -> Any:
        """Get a value by dotted key."""
        node: Any = self._config_data
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def set(self, key: str, value: Any) -> None:
        """Set a value by dotted key, creating intermediate sections."""
        parts = key.split('.')
        node = self._config_data
        for part in parts[:-1]:
            child = node.get(part)
            if not isinstance(child, dict):
                child = {}
                node[part] = child
            node = child
        node[parts[-1]] = value

    def save(self) -> None:
        """Write the full configuration to the config file."""
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_file, 'w', encoding='utf-8') as f:
                json.dump(self._config_data, f, indent=2, ensure_ascii=False)
        except OSError as e:
            raise ConfigurationError(
                f"Could not write configuration file {self.config_file}: {e}",
                original_exception=e
            )
        logger.info(f"Configuration saved to {self.config_file}")

    def get_data_dir(self) -> Path:
        """Data directory, created on first use."""
        self.data_directory.mkdir(parents=True, exist_ok=True)
        return self.data_directory

    def get_database_path(self) -> Path:
        path = self.get('database.path')
        return Path(path) if path else self.get_data_dir() / "compliance_guard.db"

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config_data)
