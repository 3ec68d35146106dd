"""
Configuration management for the detect filter.
"""
import json
import os
from pathlib import Path
from typing import Dict, Any, Optional

from detect_filter.utils.constants import (
    CONFIGS_DIR, ENV_MODEL_PATH, ENV_THRESHOLD, ENV_LOG,
)
from detect_filter.utils.logger import Logger


class Config:
    """Configuration manager that merges multiple domain-specific JSON files."""

    def __init__(self, configs_dir: Optional[str] = None, load_env: bool = True):
        """
        Initialize configuration by loading all JSON files in the configs directory.

        Args:
            configs_dir: Path to directory containing JSON configs
                         (defaults to the packaged detect_filter/configs)
            load_env: Apply DETECT_FILTER_* environment overrides after the files.
        """
        self.config: Dict[str, Any] = {}
        self.logger = Logger("Config")

        configs_dir = Path(configs_dir) if configs_dir else CONFIGS_DIR

        # 1. Load all JSON files if directory exists
        if configs_dir.exists() and configs_dir.is_dir():
            for config_file in sorted(configs_dir.glob("*.json")):
                self.load_from_file(str(config_file))

        # 2. Override from environment variables if present
        if load_env:
            self._load_from_env()

    def _load_from_env(self):
        """Load configuration from environment variables."""
        if os.environ.get(ENV_MODEL_PATH):
            self.config.setdefault('filter', {})['model_path'] = os.environ.get(ENV_MODEL_PATH)
        if os.environ.get(ENV_THRESHOLD):
            self.config.setdefault('filter', {})['confidence_threshold'] = os.environ.get(ENV_THRESHOLD)
        if os.environ.get(ENV_LOG):
            self.config.setdefault('filter', {})['log'] = os.environ.get(ENV_LOG)

    def load_from_file(self, path: str):
        """Load configuration from JSON file."""
        try:
            with open(path, 'r') as f:
                user_config = json.load(f)
                self._merge_config(user_config)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Failed to load config from {path}: {e}")

    def _merge_config(self, user_config: Dict[str, Any]):
        """Merge user config with defaults recursively."""
        def update(d, u):
            for k, v in u.items():
                if isinstance(v, dict):
                    d[k] = update(d.get(k, {}), v)
                else:
                    d[k] = v
            return d

        update(self.config, user_config)

    def get_int(self, key: str, default: int = 0) -> int:
        """Get config value as integer."""
        val = self.get(key, default)
        try:
            return int(val)
        except (ValueError, TypeError):
            return default

    def get_float(self, key: str, default: float = 0.0) -> float:
        """Get config value as float."""
        val = self.get(key, default)
        try:
            return float(val)
        except (ValueError, TypeError):
            return default

    def get_bool(self, key: str, default: bool = False) -> bool:
        """Get config value as boolean."""
        val = self.get(key, default)
        if isinstance(val, bool):
            return val
        if isinstance(val, str):
            return val.lower() in ('true', '1', 'yes', 'on')
        return bool(val)

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dotted key."""
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any):
        """Set a configuration value by dotted key."""
        keys = key.split('.')
        node = self.config
        for k in keys[:-1]:
            node = node.setdefault(k, {})
        node[keys[-1]] = value

    def save_to_file(self, path: str):
        """Save current configuration to file."""
        try:
            with open(path, 'w') as f:
                json.dump(self.config, f, indent=2)
        except OSError as e:
            self.logger.error(f"Failed to save config to {path}: {e}")
