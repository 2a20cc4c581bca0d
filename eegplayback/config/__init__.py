"""Simple YAML configuration loader for EEG playback."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging

logger = logging.getLogger(__name__)


class EEGPlaybackConfig:
    """EEG playback configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, the configuration
                        starts empty and every lookup returns its default.
        """
        if config_path is None:
            self.config_file = None
            self.config: Dict[str, Any] = {}
            return

        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "EEGPlaybackConfig":
        """Build a configuration from an in-memory mapping."""
        instance = cls(None)
        instance.config = copy.deepcopy(config)
        return instance

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping")

        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        if 'logging' in config and 'file_path' in (config['logging'] or {}):
            log_path = config['logging']['file_path']
            if log_path and not os.path.isabs(log_path):
                config['logging']['file_path'] = str(config_dir / log_path)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'playback.tick_interval_seconds').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'integrity.epsilon')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_tick_interval(self) -> float:
        """Get the real-time tick interval in seconds."""
        interval = float(self.get('playback.tick_interval_seconds', 0.1))
        if interval <= 0:
            raise ValueError(f"playback.tick_interval_seconds must be positive, got {interval}")
        return interval
