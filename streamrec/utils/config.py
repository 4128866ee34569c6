"""
Configuration loader for the stream recorder.

Loads YAML configuration with environment variable substitution.
"""

import os
import re
from pathlib import Path
from typing import Any, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError


# Load .env file if present
load_dotenv()


DEFAULT_WS_HOST_MAP = {
    'j11.showup.tv': '94.23.171.115',
    'j12.showup.tv': '94.23.171.122',
    'j13.showup.tv': '94.23.171.121',
    'j14.showup.tv': '94.23.171.120',
}


class Config:
    """
    Configuration manager with environment variable substitution.

    Usage:
        config = Config.load('config.yaml')
        interval = config.get('capture.scan_interval')
        capture_dir = config.get_capture_directory()
    """

    _env_pattern = re.compile(r'\$\{([^}]+)\}')

    def __init__(self, config_data: dict):
        self._data = config_data

    @classmethod
    def load(cls, config_path: str = 'config.yaml') -> 'Config':
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            ConfigurationError: If file not found or invalid YAML
        """
        path = Path(config_path)

        if not path.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(path, 'r') as f:
                raw_content = f.read()

            content = cls._substitute_env_vars(raw_content)
            data = yaml.safe_load(content)

            if not isinstance(data, dict):
                raise ConfigurationError("Configuration must be a YAML dictionary")

            instance = cls(data)
            instance._validate()

            return instance

        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in configuration: {e}")

    @classmethod
    def _substitute_env_vars(cls, content: str) -> str:
        """
        Substitute ${VAR} patterns with environment variable values.

        Args:
            content: Raw file content

        Returns:
            Content with environment variables substituted
        """
        def replace(match):
            var_name = match.group(1)
            value = os.environ.get(var_name)
            if value is None:
                # Keep original if not found (might be optional)
                return match.group(0)
            return value

        return cls._env_pattern.sub(replace, content)

    def _validate(self) -> None:
        """
        Validate required configuration fields.

        Raises:
            ConfigurationError: If required fields are missing or invalid
        """
        required_fields = [
            'site.email',
            'site.password',
        ]

        for field in required_fields:
            value = self.get(field)
            if value is None or value == '':
                raise ConfigurationError(f"Required configuration field missing: {field}")

        scan_interval = self.get('capture.scan_interval', 30)
        if not isinstance(scan_interval, (int, float)) or scan_interval <= 0:
            raise ConfigurationError("scan_interval must be a positive number")

        min_size = self.get('capture.min_file_size_mb', 0)
        if not isinstance(min_size, (int, float)) or min_size < 0:
            raise ConfigurationError("min_file_size_mb must be a non-negative number")

        models = self.get('capture.models', [])
        if models is not None and not isinstance(models, list):
            raise ConfigurationError("capture.models must be a list of model names")

        for key in ('health.first_check_delay', 'health.check_interval', 'health.kill_grace'):
            value = self.get(key)
            if value is not None and (not isinstance(value, (int, float)) or value <= 0):
                raise ConfigurationError(f"{key} must be a positive number")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-separated key.

        Args:
            key: Dot-separated key (e.g., 'capture.scan_interval')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key.split('.')
        value = self._data

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_site_config(self) -> dict:
        """Get site configuration section."""
        return self._data.get('site') or {}

    def get_capture_config(self) -> dict:
        """Get capture configuration section."""
        return self._data.get('capture') or {}

    def get_health_config(self) -> dict:
        """Get health monitoring configuration section."""
        return self._data.get('health') or {}

    def get_logging_config(self) -> dict:
        """Get logging configuration section."""
        return self._data.get('logging') or {}

    def get_capture_directory(self) -> Path:
        """Directory rtmpdump writes in-progress captures to."""
        return Path(self.get('capture.capture_directory', './capture')).resolve()

    def get_complete_directory(self) -> Path:
        """Directory finished captures are moved to."""
        return Path(self.get('capture.complete_directory', './complete')).resolve()

    def get_scan_interval(self) -> float:
        return self.get('capture.scan_interval', 30)

    def get_min_file_size_bytes(self) -> int:
        """Minimum retained capture size, converted from MB."""
        return int(self.get('capture.min_file_size_mb', 0) * 1048576)

    def get_timestamp_format(self) -> str:
        return self.get('capture.timestamp_format', '%Y-%m-%dT%H%M%S')

    def get_allow_list(self) -> list[str]:
        """Models to record; empty means every favourite."""
        return [str(m) for m in (self.get('capture.models') or [])]

    def get_ws_host_map(self) -> dict:
        """Websocket host to IP overrides."""
        host_map = self.get('site.ws_host_map')
        if host_map is None:
            return dict(DEFAULT_WS_HOST_MAP)
        return dict(host_map)

    def get_log_file(self) -> Optional[Path]:
        """Get log file path as Path object."""
        log_file = self.get('logging.file')
        return Path(log_file) if log_file else None

    def is_debug(self) -> bool:
        return bool(self.get('logging.debug', False))

    def to_dict(self) -> dict:
        """Return configuration as dictionary."""
        return self._data.copy()


def load_config(config_path: str = 'config.yaml') -> Config:
    """
    Convenience function to load configuration.

    Args:
        config_path: Path to YAML configuration file

    Returns:
        Config instance
    """
    return Config.load(config_path)
