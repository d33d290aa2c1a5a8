"""
Configuration loader for the live CCTV streaming server.

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


class Config:
    """
    Configuration manager with environment variable substitution.

    Usage:
        config = Config.load('config.yaml')
        port = config.get('server.port', 3000)
        framerate = config.get('capture.framerate', default=15)
    """

    _env_pattern = re.compile(r'\$\{([^}]+)\}')

    def __init__(self, config_data: Optional[dict] = None):
        self._data = config_data or {}

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

            # An empty file means "all defaults"
            if data is None:
                data = {}

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

        Unknown variables are left untouched.
        """
        def replace(match):
            value = os.environ.get(match.group(1))
            if value is None:
                return match.group(0)
            return value

        return cls._env_pattern.sub(replace, content)

    def _validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ConfigurationError: If a value is malformed
        """
        resolution = self.get('capture.resolution', '1280x720')
        if not isinstance(resolution, str) or not re.match(r'^\d+x\d+$', resolution):
            raise ConfigurationError(f"Invalid resolution format: {resolution}")

        for field in ('capture.framerate', 'capture.chunk_size'):
            value = self.get(field)
            if value is not None and (not isinstance(value, int) or value < 1):
                raise ConfigurationError(f"{field} must be a positive integer")

        port = self.get('server.port', 3000)
        if not isinstance(port, int) or not 0 < port < 65536:
            raise ConfigurationError(f"Invalid server port: {port}")

        for field in ('capture.kill_timeout', 'shutdown.timeout', 'server.send_timeout', 'server.ws_heartbeat'):
            value = self.get(field)
            if value is not None and (not isinstance(value, (int, float)) or value <= 0):
                raise ConfigurationError(f"{field} must be a positive number of seconds")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-separated key.

        Args:
            key: Dot-separated key (e.g., 'server.port')
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        value = self._data

        for k in key.split('.'):
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """
        Set a value by dot-separated key, creating sections as needed.

        Used for command line overrides; the result is re-validated.
        """
        *sections, last = key.split('.')
        target = self._data

        for k in sections:
            if not isinstance(target.get(k), dict):
                target[k] = {}
            target = target[k]

        target[last] = value
        self._validate()

    def get_server_config(self) -> dict:
        """Get server configuration section."""
        return self._data.get('server') or {}

    def get_capture_config(self) -> dict:
        """Get FFmpeg capture configuration section."""
        return self._data.get('capture') or {}

    def get_logging_config(self) -> dict:
        """Get logging configuration section."""
        return self._data.get('logging') or {}

    def get_shutdown_timeout(self) -> float:
        """Seconds to wait for stream teardown when the server exits."""
        return self.get('shutdown.timeout', 10)

    def get_static_dir(self) -> Optional[Path]:
        """Get the static files directory, if one is configured."""
        static_dir = self.get('server.static_dir')
        return Path(static_dir) if static_dir else None

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
