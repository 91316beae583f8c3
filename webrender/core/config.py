"""
Configuration management for webrender.

A singleton `ConfigurationManager` loads settings from a YAML file chosen by
the APP_ENV environment variable (``development`` when unset) and exposes
them through dot-notation lookups such as ``"renderer.timeout"``.

Configuration is read once at process start, before any render runs, and is
treated as read-only afterwards.
"""
import os
import yaml
from typing import Any, Dict, Optional

from webrender.core.logger import get_logger

# Directory holding <env>.yaml files, shipped inside the package.
CONFIG_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "..", "config")

DEFAULT_ENV = "development"


class ConfigError(Exception):
    """Base class for configuration loading errors."""
    pass


class ConfigFileNotFoundError(ConfigError):
    """Raised when the YAML file for the selected environment does not exist."""
    pass


class InvalidYamlError(ConfigError):
    """Raised when a configuration file is not valid YAML or not a mapping."""
    pass


class ConfigurationManager:
    """
    Loads and serves configuration values.

    Only one instance exists per process; constructing the class again
    returns the already-loaded instance.
    """
    CONFIG_DIR: str = CONFIG_DIR

    _instance: Optional['ConfigurationManager'] = None
    _config: Dict[str, Any] = {}
    _current_env: str = ""

    def __new__(cls) -> 'ConfigurationManager':
        if cls._instance is None:
            cls._instance = super(ConfigurationManager, cls).__new__(cls)
            cls._instance.load_config()
        return cls._instance

    def load_config(self, env: Optional[str] = None) -> None:
        """
        Loads the configuration for an environment.

        The environment is taken from `env`, then APP_ENV, then `DEFAULT_ENV`.

        Args:
            env (Optional[str]): Environment name, e.g. "production".

        Raises:
            ConfigFileNotFoundError: If ``<env>.yaml`` is missing from `CONFIG_DIR`.
            InvalidYamlError: If the file cannot be parsed or is not a mapping.
        """
        self._current_env = env or os.getenv("APP_ENV", DEFAULT_ENV)
        config_file_path = os.path.join(self.CONFIG_DIR, f"{self._current_env}.yaml")

        try:
            with open(config_file_path, "r") as f:
                loaded = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigFileNotFoundError(
                f"Configuration file not found for environment '{self._current_env}' at '{config_file_path}'. "
                f"Ensure '{self._current_env}.yaml' exists in the '{self.CONFIG_DIR}' directory."
            )
        except yaml.YAMLError as e:
            raise InvalidYamlError(
                f"Error parsing YAML in configuration file '{config_file_path}': {e}"
            )
        if not isinstance(loaded, dict):
            raise InvalidYamlError(
                f"Configuration file '{config_file_path}' does not contain a valid YAML dictionary."
            )
        self._config = loaded

    def get(self, key: str, default: Optional[Any] = None) -> Any:
        """
        Returns the value stored under `key`, or `default` when any part of
        the dotted path is missing.
        """
        value = self._config
        try:
            for part in key.split("."):
                if not isinstance(value, dict):
                    return default
                value = value[part]
            return value
        except (KeyError, TypeError):
            return default

    def section(self, name: str) -> Dict[str, Any]:
        """
        Returns a copy of a top-level section such as ``renderer``. Missing or
        non-mapping sections come back as an empty dict.
        """
        value = self._config.get(name)
        return dict(value) if isinstance(value, dict) else {}

    def reload_config(self, env: Optional[str] = None) -> None:
        """Re-reads the configuration, optionally switching environment."""
        old_env = self._current_env
        self.load_config(env)
        get_logger(__name__).info(
            f"Configuration reloaded: '{old_env}' -> '{self._current_env}'."
        )

    @property
    def current_environment(self) -> str:
        return self._current_env


# Loaded on first import so that every module sees the same settings.
config_manager = ConfigurationManager()


def get_config(key: str, default: Optional[Any] = None) -> Any:
    """Shortcut for `config_manager.get`."""
    return config_manager.get(key, default)
