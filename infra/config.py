"""
Terminal Configuration
----------------------
YAML configuration with environment variable overrides, validated
into typed settings.

Lookup order for every value:
1. Environment: DEFI_TERMINAL_<SECTION>_<KEY> (e.g. DEFI_TERMINAL_API_BASE_URL)
2. Config file (config/terminal.yaml by default)
3. Built-in defaults
"""

from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union
import logging
import os

import yaml
from pydantic import BaseModel, Field

from plugins.base import PluginConfig


ENV_PREFIX = "DEFI_TERMINAL_"

DEFAULT_CONFIG_PATH = "config/terminal.yaml"


class AutocompleteSettings(BaseModel):
    enabled: bool = True
    min_chars: int = Field(default=1, ge=1)
    max_suggestions: int = Field(default=8, ge=1)
    debounce_ms: int = Field(default=150, ge=0)
    threshold: float = Field(default=0.3, ge=0.0, le=1.0)


class ResolutionSettings(BaseModel):
    fuzzy_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    did_you_mean_limit: int = Field(default=5, ge=0)


class ApiSettings(BaseModel):
    base_url: str = "http://localhost:3000"
    timeout_seconds: float = Field(default=15.0, gt=0)
    api_key_env: Optional[str] = None


class StorageSettings(BaseModel):
    preferences_path: str = "data/preferences.yaml"
    history_path: str = "data/command_history.json"
    history_limit: int = Field(default=1000, ge=1)


class LoggingSettings(BaseModel):
    level: str = "INFO"
    dir: str = "logs"
    console: bool = False
    file: bool = True


class TerminalSettings(BaseModel):
    """Validated terminal configuration."""
    autocomplete: AutocompleteSettings = Field(default_factory=AutocompleteSettings)
    resolution: ResolutionSettings = Field(default_factory=ResolutionSettings)
    plugins: Dict[str, PluginConfig] = Field(default_factory=dict)
    api: ApiSettings = Field(default_factory=ApiSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    health_timeout_seconds: float = Field(default=5.0, gt=0)


class ConfigManager:
    """
    Centralized configuration management.
    Loads configuration from YAML with environment variable overrides.
    """

    def __init__(self, config_path: Union[str, Path] = DEFAULT_CONFIG_PATH):
        self._config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._logger = logging.getLogger("terminal.config")

        self._load_config()

    @property
    def path(self) -> Path:
        return self._config_path

    def _load_config(self) -> None:
        """Load configuration from file."""
        if self._config_path.exists():
            with open(self._config_path, "r", encoding="utf-8") as f:
                self._config = yaml.safe_load(f) or {}
            self._logger.info(f"Loaded config from {self._config_path}")
        else:
            self._config = {}
            self._logger.warning(f"Config file not found: {self._config_path}, using defaults")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.
        Supports dot notation: 'section.key'
        Environment variables override file config.
        """
        env_value = os.getenv(env_key(key))
        if env_value is not None:
            return env_value

        value: Any = self._config
        for part in key.split("."):
            if isinstance(value, dict) and part in value:
                value = value[part]
            else:
                return default

        return value

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value (runtime only, not persisted)."""
        parts = key.split(".")
        config = self._config

        for part in parts[:-1]:
            config = config.setdefault(part, {})

        config[parts[-1]] = value

    def get_section(self, section: str) -> Dict[str, Any]:
        """Get an entire configuration section."""
        return dict(self._config.get(section) or {})

    def as_dict(self) -> Dict[str, Any]:
        return dict(self._config)

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()


def env_key(key: str) -> str:
    """'api.base_url' -> 'DEFI_TERMINAL_API_BASE_URL'"""
    return f"{ENV_PREFIX}{key.upper().replace('.', '_').replace('-', '_')}"


def _apply_env_overrides(
    data: Dict[str, Any],
    environ: Mapping[str, str]
) -> Dict[str, Any]:
    merged = {k: (dict(v) if isinstance(v, dict) else v) for k, v in data.items()}

    for name, field in TerminalSettings.model_fields.items():
        annotation = field.annotation
        if isinstance(annotation, type) and issubclass(annotation, BaseModel):
            for sub_name in annotation.model_fields:
                value = environ.get(env_key(f"{name}.{sub_name}"))
                if value is not None:
                    merged.setdefault(name, {})[sub_name] = value
        elif name != "plugins":
            value = environ.get(env_key(name))
            if value is not None:
                merged[name] = value

    return merged


def load_settings(
    config_path: Union[str, Path, None] = None,
    environ: Optional[Mapping[str, str]] = None
) -> TerminalSettings:
    """
    Load and validate settings.

    A missing file yields the defaults (plus environment overrides).

    Raises:
        pydantic.ValidationError: If a value has the wrong type or range
    """
    manager = ConfigManager(config_path or DEFAULT_CONFIG_PATH)
    data = _apply_env_overrides(
        manager.as_dict(),
        os.environ if environ is None else environ
    )
    return TerminalSettings.model_validate(data)
