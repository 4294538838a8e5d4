"""
Tuitbot Bridge Configuration - Configuration loading and validation.

This module provides the Config class for managing bridge configuration
from both global (~/.tuitbot-bridge/config.yaml) and local
(.tuitbot-bridge/config.yaml) sources, or from one explicit file.
"""

import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from tuitbot_bridge.mcp.schema import BridgeFilterConfig

BINARY_ENV_VAR = "TUITBOT_BINARY"


class ConfigError(Exception):
    """Raised when there's a configuration error."""

    pass


class SidecarConfig(BaseModel):
    """How to launch the tuitbot MCP server."""

    binary_path: Optional[str] = None
    config_path: Optional[str] = None
    args: List[str] = Field(default_factory=lambda: ["mcp", "serve"])
    env: Dict[str, str] = Field(default_factory=dict)
    host_name: str = "tuitbot-bridge"
    shutdown_timeout: float = 5.0

    def resolve_binary(self) -> str:
        """
        Binary to launch.

        Checks config first, then the TUITBOT_BINARY environment variable,
        then falls back to ``tuitbot`` on PATH.
        """
        return self.binary_path or os.environ.get(BINARY_ENV_VAR) or "tuitbot"


class BridgeConfig(BaseModel):
    """Complete bridge configuration schema."""

    sidecar: SidecarConfig = Field(default_factory=SidecarConfig)
    filters: BridgeFilterConfig = Field(default_factory=BridgeFilterConfig)
    tool_prefix: str = "tuitbot_"
    log_level: str = "INFO"


class Config:
    """
    Bridge configuration manager.

    Handles loading, merging, and validating configuration from:
    - Global: ~/.tuitbot-bridge/config.yaml
    - Local: .tuitbot-bridge/config.yaml (found by walking up from the cwd)

    Local configuration overrides global configuration. Passing an explicit
    path to ``load`` reads that file alone.

    Example:
        >>> config = Config.load()
        >>> config.apply_overrides({"filters": {"enable_mutations": True}})
        >>> binary = config.merged.sidecar.resolve_binary()
    """

    GLOBAL_CONFIG_DIR = Path.home() / ".tuitbot-bridge"
    LOCAL_CONFIG_DIR = Path(".tuitbot-bridge")

    def __init__(
        self,
        global_config: Optional[Dict[str, Any]] = None,
        local_config: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize Config.

        Args:
            global_config: Global configuration dictionary.
            local_config: Local (project) configuration dictionary.
        """
        self._global_config = global_config or {}
        self._local_config = local_config or {}
        self._local_path: Optional[Path] = None
        self._merged: Optional[BridgeConfig] = None

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Config":
        """
        Load configuration.

        Args:
            path: Explicit config file. When given, it is the only file read
                and a missing file is an error.

        Returns:
            Config instance with loaded configuration.
        """
        if path is not None:
            path = Path(path)
            if not path.exists():
                raise ConfigError(f"Config file not found: {path}")
            config = cls(local_config=cls._load_yaml(path))
            config._local_path = path
            return config

        local_path = cls._find_local_config()
        config = cls(
            global_config=cls._load_yaml(cls.GLOBAL_CONFIG_DIR / "config.yaml"),
            local_config=cls._load_yaml(local_path),
        )
        config._local_path = local_path
        return config

    @classmethod
    def _load_yaml(cls, path: Optional[Path]) -> Dict[str, Any]:
        """Load YAML file if it exists."""
        if path is None or not path.exists():
            return {}

        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}")

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a mapping")
        return data

    @classmethod
    def _find_local_config(cls) -> Optional[Path]:
        """Find the local config file by walking up the directory tree."""
        current = Path.cwd()
        while current != current.parent:
            config_path = current / cls.LOCAL_CONFIG_DIR / "config.yaml"
            if config_path.exists():
                return config_path
            current = current.parent
        return None

    def get_merged_config(self) -> Dict[str, Any]:
        """Get the merged configuration as a dictionary."""
        return self._deep_merge(self._global_config.copy(), self._local_config)

    @property
    def merged(self) -> BridgeConfig:
        """Get the validated merged configuration."""
        if self._merged is None:
            try:
                self._merged = BridgeConfig(**self.get_merged_config())
            except ValidationError as e:
                raise ConfigError(f"Invalid configuration: {e}")
        return self._merged

    def apply_overrides(self, overrides: Dict[str, Any]) -> None:
        """
        Merge overrides (e.g. from CLI flags) on top of the local config.

        Keys whose value is None are ignored so unset flags don't clobber
        configured values.
        """
        cleaned = self._drop_none(overrides)
        self._local_config = self._deep_merge(self._local_config, cleaned)
        self._merged = None  # Reset cache

    def save(self, path: Optional[Path] = None) -> Path:
        """Save the local configuration and return the file written."""
        target = path or self._local_path or (Path.cwd() / self.LOCAL_CONFIG_DIR / "config.yaml")
        self._save_yaml(Path(target), self._local_config)
        return Path(target)

    def _save_yaml(self, path: Path, data: Dict[str, Any]) -> None:
        """Save data to a YAML file."""
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries, with override taking precedence."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _drop_none(self, data: Dict[str, Any]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for key, value in data.items():
            if isinstance(value, dict):
                value = self._drop_none(value)
                if not value:
                    continue
            if value is None:
                continue
            result[key] = value
        return result
