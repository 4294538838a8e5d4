"""
Tuitbot Bridge validation module.

This module provides configuration loading and schema enforcement.
"""

from tuitbot_bridge.validation.config import BridgeConfig, Config, ConfigError, SidecarConfig

__all__ = ["BridgeConfig", "Config", "ConfigError", "SidecarConfig"]
