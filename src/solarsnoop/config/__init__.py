"""Configuration management for SolarSnoop."""

from solarsnoop.config.schema import AppConfig
from solarsnoop.config.manager import ConfigManager

__all__ = ["AppConfig", "ConfigManager"]
