"""Reads the SolarSnoop YAML files into an AppConfig.

config.defaults.yaml ships with the package and holds every tunable.
config.yaml is optional and local; it carries API keys and whatever
cooldowns or daylight hours differ for this install.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from solarsnoop.config.schema import AppConfig

logger = logging.getLogger(__name__)


class ConfigManager:
    """Merges the local overrides file over the shipped defaults."""

    def __init__(
        self,
        defaults_path: Path | None = None,
        user_path: Path | None = None,
    ) -> None:
        self._defaults_path = defaults_path or Path("config.defaults.yaml")
        self._user_path = user_path or Path("config.yaml")
        self._config: AppConfig | None = None

    @property
    def config(self) -> AppConfig:
        if self._config is None:
            raise RuntimeError("Config not loaded. Call load() first.")
        return self._config

    def load(self) -> AppConfig:
        """Read both files and validate the merge.

        A missing overrides file is not an error. Secrets stay blank until
        config.yaml fills them in, and the sinks that need them will report
        failures at send time rather than here.

        Raises:
            pydantic.ValidationError: a value is out of range or malformed,
                e.g. a sun_start that is not HH:MM.
        """
        defaults = self._load_yaml(self._defaults_path)
        overrides = self._load_yaml(self._user_path)
        self._config = AppConfig.model_validate(self._deep_merge(defaults, overrides))
        logger.info(
            "Configuration loaded (defaults=%s, overrides=%s)",
            self._defaults_path,
            self._user_path if self._user_path.exists() else "none",
        )
        return self._config

    @staticmethod
    def _load_yaml(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        with open(path) as f:
            data = yaml.safe_load(f)
        return data if isinstance(data, dict) else {}

    @staticmethod
    def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
        # Section by section, so overriding cooldowns.sms keeps the email and ecobee defaults.
        result = dict(base)
        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = ConfigManager._deep_merge(result[key], value)
            else:
                result[key] = value
        return result
