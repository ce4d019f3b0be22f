"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from solarsnoop.config.manager import ConfigManager
from solarsnoop.config.schema import AppConfig, MeteringConfig

DEFAULTS_FILE = Path(__file__).resolve().parent.parent / "config.defaults.yaml"


class TestAppConfig:
    def test_default_config_is_valid(self) -> None:
        config = AppConfig()
        assert config.metering.sun_start == "09:30"
        assert config.metering.sun_end == "17:30"
        assert config.cycle.interval_seconds == 900
        assert config.cooldowns.email.min_produce_to_consume_minutes == 105

    def test_cooldowns_are_per_channel(self) -> None:
        config = AppConfig(cooldowns={"sms": {"min_consume_to_consume_minutes": 60}})
        assert config.cooldowns.sms.min_consume_to_consume_minutes == 60
        assert config.cooldowns.email.min_consume_to_consume_minutes == 225

    def test_ecobee_hold_defaults(self) -> None:
        config = AppConfig()
        assert config.ecobee.consume_hold.cool_hold_temp == 70
        assert config.ecobee.produce_hold.cool_hold_temp == 78
        assert config.ecobee.hold_hours == 2

    @pytest.mark.parametrize("value", ["9:3", "25:00", "09:60", "0930", "ab:cd"])
    def test_rejects_bad_time_of_day(self, value: str) -> None:
        with pytest.raises(ValidationError):
            MeteringConfig(sun_start=value)

    def test_rejects_negative_cooldown(self) -> None:
        with pytest.raises(ValidationError):
            AppConfig(cooldowns={"email": {"min_produce_to_produce_minutes": -1}})


class TestConfigManager:
    def test_load_defaults_only(self, tmp_path: Path) -> None:
        defaults_file = tmp_path / "defaults.yaml"
        defaults_file.write_text("cycle:\n  interval_seconds: 600\ndb:\n  path: test.db\n")
        mgr = ConfigManager(defaults_path=defaults_file, user_path=tmp_path / "user.yaml")
        config = mgr.load()
        assert config.cycle.interval_seconds == 600
        assert config.db.path == "test.db"

    def test_user_overrides_are_deep_merged(self, tmp_path: Path) -> None:
        defaults_file = tmp_path / "defaults.yaml"
        defaults_file.write_text(
            "sendgrid:\n  api_key: ''\n  from_address: alerts@example.com\n"
        )
        user_file = tmp_path / "user.yaml"
        user_file.write_text("sendgrid:\n  api_key: SG.secret\n")
        config = ConfigManager(defaults_path=defaults_file, user_path=user_file).load()
        assert config.sendgrid.api_key == "SG.secret"
        assert config.sendgrid.from_address == "alerts@example.com"

    def test_channel_cooldown_override_keeps_other_channels(self, tmp_path: Path) -> None:
        user_file = tmp_path / "user.yaml"
        user_file.write_text("cooldowns:\n  sms:\n    min_consume_to_consume_minutes: 60\n")
        config = ConfigManager(defaults_path=DEFAULTS_FILE, user_path=user_file).load()
        assert config.cooldowns.sms.min_consume_to_consume_minutes == 60
        assert config.cooldowns.sms.min_produce_to_produce_minutes == 225
        assert config.cooldowns.email.min_consume_to_consume_minutes == 225

    def test_shipped_defaults_match_model_defaults(self) -> None:
        mgr = ConfigManager(defaults_path=DEFAULTS_FILE, user_path=DEFAULTS_FILE.parent / "missing.yaml")
        assert mgr.load() == AppConfig()

    def test_config_before_load_raises(self, tmp_path: Path) -> None:
        mgr = ConfigManager(defaults_path=tmp_path / "a.yaml", user_path=tmp_path / "b.yaml")
        with pytest.raises(RuntimeError):
            _ = mgr.config

    def test_empty_yaml_yields_defaults(self, tmp_path: Path) -> None:
        defaults_file = tmp_path / "defaults.yaml"
        defaults_file.write_text("")
        config = ConfigManager(defaults_path=defaults_file, user_path=tmp_path / "user.yaml").load()
        assert config == AppConfig()
