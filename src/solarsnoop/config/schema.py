"""Pydantic configuration models for all system settings."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator


def _check_hhmm(value: str) -> str:
    parts = value.split(":")
    if len(parts) != 2 or not all(len(p) == 2 and p.isdigit() for p in parts):
        raise ValueError(f"expected HH:MM, got {value!r}")
    hours, minutes = int(parts[0]), int(parts[1])
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"time of day out of range: {value!r}")
    return value


class MeteringConfig(BaseModel):
    """Sampling and daylight-window settings.

    The sun window is a rough guess in local wall-clock time, 09:30 to
    17:30 by default. When sun_start is later than sun_end the window
    wraps past midnight.
    """

    # TODO: shift the sun window with the seasons (shorter days in winter).
    sun_start: str = "09:30"
    sun_end: str = "17:30"
    interval_minutes: int = Field(15, ge=1, le=60)
    data_latency_minutes: int = Field(5, ge=0, le=60)

    @field_validator("sun_start", "sun_end")
    @classmethod
    def _validate_time_of_day(cls, value: str) -> str:
        return _check_hhmm(value)


class ChannelCooldownConfig(BaseModel):
    """Minimum minutes between mutative actions on one channel kind.

    Switching from a consume hint to a produce hint has no cooldown.
    The defaults subtract 15 minutes of slack from round hours to absorb
    cycle tick jitter.
    """

    min_consume_to_consume_minutes: int = Field(225, ge=0)
    min_produce_to_consume_minutes: int = Field(105, ge=0)
    min_produce_to_produce_minutes: int = Field(225, ge=0)


class CooldownsConfig(BaseModel):
    email: ChannelCooldownConfig = ChannelCooldownConfig()
    sms: ChannelCooldownConfig = ChannelCooldownConfig()
    ecobee: ChannelCooldownConfig = ChannelCooldownConfig()


class CycleConfig(BaseModel):
    interval_seconds: int = Field(900, ge=60)
    sink_timeout_seconds: float = Field(60.0, gt=0)
    hostname: str = "www.solarsnoop.com"


class EnphaseConfig(BaseModel):
    api_key: str = ""
    client_id: str = ""
    client_secret: str = ""
    base_url: str = "https://api.enphaseenergy.com"
    timeout_seconds: float = 30.0


class SendGridConfig(BaseModel):
    api_key: str = ""
    from_address: str = "alerts@solarsnoop.com"
    from_name: str = "SolarSnoop"
    base_url: str = "https://api.sendgrid.com"
    timeout_seconds: float = 30.0


class TwilioConfig(BaseModel):
    account_sid: str = ""
    auth_token: str = ""
    from_number: str = ""
    base_url: str = "https://api.twilio.com"
    timeout_seconds: float = 30.0


class ThermostatHoldConfig(BaseModel):
    """Hold setpoints in degrees Fahrenheit."""

    heat_hold_temp: int = Field(ge=40, le=90)
    cool_hold_temp: int = Field(ge=50, le=95)


class EcobeeConfig(BaseModel):
    api_key: str = ""
    base_url: str = "https://api.ecobee.com"
    timeout_seconds: float = 30.0
    hold_hours: int = Field(2, ge=1, le=24)
    # Surplus solar: run the HVAC harder.
    consume_hold: ThermostatHoldConfig = ThermostatHoldConfig(heat_hold_temp=72, cool_hold_temp=70)
    # Grid draw: back the HVAC off.
    produce_hold: ThermostatHoldConfig = ThermostatHoldConfig(heat_hold_temp=64, cool_hold_temp=78)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file: str = ""


class DBConfig(BaseModel):
    path: str = "solarsnoop.db"


class AppConfig(BaseModel):
    """Root configuration model containing all system settings."""

    metering: MeteringConfig = MeteringConfig()
    cooldowns: CooldownsConfig = CooldownsConfig()
    cycle: CycleConfig = CycleConfig()
    enphase: EnphaseConfig = EnphaseConfig()
    sendgrid: SendGridConfig = SendGridConfig()
    twilio: TwilioConfig = TwilioConfig()
    ecobee: EcobeeConfig = EcobeeConfig()
    logging: LoggingConfig = LoggingConfig()
    db: DBConfig = DBConfig()
