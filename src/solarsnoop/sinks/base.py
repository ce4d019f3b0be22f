"""Actions, channels, and the protocol every power-sink executor implements."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol, runtime_checkable

from solarsnoop.metering.base import Sample


class Action(str, Enum):
    """What a sink is asked to do in one cycle."""

    CONSUME = "consume"  # nudge toward consuming more energy
    PRODUCE = "produce"  # nudge toward drawing less from the grid
    NONE = "none"  # keep the status quo, send nothing
    INFO = "info"  # informational message, e.g. to report an error

    @property
    def is_mutative(self) -> bool:
        return self in (Action.CONSUME, Action.PRODUCE)


class Channel(str, Enum):
    """Kinds of power sink."""

    SMS = "sms"
    EMAIL = "email"
    ECOBEE = "ecobee"
    LOGGER = "logger"

    @property
    def requires_recipient(self) -> bool:
        return self in (Channel.SMS, Channel.EMAIL, Channel.ECOBEE)

    @property
    def has_cooldown(self) -> bool:
        return self is not Channel.LOGGER

    @property
    def supports_info(self) -> bool:
        return self in (Channel.SMS, Channel.EMAIL, Channel.LOGGER)


@dataclass(frozen=True)
class Sink:
    """A configured destination for power-balancing actions on one system."""

    id: int
    user_id: str
    system_id: int
    channel: Channel
    recipient: str | None = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Decision:
    """Desired action from telemetry, and the action cooldown allowed."""

    desired: Action
    desired_reason: str
    executed: Action
    executed_reason: str = ""


@dataclass
class Result:
    """Outcome of executing a decision against one sink."""

    desired: Action
    desired_reason: str
    executed: Action
    executed_reason: str
    success: bool
    success_reason: str = ""

    @classmethod
    def from_decision(cls, decision: Decision, success: bool, success_reason: str = "") -> Result:
        return cls(
            desired=decision.desired,
            desired_reason=decision.desired_reason,
            executed=decision.executed,
            executed_reason=decision.executed_reason,
            success=success,
            success_reason=success_reason,
        )


@dataclass(frozen=True)
class ActionRecord:
    """One immutable row of a sink's action history."""

    sink_id: int
    timestamp: datetime
    desired_action: Action
    desired_reason: str
    executed_action: Action
    executed_reason: str
    success: bool
    success_reason: str = ""

    @classmethod
    def from_result(cls, sink_id: int, result: Result, timestamp: datetime | None = None) -> ActionRecord:
        return cls(
            sink_id=sink_id,
            timestamp=timestamp or datetime.now(timezone.utc),
            desired_action=result.desired,
            desired_reason=result.desired_reason,
            executed_action=result.executed,
            executed_reason=result.executed_reason,
            success=result.success,
            success_reason=result.success_reason,
        )


@dataclass
class SinkContext:
    """What the executor knows about this cycle's metering."""

    sample: Sample | None = None
    metering_error: str | None = None


@runtime_checkable
class SinkExecutor(Protocol):
    """Protocol for all channel executors.

    Implementations: LoggerExecutor, EmailExecutor, SmsExecutor, EcobeeExecutor.
    Executors report provider failures through Result.success and never raise
    for them. Recipient validity is checked when the sink is created.
    """

    @property
    def channel(self) -> Channel:
        ...

    async def execute(self, sink: Sink, decision: Decision, context: SinkContext) -> Result:
        ...


@runtime_checkable
class MessageSender(Protocol):
    """Delivers a human-readable message (email, SMS)."""

    async def send_message(self, recipient: str, subject: str, body: str) -> None:
        ...


@dataclass(frozen=True)
class ThermostatCommand:
    """A temperature hold derived from an executed action."""

    action: Action
    heat_hold_temp: int  # degrees F
    cool_hold_temp: int  # degrees F
    hold_hours: int


@runtime_checkable
class ThermostatController(Protocol):
    async def set_thermostat_command(self, access_token: str, command: ThermostatCommand) -> None:
        ...
