"""Per-channel cooldown (hysteresis) between mutative actions.

The only cooldown state is the persisted action log: each reconciliation
looks up the most recent successful mutative record for the sink, so a
restarted process resumes the same behaviour from storage.

Transition rules, given the last successful mutative action:

    last      desired   minimum elapsed time
    CONSUME   CONSUME   min_consume_to_consume
    PRODUCE   CONSUME   min_produce_to_consume
    CONSUME   PRODUCE   none (allowed immediately)
    PRODUCE   PRODUCE   min_produce_to_produce

NONE and INFO are never held back. The asymmetry between the two switch
directions is business policy carried over unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Protocol

from solarsnoop.config.schema import ChannelCooldownConfig, CooldownsConfig
from solarsnoop.sinks.base import Action, ActionRecord, Channel

logger = logging.getLogger(__name__)


def last_mutative_action(history: Sequence[ActionRecord]) -> ActionRecord | None:
    """Newest record whose executed action was mutative and succeeded.

    History must be ordered newest first.
    """
    for record in history:
        if record.success and record.executed_action.is_mutative:
            return record
    return None


def format_elapsed(delta: timedelta) -> str:
    total = max(int(delta.total_seconds()), 0)
    hours, rem = divmod(total, 3600)
    minutes, seconds = divmod(rem, 60)
    if hours:
        return f"{hours}h{minutes:02d}m"
    if minutes:
        return f"{minutes}m{seconds:02d}s"
    return f"{seconds}s"


@dataclass(frozen=True)
class CooldownThresholds:
    min_consume_to_consume: timedelta
    min_produce_to_consume: timedelta
    min_produce_to_produce: timedelta

    @classmethod
    def from_config(cls, config: ChannelCooldownConfig) -> CooldownThresholds:
        return cls(
            min_consume_to_consume=timedelta(minutes=config.min_consume_to_consume_minutes),
            min_produce_to_consume=timedelta(minutes=config.min_produce_to_consume_minutes),
            min_produce_to_produce=timedelta(minutes=config.min_produce_to_produce_minutes),
        )

    def minimum(self, last: Action, desired: Action) -> timedelta:
        """Minimum time that must pass between `last` and `desired`."""
        if desired == Action.CONSUME:
            if last == Action.CONSUME:
                return self.min_consume_to_consume
            if last == Action.PRODUCE:
                return self.min_produce_to_consume
        elif desired == Action.PRODUCE:
            if last == Action.PRODUCE:
                return self.min_produce_to_produce
        return timedelta(0)

    def smallest_after(self, last: Action) -> timedelta:
        """Smallest cooldown on any mutative transition out of `last`."""
        return min(self.minimum(last, Action.CONSUME), self.minimum(last, Action.PRODUCE))


class CooldownPolicy(Protocol):
    def reconcile(
        self, desired: Action, history: Sequence[ActionRecord], now: datetime
    ) -> tuple[Action, str]:
        ...

    def precheck(self, history: Sequence[ActionRecord], now: datetime) -> str | None:
        ...


class BypassPolicy:
    """For channels with no notion of spam: always execute what is desired."""

    def reconcile(
        self, desired: Action, history: Sequence[ActionRecord], now: datetime
    ) -> tuple[Action, str]:
        return desired, ""

    def precheck(self, history: Sequence[ActionRecord], now: datetime) -> str | None:
        return None


class HysteresisPolicy:
    """Suppresses mutative actions that follow the last one too closely."""

    def __init__(self, thresholds: CooldownThresholds) -> None:
        self._thresholds = thresholds

    @property
    def thresholds(self) -> CooldownThresholds:
        return self._thresholds

    def reconcile(
        self, desired: Action, history: Sequence[ActionRecord], now: datetime
    ) -> tuple[Action, str]:
        if not desired.is_mutative:
            return desired, ""

        last = last_mutative_action(history)
        if last is None:
            return desired, "no prior actions"

        last_action = last.executed_action
        since_last = now - last.timestamp
        label = last_action.name
        minimum = self._thresholds.minimum(last_action, desired)

        if minimum <= timedelta(0):
            return desired, f"last action was {label}, no cooldown applies"
        if since_last > minimum:
            return desired, f"{format_elapsed(since_last)} since last action ({label})"

        logger.debug(
            "Cooldown: %s→%s suppressed (%s < %s)",
            label, desired.name, format_elapsed(since_last), format_elapsed(minimum),
        )
        return Action.NONE, f"{format_elapsed(since_last)} since last action ({label}), too recent"

    def precheck(self, history: Sequence[ActionRecord], now: datetime) -> str | None:
        """Reason to skip the cycle before metering, or None to proceed.

        Fires only when no mutative transition out of the last action could
        be allowed yet, whatever the sample turns out to be.
        """
        last = last_mutative_action(history)
        if last is None:
            return None
        since_last = now - last.timestamp
        if since_last < self._thresholds.smallest_after(last.executed_action):
            return (
                f"Time since last action ({last.executed_action.name}) is "
                f"{format_elapsed(since_last)} which is too recent."
            )
        return None


def policy_for(channel: Channel, cooldowns: CooldownsConfig | None = None) -> CooldownPolicy:
    """Build the cooldown policy for a channel kind."""
    if not channel.has_cooldown:
        return BypassPolicy()
    cooldowns = cooldowns or CooldownsConfig()
    channel_config: ChannelCooldownConfig = getattr(cooldowns, channel.value)
    return HysteresisPolicy(CooldownThresholds.from_config(channel_config))


def reconcile(
    desired: Action,
    history: Sequence[ActionRecord],
    channel: Channel,
    now: datetime | None = None,
    cooldowns: CooldownsConfig | None = None,
) -> tuple[Action, str]:
    """Apply the channel's cooldown policy to a desired action."""
    now = now or datetime.now(timezone.utc)
    return policy_for(channel, cooldowns).reconcile(desired, history, now)
