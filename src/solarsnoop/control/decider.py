"""Threshold decision: which way should this household be nudged?"""

from __future__ import annotations

from solarsnoop.sinks.base import Action

# Net imbalance (watts) beyond which a nudge is warranted. Deliberately not
# scaled by system capacity.
EXCESS_THRESHOLD_W = 1000


def is_excess_production(produced_w: int, consumed_w: int) -> bool:
    return produced_w - consumed_w > EXCESS_THRESHOLD_W


def is_excess_consumption(produced_w: int, consumed_w: int) -> bool:
    return consumed_w - produced_w > EXCESS_THRESHOLD_W


def decide(produced_w: int, consumed_w: int) -> tuple[Action, str]:
    """Map a metering sample to a desired action and a readable reason."""
    if is_excess_production(produced_w, consumed_w):
        return Action.CONSUME, f"{produced_w} production >> {consumed_w} consumption"
    if is_excess_consumption(produced_w, consumed_w):
        return Action.PRODUCE, f"{consumed_w} consumption >> {produced_w} production"
    return Action.NONE, f"{produced_w} production ~= {consumed_w} consumption"
