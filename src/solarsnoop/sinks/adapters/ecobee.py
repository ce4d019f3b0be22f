"""Ecobee thermostat power sink.

CONSUME sets a hold that runs the HVAC harder while solar is in surplus;
PRODUCE sets a hold that backs it off while the home draws from the grid.
A failed command marks the result unsuccessful; the sink stays active.
"""

from __future__ import annotations

import json
import logging

from solarsnoop.config.schema import EcobeeConfig
from solarsnoop.sinks.base import (
    Action,
    Channel,
    Decision,
    Result,
    Sink,
    SinkContext,
    ThermostatCommand,
    ThermostatController,
)

logger = logging.getLogger(__name__)


def access_token_from_recipient(recipient: str | None) -> str:
    """Extract the ecobee access token stored as the sink's recipient.

    The recipient is the OAuth token response as JSON; a bare token string
    is accepted too.
    """
    if not recipient:
        return ""
    try:
        data = json.loads(recipient)
    except json.JSONDecodeError:
        return recipient
    if isinstance(data, dict):
        return str(data.get("access_token", ""))
    return recipient


class EcobeeExecutor:
    channel = Channel.ECOBEE

    def __init__(self, controller: ThermostatController, config: EcobeeConfig | None = None) -> None:
        self._controller = controller
        self._config = config or EcobeeConfig()

    @property
    def controller(self) -> ThermostatController:
        return self._controller

    def command_for(self, action: Action) -> ThermostatCommand | None:
        """Map an executed action to a thermostat hold, or None for no-op."""
        if action == Action.CONSUME:
            hold = self._config.consume_hold
        elif action == Action.PRODUCE:
            hold = self._config.produce_hold
        else:
            return None
        return ThermostatCommand(
            action=action,
            heat_hold_temp=hold.heat_hold_temp,
            cool_hold_temp=hold.cool_hold_temp,
            hold_hours=self._config.hold_hours,
        )

    async def execute(self, sink: Sink, decision: Decision, context: SinkContext) -> Result:
        if decision.executed == Action.INFO and not self.channel.supports_info:
            logger.info("Sink %d cannot display messages, dropping info: %s", sink.id, decision.desired_reason)
            return Result.from_decision(
                decision, success=True, success_reason="thermostat cannot display info messages"
            )

        command = self.command_for(decision.executed)
        if command is None:
            return Result.from_decision(decision, success=True)

        try:
            await self._controller.set_thermostat_command(access_token_from_recipient(sink.recipient), command)
        except Exception as e:
            logger.warning("Ecobee command failed for sink %d: %s", sink.id, e)
            return Result.from_decision(
                decision, success=False, success_reason=f"failed to send ecobee command: {e}"
            )

        logger.info(
            "Ecobee hold set for sink %d: heat=%dF cool=%dF for %dh",
            sink.id, command.heat_hold_temp, command.cool_hold_temp, command.hold_hours,
        )
        return Result.from_decision(
            decision,
            success=True,
            success_reason=f"set {command.hold_hours}h hold ({command.heat_hold_temp}F/{command.cool_hold_temp}F)",
        )
