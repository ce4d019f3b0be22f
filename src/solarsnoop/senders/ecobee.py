"""Ecobee thermostat API client.

API docs: https://www.ecobee.com/home/developer/api/documentation/v1/functions/SetHold.shtml
Temperatures are sent in tenths of a degree Fahrenheit.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from solarsnoop.config.schema import EcobeeConfig
from solarsnoop.sinks.base import ThermostatCommand

logger = logging.getLogger(__name__)


class EcobeeClient:
    """Calls thermostat functions on every thermostat registered to a token."""

    def __init__(self, config: EcobeeConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )
        self._owns_client = client is None

    async def set_thermostat_command(self, access_token: str, command: ThermostatCommand) -> None:
        await self._post_function(
            access_token,
            "setHold",
            {
                "holdType": "holdHours",
                "heatHoldTemp": command.heat_hold_temp * 10,
                "coolHoldTemp": command.cool_hold_temp * 10,
                "holdHours": command.hold_hours,
            },
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _post_function(self, access_token: str, func_type: str, params: dict[str, Any]) -> None:
        body = {
            "selection": {"selectionType": "registered", "selectionMatch": ""},
            "functions": [{"type": func_type, "params": params}],
        }
        resp = await self._client.post(
            "/1/thermostat",
            params={"format": "json"},
            json=body,
            headers={
                "Authorization": f"Bearer {access_token}",
                "Content-Type": "application/json;charset=UTF-8",
            },
        )
        resp.raise_for_status()
        status = resp.json().get("status", {})
        if status.get("code", 0) != 0:
            raise RuntimeError(f"ecobee {func_type} rejected: {status.get('message', 'unknown error')}")
        logger.debug("Ecobee %s accepted", func_type)
