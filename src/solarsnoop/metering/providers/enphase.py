"""Enphase Enlighten v4 metering provider.

API docs: https://developer-v4.enphase.com/docs.html
Telemetry is reported per 15-minute interval in watt-hours; a value of
X Wh over 15 minutes is an average of 4*X watts.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import httpx

from solarsnoop.config.schema import EnphaseConfig

logger = logging.getLogger(__name__)

INTERVAL = timedelta(minutes=15)
_WH_TO_AVG_W = 4
_MAX_INTERVAL_SKEW = timedelta(minutes=1)


class EnphaseProvider:
    """Reads production and consumption meters through the Enlighten API."""

    def __init__(self, config: EnphaseConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            headers={"key": config.api_key},
            timeout=config.timeout_seconds,
        )
        self._owns_client = client is None

    async def fetch_production(self, system_id: int, access_token: str, start_at: datetime) -> int:
        """Average watts produced over the interval starting at start_at."""
        data = await self._get_telemetry(system_id, "production_meter", access_token, start_at)
        intervals = data.get("intervals") or []
        if not intervals:
            raise ValueError("no intervals returned")

        interval = intervals[0]
        end_at = datetime.fromtimestamp(int(interval["end_at"]), tz=timezone.utc)
        skew = abs(end_at - (start_at + INTERVAL))
        if skew > _MAX_INTERVAL_SKEW:
            raise ValueError(f"untrustworthy interval: [{data.get('start_at')}, {interval['end_at']}]")

        return int(interval.get("wh_del", 0)) * _WH_TO_AVG_W

    async def fetch_consumption(self, system_id: int, access_token: str, start_at: datetime) -> int:
        """Average watts consumed over the interval starting at start_at."""
        data = await self._get_telemetry(system_id, "consumption_meter", access_token, start_at)
        intervals = data.get("intervals") or []
        # TODO: only count the interval whose end_at matches start_at + 15min.
        watts = 0
        for interval in intervals:
            logger.debug("Consumption interval: %s", interval)
            watts += int(interval.get("enwh", 0)) * _WH_TO_AVG_W
        return watts

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_telemetry(
        self, system_id: int, meter: str, access_token: str, start_at: datetime
    ) -> dict:
        resp = await self._client.get(
            f"/api/v4/systems/{system_id}/telemetry/{meter}",
            params={"start_at": int(start_at.timestamp()), "granularity": "15mins"},
            headers={"Authorization": f"Bearer {access_token}", "key": self._config.api_key},
        )
        resp.raise_for_status()
        return resp.json()
