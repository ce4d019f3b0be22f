"""Per-cycle metering source with single-flight memoization.

One MeteringSource exists per system per cycle. Every sink of that system
shares its sample, so the rate-limited upstream API is queried at most once
per system per cycle. The source is discarded when the cycle ends.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Generic, TypeVar

from solarsnoop.config.schema import MeteringConfig
from solarsnoop.metering.base import (
    MeteringFailure,
    MeteringProvider,
    MeteringSkipped,
    Sample,
    System,
)
from solarsnoop.timezone_utils import offset_into_day, parse_time_of_day, resolve_timezone

logger = logging.getLogger(__name__)

T = TypeVar("T")

Clock = Callable[[], datetime]
SampleCallback = Callable[[System, Sample], Awaitable[None]]

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SingleFlight(Generic[T]):
    """Run an async function once; every caller gets the same outcome.

    The first caller starts the computation. Concurrent and later callers
    await the same future, including a raised exception. A caller that is
    cancelled or times out does not cancel the shared computation.
    """

    def __init__(self, fn: Callable[[], Awaitable[T]]) -> None:
        self._fn = fn
        self._future: asyncio.Future[T] | None = None

    @property
    def started(self) -> bool:
        return self._future is not None

    async def do(self) -> T:
        if self._future is None:
            self._future = asyncio.ensure_future(self._fn())
        return await asyncio.shield(self._future)


@dataclass(frozen=True)
class DaylightWindow:
    """Local time-of-day range during which metering is worth a query.

    start > end means the window wraps past midnight.
    """

    start: timedelta
    end: timedelta

    @classmethod
    def from_config(cls, config: MeteringConfig) -> DaylightWindow:
        return cls(start=parse_time_of_day(config.sun_start), end=parse_time_of_day(config.sun_end))

    def contains(self, local_time: datetime) -> bool:
        offset = offset_into_day(local_time)
        if self.start <= self.end:
            return self.start <= offset <= self.end
        return offset >= self.start or offset <= self.end


def sampling_window(
    now: datetime,
    interval: timedelta = timedelta(minutes=15),
    latency: timedelta = timedelta(minutes=5),
) -> tuple[datetime, datetime]:
    """Return the last fully closed interval that ended at least `latency` ago.

    Upstream data can take a few minutes to appear, so the window ends
    between `latency` and `latency + interval` before now. Naive datetimes
    are taken as UTC.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    elapsed = now.astimezone(timezone.utc) - latency - _EPOCH
    end = _EPOCH + (elapsed // interval) * interval
    return end - interval, end


class MeteringSource:
    """Fetches one (production, consumption) sample for a system per cycle."""

    def __init__(
        self,
        provider: MeteringProvider,
        system: System,
        access_token: str,
        config: MeteringConfig | None = None,
        clock: Clock = utc_now,
        on_sample: SampleCallback | None = None,
    ) -> None:
        self._provider = provider
        self._system = system
        self._access_token = access_token
        self._config = config or MeteringConfig()
        self._clock = clock
        self._on_sample = on_sample
        self._daylight = DaylightWindow.from_config(self._config)
        self._flight: SingleFlight[Sample] = SingleFlight(self._fetch_upstream)

    @property
    def system(self) -> System:
        return self._system

    @property
    def fetched(self) -> bool:
        """True once any caller has triggered the upstream fetch."""
        return self._flight.started

    async def fetch(self) -> Sample:
        """Return the memoized sample for this cycle.

        Raises:
            MeteringSkipped: the system is outside its daylight window.
            MeteringFailure: the upstream provider call failed.
        """
        return await self._flight.do()

    async def _fetch_upstream(self) -> Sample:
        system = self._system
        now = self._clock()
        local_now = now.astimezone(resolve_timezone(system.timezone))
        if not self._daylight.contains(local_now):
            raise MeteringSkipped(
                f"time at system ({local_now.isoformat()}) is outside of primary solar hours"
            )

        start, end = sampling_window(
            now,
            interval=timedelta(minutes=self._config.interval_minutes),
            latency=timedelta(minutes=self._config.data_latency_minutes),
        )

        try:
            produced = await self._provider.fetch_production(system.system_id, self._access_token, start)
        except Exception as e:
            raise MeteringFailure(
                f"failed to query production for system {system.system_id} of user {system.user_id}: {e}"
            ) from e
        logger.info(
            "System %d: %d watts produced from %s to %s",
            system.system_id, produced, start.isoformat(), end.isoformat(),
        )

        try:
            consumed = await self._provider.fetch_consumption(system.system_id, self._access_token, start)
        except Exception as e:
            raise MeteringFailure(
                f"failed to query consumption for system {system.system_id} of user {system.user_id}: {e}"
            ) from e
        logger.info(
            "System %d: %d watts consumed from %s to %s",
            system.system_id, consumed, start.isoformat(), end.isoformat(),
        )

        sample = Sample(produced_w=produced, consumed_w=consumed, start=start, end=end)

        if self._on_sample is not None:
            try:
                await self._on_sample(system, sample)
            except Exception:
                logger.exception("Failed to save telemetry for system %d", system.system_id)

        return sample
