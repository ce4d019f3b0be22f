"""Metering samples, errors, and the provider protocol."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class Sample:
    """Average power over one closed metering window."""

    produced_w: int
    consumed_w: int
    start: datetime
    end: datetime


@dataclass(frozen=True)
class System:
    """A metered solar installation owned by one user."""

    user_id: str
    system_id: int
    name: str = ""
    public_name: str = ""
    timezone: str = ""


class MeteringSkipped(Exception):
    """Metering was deliberately not attempted this cycle.

    Not a fault: callers end the cycle for the sink without recording.
    """


class MeteringError(Exception):
    """Base class for metering faults."""


class MeteringFailure(MeteringError):
    """The upstream metering call failed."""


@runtime_checkable
class MeteringProvider(Protocol):
    """Upstream source of production and consumption readings.

    Both methods return average watts over the 15-minute interval starting
    at start_at. Providers convert their native watt-hours themselves.
    """

    async def fetch_production(self, system_id: int, access_token: str, start_at: datetime) -> int:
        ...

    async def fetch_consumption(self, system_id: int, access_token: str, start_at: datetime) -> int:
        ...
