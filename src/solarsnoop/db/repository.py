"""Data access layer for all database operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import aiosqlite

from solarsnoop.metering.base import Sample, System
from solarsnoop.sinks.base import Action, ActionRecord, Channel, Sink

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc).isoformat()


def _from_iso(value: str) -> datetime:
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass(frozen=True)
class AuthSession:
    """A logged-in user and the upstream OAuth tokens stored for them."""

    session_token: str
    user_id: str
    access_token: str
    refresh_token: str = ""


class Repository:
    """Centralised data access for all tables."""

    def __init__(self, db: aiosqlite.Connection) -> None:
        self.db = db

    # ── Sessions ────────────────────────────────────────────

    async def upsert_session(self, session: AuthSession) -> None:
        await self.db.execute(
            """INSERT INTO auth_sessions
               (session_token, user_id, access_token, refresh_token, created_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(session_token) DO UPDATE SET
                 user_id = excluded.user_id,
                 access_token = excluded.access_token,
                 refresh_token = excluded.refresh_token""",
            (session.session_token, session.user_id, session.access_token,
             session.refresh_token, _now()),
        )
        await self.db.commit()

    async def get_sessions(self) -> list[AuthSession]:
        async with self.db.execute(
            """SELECT session_token, user_id, access_token, refresh_token
               FROM auth_sessions ORDER BY created_at"""
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            AuthSession(
                session_token=r["session_token"],
                user_id=r["user_id"],
                access_token=r["access_token"],
                refresh_token=r["refresh_token"],
            )
            for r in rows
        ]

    async def delete_session(self, session_token: str) -> bool:
        async with self.db.execute(
            "DELETE FROM auth_sessions WHERE session_token = ?", (session_token,)
        ) as cursor:
            deleted = cursor.rowcount > 0
        await self.db.commit()
        return deleted

    # ── Enphase Systems ─────────────────────────────────────

    async def upsert_system(self, system: System) -> None:
        await self.db.execute(
            """INSERT INTO enphase_systems (user_id, system_id, name, public_name, timezone)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(user_id, system_id) DO UPDATE SET
                 name = excluded.name,
                 public_name = excluded.public_name,
                 timezone = excluded.timezone""",
            (system.user_id, system.system_id, system.name, system.public_name, system.timezone),
        )
        await self.db.commit()

    async def get_systems(self, user_id: str) -> list[System]:
        async with self.db.execute(
            """SELECT user_id, system_id, name, public_name, timezone
               FROM enphase_systems WHERE user_id = ? ORDER BY system_id""",
            (user_id,),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            System(
                user_id=r["user_id"],
                system_id=r["system_id"],
                name=r["name"],
                public_name=r["public_name"],
                timezone=r["timezone"],
            )
            for r in rows
        ]

    # ── Power Sinks ─────────────────────────────────────────

    async def insert_powersink(
        self,
        user_id: str,
        system_id: int,
        channel: Channel | str,
        recipient: str | None = None,
    ) -> int:
        """Create a sink and return its id.

        Raises ValueError for an unknown channel, or when a channel that
        delivers to a recipient is given none.
        """
        try:
            channel = Channel(channel)
        except ValueError:
            raise ValueError(f"unknown powersink channel: {channel!r}") from None
        if channel.requires_recipient and not (recipient or "").strip():
            raise ValueError(f"{channel.value} powersinks require a recipient")
        if not channel.requires_recipient:
            recipient = None

        async with self.db.execute(
            """INSERT INTO powersinks (user_id, system_id, channel, recipient, created_at)
               VALUES (?, ?, ?, ?, ?)""",
            (user_id, system_id, channel.value, recipient, _now()),
        ) as cursor:
            row_id = cursor.lastrowid
        await self.db.commit()
        logger.info("Created %s powersink %d for system %d", channel.value, row_id, system_id)
        return row_id  # type: ignore[return-value]

    async def get_powersinks(self, user_id: str, system_id: int) -> list[Sink]:
        async with self.db.execute(
            """SELECT id, user_id, system_id, channel, recipient, created_at
               FROM powersinks WHERE user_id = ? AND system_id = ? ORDER BY id""",
            (user_id, system_id),
        ) as cursor:
            rows = await cursor.fetchall()
        sinks = []
        for r in rows:
            try:
                channel = Channel(r["channel"])
            except ValueError:
                logger.warning("Ignoring powersink %d with unknown channel %r", r["id"], r["channel"])
                continue
            sinks.append(Sink(
                id=r["id"],
                user_id=r["user_id"],
                system_id=r["system_id"],
                channel=channel,
                recipient=r["recipient"],
                created_at=_from_iso(r["created_at"]),
            ))
        return sinks

    async def delete_powersink(self, user_id: str, sink_id: int) -> bool:
        async with self.db.execute(
            "DELETE FROM powersinks WHERE id = ? AND user_id = ?", (sink_id, user_id)
        ) as cursor:
            deleted = cursor.rowcount > 0
        await self.db.commit()
        return deleted

    # ── Action Log ──────────────────────────────────────────

    async def record_action(self, sink_id: int, record: ActionRecord) -> int:
        async with self.db.execute(
            """INSERT INTO actions_log
               (powersink_id, timestamp, desired_action, desired_reason,
                executed_action, executed_reason, success, success_reason)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                sink_id, _to_iso(record.timestamp),
                record.desired_action.value, record.desired_reason,
                record.executed_action.value, record.executed_reason,
                1 if record.success else 0, record.success_reason,
            ),
        ) as cursor:
            row_id = cursor.lastrowid
        await self.db.commit()
        return row_id  # type: ignore[return-value]

    async def recent_actions(self, sink_id: int, limit: int = 50) -> list[ActionRecord]:
        """Most recent records for a sink, newest first."""
        async with self.db.execute(
            """SELECT * FROM actions_log WHERE powersink_id = ?
               ORDER BY timestamp DESC, id DESC LIMIT ?""",
            (sink_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [_row_to_action(r) for r in rows]

    async def last_mutative_action(self, sink_id: int) -> ActionRecord | None:
        """Newest successful consume/produce record for a sink, however old."""
        async with self.db.execute(
            """SELECT * FROM actions_log
               WHERE powersink_id = ? AND success = 1 AND executed_action IN (?, ?)
               ORDER BY timestamp DESC, id DESC LIMIT 1""",
            (sink_id, Action.CONSUME.value, Action.PRODUCE.value),
        ) as cursor:
            row = await cursor.fetchone()
        return _row_to_action(row) if row else None

    # ── Telemetry ───────────────────────────────────────────

    async def store_telemetry(self, system: System, sample: Sample) -> int:
        async with self.db.execute(
            """INSERT INTO enphase_telemetry
               (user_id, system_id, start_at, end_at, inserted_at,
                produced_watts, consumed_watts)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (
                system.user_id, system.system_id,
                _to_iso(sample.start), _to_iso(sample.end), _now(),
                sample.produced_w, sample.consumed_w,
            ),
        ) as cursor:
            row_id = cursor.lastrowid
        await self.db.commit()
        return row_id  # type: ignore[return-value]

    async def get_telemetry(self, system_id: int, limit: int = 96) -> list[Sample]:
        async with self.db.execute(
            """SELECT start_at, end_at, produced_watts, consumed_watts
               FROM enphase_telemetry WHERE system_id = ?
               ORDER BY start_at DESC LIMIT ?""",
            (system_id, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            Sample(
                produced_w=r["produced_watts"],
                consumed_w=r["consumed_watts"],
                start=_from_iso(r["start_at"]),
                end=_from_iso(r["end_at"]),
            )
            for r in rows
        ]


def _row_to_action(r: aiosqlite.Row) -> ActionRecord:
    return ActionRecord(
        sink_id=r["powersink_id"],
        timestamp=_from_iso(r["timestamp"]),
        desired_action=Action(r["desired_action"]),
        desired_reason=r["desired_reason"],
        executed_action=Action(r["executed_action"]),
        executed_reason=r["executed_reason"],
        success=bool(r["success"]),
        success_reason=r["success_reason"],
    )
