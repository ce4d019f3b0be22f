"""SolarSnoop entry point and lifecycle orchestrator.

Startup sequence:
  config → logging → SQLite → Enphase provider → sink executors →
  cycle runner → cycle loop
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any

import aiosqlite

from solarsnoop.config.manager import ConfigManager
from solarsnoop.config.schema import AppConfig
from solarsnoop.control.cycle import CycleLoop, CycleReport, CycleRunner
from solarsnoop.db.engine import close_db, init_db
from solarsnoop.db.repository import AuthSession, Repository
from solarsnoop.logging.structured import setup_logging
from solarsnoop.metering.base import System
from solarsnoop.metering.providers.enphase import EnphaseProvider
from solarsnoop.sinks.base import Channel, SinkExecutor
from solarsnoop.sinks.factory import build_executors

logger = logging.getLogger(__name__)


class Application:
    """Wires storage, metering and sinks together and owns their lifetimes."""

    def __init__(self, config: AppConfig) -> None:
        self.config = config
        self.repo: Repository | None = None
        self.runner: CycleRunner | None = None
        self._db = None
        self._provider: EnphaseProvider | None = None
        self._executors: dict[Channel, SinkExecutor] = {}
        self._closables: list[Any] = []
        self._loop: CycleLoop | None = None
        self._running = False

    async def start(self) -> None:
        """Open the database and build the cycle runner."""
        if self._running:
            return
        self._db = await init_db(self.config.db.path)
        self.repo = Repository(self._db)

        if not self.config.enphase.api_key:
            logger.warning("Enphase API key not configured; metering will fail")
        self._provider = EnphaseProvider(self.config.enphase)
        self._executors = build_executors(self.config)
        self._closables = [self._provider]
        for executor in self._executors.values():
            for attr in ("sender", "controller"):
                client = getattr(executor, attr, None)
                if client is not None and hasattr(client, "close"):
                    self._closables.append(client)

        self.runner = CycleRunner(self.repo, self._provider, self._executors, self.config)
        self._running = True
        logger.info("SolarSnoop started (db=%s)", self.config.db.path)

    async def run_forever(self) -> None:
        await self.start()
        assert self.runner is not None
        self._loop = CycleLoop(self.runner, self.config)
        await self._loop.run()

    async def tick(self) -> CycleReport:
        await self.start()
        assert self.runner is not None
        return await self.runner.run_cycle()

    def request_stop(self) -> None:
        if self._loop is not None:
            self._loop.stop()

    async def stop(self) -> None:
        """Close upstream clients and the database."""
        if not self._running:
            return
        self._running = False
        self.request_stop()

        for client in self._closables:
            try:
                await client.close()
            except Exception:
                logger.warning("Error closing %s", type(client).__name__, exc_info=True)
        self._closables = []

        if self._db is not None:
            await close_db(self._db)
            self._db = None
        logger.info("Shutdown complete")


# ── CLI ─────────────────────────────────────────────────────


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="solarsnoop", description="Nudge solar households toward self-consumption.")
    parser.add_argument("--config", default="config.yaml", help="user config overrides")
    parser.add_argument("--defaults", default="config.defaults.yaml", help="default config")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("run", help="run a cycle every cycle.interval_seconds until interrupted")
    sub.add_parser("tick", help="run exactly one cycle and print its report")

    system = sub.add_parser("add-system", help="register an Enphase system and its access token")
    system.add_argument("--user", required=True)
    system.add_argument("--system", type=int, required=True)
    system.add_argument("--name", default="")
    system.add_argument("--timezone", default="")
    system.add_argument("--access-token", default=None)
    system.add_argument("--refresh-token", default="")

    add = sub.add_parser("add-sink", help="create a power sink for a system")
    add.add_argument("--user", required=True)
    add.add_argument("--system", type=int, required=True)
    add.add_argument("--channel", required=True, choices=[c.value for c in Channel])
    add.add_argument("--recipient", default=None)

    remove = sub.add_parser("remove-sink", help="delete a power sink")
    remove.add_argument("--user", required=True)
    remove.add_argument("--sink", type=int, required=True)

    history = sub.add_parser("history", help="print a sink's recent actions, newest first")
    history.add_argument("--sink", type=int, required=True)
    history.add_argument("--limit", type=int, default=20)
    return parser


def report_to_dict(report: CycleReport) -> dict[str, Any]:
    return {
        "started_at": report.started_at.isoformat(),
        "finished_at": report.finished_at.isoformat() if report.finished_at else None,
        "systems": report.systems,
        "recorded": report.recorded,
        "skipped": report.skipped,
        "dropped": report.dropped,
        "failed": report.failed,
        "sinks": [
            {
                "sink_id": o.sink_id,
                "channel": o.channel.value,
                "state": o.state.value,
                "reason": o.reason,
                "executed": o.result.executed.value if o.result else None,
                "success": o.result.success if o.result else None,
            }
            for o in report.outcomes
        ],
    }


async def _manage(config: AppConfig, args: argparse.Namespace) -> int:
    db = await init_db(config.db.path)
    try:
        repo = Repository(db)
        if args.command == "add-system":
            await repo.upsert_system(System(args.user, args.system, name=args.name, timezone=args.timezone))
            if args.access_token:
                await repo.upsert_session(
                    AuthSession(f"cli:{args.user}", args.user, args.access_token, args.refresh_token)
                )
        elif args.command == "add-sink":
            try:
                sink_id = await repo.insert_powersink(args.user, args.system, args.channel, args.recipient)
            except ValueError as e:
                print(f"error: {e}", file=sys.stderr)
                return 2
            except aiosqlite.IntegrityError:
                print(f"error: unknown system {args.system} for user {args.user}", file=sys.stderr)
                return 2
            print(sink_id)
        elif args.command == "remove-sink":
            if not await repo.delete_powersink(args.user, args.sink):
                print(f"error: no sink {args.sink} for user {args.user}", file=sys.stderr)
                return 1
        elif args.command == "history":
            for record in await repo.recent_actions(args.sink, args.limit):
                print(
                    f"{record.timestamp.isoformat()}  desired={record.desired_action.value:<8} "
                    f"executed={record.executed_action.value:<8} success={record.success}  "
                    f"{record.executed_reason or record.desired_reason}"
                )
        return 0
    finally:
        await close_db(db)


async def _tick(config: AppConfig) -> int:
    app = Application(config)
    try:
        report = await app.tick()
    finally:
        await app.stop()
    print(json.dumps(report_to_dict(report), indent=2))
    return 0


def _run(app: Application) -> int:
    stop_requested = False
    signal_count = 0

    async def _main() -> None:
        try:
            await app.run_forever()
        finally:
            with contextlib.suppress(Exception):
                await app.stop()

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _request_stop() -> None:
        nonlocal stop_requested, signal_count
        signal_count += 1
        if signal_count >= 2:
            os._exit(130)
        if stop_requested or loop.is_closed():
            return
        stop_requested = True
        loop.call_soon_threadsafe(app.request_stop)

    if sys.platform != "win32":
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, _request_stop)
    else:
        signal.signal(signal.SIGINT, lambda *_: _request_stop())
        if hasattr(signal, "SIGTERM"):
            signal.signal(signal.SIGTERM, lambda *_: _request_stop())

    try:
        loop.run_until_complete(_main())
    except KeyboardInterrupt:
        _request_stop()
        with contextlib.suppress(Exception):
            loop.run_until_complete(app.stop())
    finally:
        pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            with contextlib.suppress(Exception):
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        loop.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the application."""
    args = build_parser().parse_args(argv)

    config_manager = ConfigManager(Path(args.defaults), Path(args.config))
    config = config_manager.load()

    setup_logging(
        level=config.logging.level,
        fmt=config.logging.format,
        log_file=config.logging.file,
    )

    if args.command == "run":
        return _run(Application(config))
    if args.command == "tick":
        return asyncio.run(_tick(config))
    return asyncio.run(_manage(config, args))


if __name__ == "__main__":
    sys.exit(main())
