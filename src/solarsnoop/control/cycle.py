"""Periodic balancing cycle: meter each system once, act on every sink."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from solarsnoop.config.schema import AppConfig
from solarsnoop.control.cooldown import policy_for
from solarsnoop.control.decider import decide
from solarsnoop.db.repository import AuthSession, Repository
from solarsnoop.logging.context import bound_context
from solarsnoop.metering.base import MeteringFailure, MeteringProvider, MeteringSkipped, System
from solarsnoop.metering.source import Clock, MeteringSource, utc_now
from solarsnoop.sinks.base import (
    Action,
    ActionRecord,
    Channel,
    Decision,
    Result,
    Sink,
    SinkContext,
    SinkExecutor,
)

logger = logging.getLogger(__name__)


class SinkState(str, Enum):
    """Terminal state of one sink in one cycle."""

    RECORDED = "recorded"
    SKIPPED = "skipped"
    DROPPED = "dropped"


@dataclass
class SinkOutcome:
    sink_id: int
    channel: Channel
    state: SinkState
    reason: str = ""
    result: Result | None = None


@dataclass
class CycleReport:
    """Summary of one cycle across all users and systems."""

    started_at: datetime
    finished_at: datetime | None = None
    systems: int = 0
    recorded: int = 0
    skipped: int = 0
    dropped: int = 0
    failed: int = 0  # recorded results with success=False
    outcomes: list[SinkOutcome] = field(default_factory=list)

    def add(self, outcome: SinkOutcome) -> None:
        self.outcomes.append(outcome)
        if outcome.state == SinkState.RECORDED:
            self.recorded += 1
            if outcome.result is not None and not outcome.result.success:
                self.failed += 1
        elif outcome.state == SinkState.SKIPPED:
            self.skipped += 1
        else:
            self.dropped += 1


class CycleRunner:
    """Runs one balancing cycle.

    For each system of each signed-in user:
    1. Build a per-cycle MeteringSource (one upstream query at most)
    2. For each sink, concurrently:
       a. Load its action history
       b. Skip early if cooldown rules out any mutative action
       c. Fetch the shared sample
       d. Decide, then reconcile with the channel's cooldown
       e. Execute with a timeout
       f. Record the result
    """

    def __init__(
        self,
        repo: Repository,
        provider: MeteringProvider,
        executors: Mapping[Channel, SinkExecutor],
        config: AppConfig | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._repo = repo
        self._provider = provider
        self._executors = executors
        self._config = config or AppConfig()
        self._clock = clock

    async def run_cycle(self) -> CycleReport:
        report = CycleReport(started_at=self._clock())

        try:
            sessions = await self._repo.get_sessions()
        except Exception:
            logger.exception("Failed to query sessions; cycle aborted")
            report.finished_at = self._clock()
            return report

        # One pass per user; later sessions carry fresher tokens.
        by_user: dict[str, AuthSession] = {}
        for session in sessions:
            by_user[session.user_id] = session

        work: list[tuple[AuthSession, System]] = []
        for session in by_user.values():
            try:
                systems = await self._repo.get_systems(session.user_id)
            except Exception:
                logger.exception("Failed to query systems for user %s", session.user_id)
                continue
            work.extend((session, system) for system in systems)

        report.systems = len(work)
        results = await asyncio.gather(
            *(self._run_system(session, system) for session, system in work),
            return_exceptions=True,
        )
        for (_, system), outcome in zip(work, results):
            if isinstance(outcome, BaseException):
                logger.error(
                    "System %d of user %s failed: %s", system.system_id, system.user_id, outcome,
                    exc_info=outcome,
                )
                continue
            for sink_outcome in outcome:
                report.add(sink_outcome)

        report.finished_at = self._clock()
        logger.info(
            "Cycle complete: %d systems, %d recorded (%d failed), %d skipped, %d dropped",
            report.systems, report.recorded, report.failed, report.skipped, report.dropped,
        )
        return report

    async def _run_system(self, session: AuthSession, system: System) -> list[SinkOutcome]:
        with bound_context(user_id=system.user_id, system_id=system.system_id):
            sinks = await self._repo.get_powersinks(system.user_id, system.system_id)
            if not sinks:
                return []

            source = MeteringSource(
                self._provider,
                system,
                session.access_token,
                config=self._config.metering,
                clock=self._clock,
                on_sample=self._repo.store_telemetry,
            )
            results = await asyncio.gather(
                *(self._run_sink(sink, source) for sink in sinks),
                return_exceptions=True,
            )

        outcomes: list[SinkOutcome] = []
        for sink, outcome in zip(sinks, results):
            if isinstance(outcome, BaseException):
                logger.error("Sink %d failed unexpectedly: %s", sink.id, outcome, exc_info=outcome)
                outcomes.append(SinkOutcome(sink.id, sink.channel, SinkState.DROPPED, str(outcome)))
            else:
                outcomes.append(outcome)
        return outcomes

    async def _run_sink(self, sink: Sink, source: MeteringSource) -> SinkOutcome:
        with bound_context(sink_id=sink.id, channel=sink.channel.value):
            return await self._process_sink(sink, source)

    async def _process_sink(self, sink: Sink, source: MeteringSource) -> SinkOutcome:
        executor = self._executors.get(sink.channel)
        if executor is None:
            logger.warning("No executor for %s sink %d", sink.channel.value, sink.id)
            return SinkOutcome(sink.id, sink.channel, SinkState.DROPPED, "no executor")

        try:
            last = await self._repo.last_mutative_action(sink.id)
        except Exception as e:
            logger.exception("Failed to load history for sink %d", sink.id)
            return SinkOutcome(sink.id, sink.channel, SinkState.DROPPED, f"history unavailable: {e}")
        history = [last] if last is not None else []

        policy = policy_for(sink.channel, self._config.cooldowns)

        skip_reason = policy.precheck(history, self._clock())
        if skip_reason is not None:
            logger.info("Sink %d skipped: %s", sink.id, skip_reason)
            return SinkOutcome(sink.id, sink.channel, SinkState.SKIPPED, skip_reason)

        context = SinkContext()
        try:
            sample = await source.fetch()
        except MeteringSkipped as e:
            logger.info("Sink %d skipped: %s", sink.id, e)
            return SinkOutcome(sink.id, sink.channel, SinkState.SKIPPED, str(e))
        except MeteringFailure as e:
            logger.warning("Metering failed for sink %d: %s", sink.id, e)
            context.metering_error = str(e)
            decision = Decision(Action.INFO, str(e), Action.INFO)
        else:
            context.sample = sample
            desired, desired_reason = decide(sample.produced_w, sample.consumed_w)
            executed, executed_reason = policy.reconcile(desired, history, self._clock())
            decision = Decision(desired, desired_reason, executed, executed_reason)

        result = await self._execute(executor, sink, decision, context)

        record = ActionRecord.from_result(sink.id, result, timestamp=self._clock())
        try:
            await self._repo.record_action(sink.id, record)
        except Exception as e:
            logger.exception("Failed to record action for sink %d", sink.id)
            return SinkOutcome(sink.id, sink.channel, SinkState.DROPPED, f"record failed: {e}", result)

        logger.info(
            "Sink %d: desired=%s executed=%s success=%s %s",
            sink.id, result.desired.value, result.executed.value, result.success, result.success_reason,
        )
        return SinkOutcome(sink.id, sink.channel, SinkState.RECORDED, result=result)

    async def _execute(
        self, executor: SinkExecutor, sink: Sink, decision: Decision, context: SinkContext
    ) -> Result:
        timeout = self._config.cycle.sink_timeout_seconds
        try:
            return await asyncio.wait_for(executor.execute(sink, decision, context), timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Sink %d timed out after %.0fs", sink.id, timeout)
            return Result.from_decision(decision, success=False, success_reason=f"timed out after {timeout:g}s")
        except Exception as e:
            logger.exception("Executor for sink %d raised", sink.id)
            return Result.from_decision(decision, success=False, success_reason=f"executor error: {e}")


class CycleLoop:
    """Runs a cycle every `cycle.interval_seconds` until stopped."""

    def __init__(self, runner: CycleRunner, config: AppConfig) -> None:
        self._runner = runner
        self._config = config
        self._stop_event = asyncio.Event()
        self._cycle_count = 0
        self._last_report: CycleReport | None = None

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    @property
    def last_report(self) -> CycleReport | None:
        return self._last_report

    async def run(self) -> None:
        self._stop_event.clear()
        interval = self._config.cycle.interval_seconds
        logger.info("Cycle loop starting (interval: %ds)", interval)

        try:
            while not self._stop_event.is_set():
                try:
                    self._last_report = await self._runner.run_cycle()
                except Exception:
                    logger.exception("Cycle raised; continuing")
                self._cycle_count += 1
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                    break
                except asyncio.TimeoutError:
                    pass
        finally:
            logger.info("Cycle loop stopped after %d cycles", self._cycle_count)

    def stop(self) -> None:
        """Signal the loop to stop."""
        self._stop_event.set()
