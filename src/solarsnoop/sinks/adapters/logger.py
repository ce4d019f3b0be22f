"""Logger power sink: exercises the decision pipeline without side effects."""

from __future__ import annotations

import logging

from solarsnoop.sinks.base import Channel, Decision, Result, Sink, SinkContext

logger = logging.getLogger(__name__)


class LoggerExecutor:
    channel = Channel.LOGGER

    async def execute(self, sink: Sink, decision: Decision, context: SinkContext) -> Result:
        sample = context.sample
        logger.info(
            "Sink %d: desired=%s (%s) executed=%s produced=%s consumed=%s",
            sink.id,
            decision.desired.value,
            decision.desired_reason,
            decision.executed.value,
            sample.produced_w if sample else "n/a",
            sample.consumed_w if sample else "n/a",
        )
        return Result.from_decision(decision, success=True)
