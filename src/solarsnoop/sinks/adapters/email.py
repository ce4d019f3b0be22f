"""Email power sink."""

from __future__ import annotations

import logging

from solarsnoop.sinks.base import Channel, Decision, MessageSender, Result, Sink, SinkContext
from solarsnoop.sinks.messages import Message, compose

logger = logging.getLogger(__name__)


class MessageExecutor:
    """Shared behaviour for channels that deliver a text message.

    Mutative actions become a nudge referencing the sampled watts. INFO
    becomes a diagnostic so a metering outage is still reported. NONE sends
    nothing.
    """

    channel: Channel
    noun = "message"

    def __init__(self, sender: MessageSender, hostname: str) -> None:
        self._sender = sender
        self._hostname = hostname

    @property
    def sender(self) -> MessageSender:
        return self._sender

    async def execute(self, sink: Sink, decision: Decision, context: SinkContext) -> Result:
        message = compose(decision.executed, context.sample, self._hostname)
        if message is None:
            return Result.from_decision(decision, success=True)

        recipient = sink.recipient or ""
        try:
            await self._deliver(recipient, message)
        except Exception as e:
            logger.warning("Failed to send %s to %r: %s", self.noun, recipient, e)
            return Result.from_decision(
                decision,
                success=False,
                success_reason=f"failed to send {self.noun} to {recipient!r}: {e}",
            )

        logger.info("Sent %s %s to %r", decision.executed.value, self.noun, recipient)
        return Result.from_decision(decision, success=True, success_reason=f"sent {self.noun} to {recipient!r}")

    async def _deliver(self, recipient: str, message: Message) -> None:
        await self._sender.send_message(recipient, message.subject, message.body)


class EmailExecutor(MessageExecutor):
    channel = Channel.EMAIL
    noun = "email"
