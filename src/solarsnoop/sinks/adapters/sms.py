"""SMS power sink."""

from __future__ import annotations

from solarsnoop.sinks.adapters.email import MessageExecutor
from solarsnoop.sinks.base import Channel
from solarsnoop.sinks.messages import Message

# One concatenated SMS is at most ~10 segments on most carriers.
MAX_SMS_CHARS = 1600


class SmsExecutor(MessageExecutor):
    """Sends the nudge as a single text message without a subject line."""

    channel = Channel.SMS
    noun = "sms"

    async def _deliver(self, recipient: str, message: Message) -> None:
        text = message.as_text()[:MAX_SMS_CHARS]
        await self._sender.send_message(recipient, "", text)
