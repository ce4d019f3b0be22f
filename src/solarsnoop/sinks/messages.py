"""Human-readable notification text shared by the email and SMS channels."""

from __future__ import annotations

from dataclasses import dataclass

from solarsnoop.metering.base import Sample
from solarsnoop.sinks.base import Action

METERING_ERROR_SUBJECT = "Error communicating with Enlighten"
METERING_ERROR_BODY = (
    "Attention: We are currently unable to communicate with Enphase's \"Enlighten\""
    " API for production & consumption data from your system."
)


@dataclass(frozen=True)
class Message:
    subject: str
    body: str

    def as_text(self) -> str:
        """Single-line form for channels without a subject line."""
        return f"{self.subject} {self.body}"


def compose(action: Action, sample: Sample | None, hostname: str) -> Message | None:
    """Build the message for an executed action, or None if nothing to send."""
    if action == Action.INFO:
        return Message(METERING_ERROR_SUBJECT, METERING_ERROR_BODY)
    if sample is None:
        return None

    produced, consumed = sample.produced_w, sample.consumed_w
    if action == Action.CONSUME:
        return Message(
            "Your solar panels are overproducing - time to increase usage.",
            f"Over the past 15 minutes your solar panels produced {produced} Watts of electricity,"
            f" but your home only consumed {consumed} Watts.  Consider increasing usage!"
            f"  Visit https://{hostname}/tips/produce for tips.",
        )
    if action == Action.PRODUCE:
        return Message(
            "Your solar panels are underproducing - time to reduce usage.",
            f"Over the past 15 minutes your solar panels produced {produced} Watts of electricity,"
            f" but your home consumed {consumed} Watts.  Consider reducing usage!"
            f"  Visit https://{hostname}/tips/reduce for tips.",
        )
    return None
