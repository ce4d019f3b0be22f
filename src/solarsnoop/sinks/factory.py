"""Wire channel executors to their senders from configuration."""

from __future__ import annotations

import logging

from solarsnoop.config.schema import AppConfig
from solarsnoop.senders.ecobee import EcobeeClient
from solarsnoop.senders.sendgrid import SendGridSender
from solarsnoop.senders.twilio import TwilioSender
from solarsnoop.sinks.adapters.ecobee import EcobeeExecutor
from solarsnoop.sinks.adapters.email import EmailExecutor
from solarsnoop.sinks.adapters.logger import LoggerExecutor
from solarsnoop.sinks.adapters.sms import SmsExecutor
from solarsnoop.sinks.base import Channel, MessageSender, SinkExecutor, ThermostatController

logger = logging.getLogger(__name__)


def build_executors(
    config: AppConfig,
    email_sender: MessageSender | None = None,
    sms_sender: MessageSender | None = None,
    thermostat: ThermostatController | None = None,
) -> dict[Channel, SinkExecutor]:
    """Return one executor per channel kind.

    Senders not supplied are built from the provider sections of the config.
    """
    if email_sender is None:
        if not config.sendgrid.api_key:
            logger.warning("SendGrid API key not configured; email sinks will fail to send")
        email_sender = SendGridSender(config.sendgrid)
    if sms_sender is None:
        if not config.twilio.account_sid:
            logger.warning("Twilio account not configured; sms sinks will fail to send")
        sms_sender = TwilioSender(config.twilio)
    if thermostat is None:
        thermostat = EcobeeClient(config.ecobee)

    hostname = config.cycle.hostname
    return {
        Channel.LOGGER: LoggerExecutor(),
        Channel.EMAIL: EmailExecutor(email_sender, hostname),
        Channel.SMS: SmsExecutor(sms_sender, hostname),
        Channel.ECOBEE: EcobeeExecutor(thermostat, config.ecobee),
    }
