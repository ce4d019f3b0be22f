"""Tests for power-sink executors and notification text."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from unittest.mock import AsyncMock

import httpx
import pytest

from solarsnoop.config.schema import AppConfig, EcobeeConfig
from solarsnoop.metering.base import Sample
from solarsnoop.senders.sendgrid import SendGridSender
from solarsnoop.sinks.adapters.ecobee import EcobeeExecutor, access_token_from_recipient
from solarsnoop.sinks.adapters.email import EmailExecutor
from solarsnoop.sinks.adapters.logger import LoggerExecutor
from solarsnoop.sinks.adapters.sms import MAX_SMS_CHARS, SmsExecutor
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
from solarsnoop.sinks.factory import build_executors
from solarsnoop.sinks.messages import METERING_ERROR_SUBJECT, compose

T0 = datetime(2026, 6, 1, 19, 30, tzinfo=timezone.utc)
T1 = datetime(2026, 6, 1, 19, 45, tzinfo=timezone.utc)
SAMPLE = Sample(3000, 1500, T0, T1)


def _make_sink(channel: Channel, recipient: str | None = None) -> Sink:
    return Sink(id=7, user_id="u1", system_id=42, channel=channel, recipient=recipient)


def _decision(executed: Action, desired: Action | None = None) -> Decision:
    return Decision(desired or executed, "reason", executed, "")


class TestEnums:
    def test_mutative(self) -> None:
        assert Action.CONSUME.is_mutative
        assert Action.PRODUCE.is_mutative
        assert not Action.NONE.is_mutative
        assert not Action.INFO.is_mutative

    def test_channel_capabilities(self) -> None:
        assert not Channel.LOGGER.requires_recipient
        assert not Channel.LOGGER.has_cooldown
        assert not Channel.ECOBEE.supports_info
        assert all(c.requires_recipient for c in (Channel.SMS, Channel.EMAIL, Channel.ECOBEE))

    def test_record_from_result(self) -> None:
        result = Result.from_decision(_decision(Action.NONE, Action.CONSUME), success=True)
        record = ActionRecord.from_result(7, result, timestamp=T1)
        assert record.desired_action == Action.CONSUME
        assert record.executed_action == Action.NONE
        assert record.timestamp == T1


class TestCompose:
    def test_consume_message(self) -> None:
        message = compose(Action.CONSUME, SAMPLE, "solarsnoop.test")
        assert message is not None
        assert "overproducing" in message.subject
        assert "produced 3000 Watts" in message.body
        assert "https://solarsnoop.test/tips/produce" in message.body

    def test_produce_message(self) -> None:
        message = compose(Action.PRODUCE, Sample(500, 2500, T0, T1), "solarsnoop.test")
        assert message is not None
        assert "underproducing" in message.subject
        assert "consumed 2500 Watts" in message.body
        assert "/tips/reduce" in message.body

    def test_info_without_sample(self) -> None:
        message = compose(Action.INFO, None, "x")
        assert message is not None
        assert message.subject == METERING_ERROR_SUBJECT

    def test_none_sends_nothing(self) -> None:
        assert compose(Action.NONE, SAMPLE, "x") is None


@pytest.mark.asyncio
class TestEmailExecutor:
    async def test_sends_consume(self) -> None:
        sender = AsyncMock()
        executor = EmailExecutor(sender, "solarsnoop.test")
        result = await executor.execute(
            _make_sink(Channel.EMAIL, "me@example.com"), _decision(Action.CONSUME), SinkContext(sample=SAMPLE)
        )
        assert result.success is True
        assert result.success_reason == "sent email to 'me@example.com'"
        recipient, subject, body = sender.send_message.await_args.args
        assert recipient == "me@example.com"
        assert "overproducing" in subject

    async def test_none_is_a_successful_no_op(self) -> None:
        sender = AsyncMock()
        result = await EmailExecutor(sender, "x").execute(
            _make_sink(Channel.EMAIL, "me@example.com"), _decision(Action.NONE, Action.CONSUME),
            SinkContext(sample=SAMPLE),
        )
        assert result.success is True
        assert result.desired == Action.CONSUME
        sender.send_message.assert_not_awaited()

    async def test_send_failure_is_reported_not_raised(self) -> None:
        sender = AsyncMock()
        sender.send_message.side_effect = httpx.ConnectError("connection refused")
        result = await EmailExecutor(sender, "x").execute(
            _make_sink(Channel.EMAIL, "me@example.com"), _decision(Action.PRODUCE), SinkContext(sample=SAMPLE)
        )
        assert result.success is False
        assert result.success_reason.startswith("failed to send email to 'me@example.com'")

    async def test_info_reports_metering_error(self) -> None:
        sender = AsyncMock()
        result = await EmailExecutor(sender, "x").execute(
            _make_sink(Channel.EMAIL, "me@example.com"), _decision(Action.INFO),
            SinkContext(metering_error="failed to query production"),
        )
        assert result.success is True
        assert sender.send_message.await_args.args[1] == METERING_ERROR_SUBJECT


@pytest.mark.asyncio
class TestSmsExecutor:
    async def test_single_text_without_subject(self) -> None:
        sender = AsyncMock()
        result = await SmsExecutor(sender, "solarsnoop.test").execute(
            _make_sink(Channel.SMS, "+15550100"), _decision(Action.CONSUME), SinkContext(sample=SAMPLE)
        )
        assert result.success is True
        recipient, subject, text = sender.send_message.await_args.args
        assert recipient == "+15550100"
        assert subject == ""
        assert text.startswith("Your solar panels are overproducing")
        assert len(text) <= MAX_SMS_CHARS


@pytest.mark.asyncio
class TestLoggerExecutor:
    async def test_logs_and_succeeds(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.INFO, logger="solarsnoop.sinks.adapters.logger")
        result = await LoggerExecutor().execute(
            _make_sink(Channel.LOGGER), _decision(Action.CONSUME), SinkContext(sample=SAMPLE)
        )
        assert result.success is True
        assert "desired=consume" in caplog.text

    async def test_succeeds_without_sample(self) -> None:
        result = await LoggerExecutor().execute(_make_sink(Channel.LOGGER), _decision(Action.INFO), SinkContext())
        assert result.success is True


class TestEcobeeToken:
    def test_oauth_json(self) -> None:
        assert access_token_from_recipient(json.dumps({"access_token": "abc", "refresh_token": "r"})) == "abc"

    def test_bare_token(self) -> None:
        assert access_token_from_recipient("abc") == "abc"

    def test_empty(self) -> None:
        assert access_token_from_recipient(None) == ""


@pytest.mark.asyncio
class TestEcobeeExecutor:
    async def test_consume_sets_comfort_hold(self) -> None:
        controller = AsyncMock()
        result = await EcobeeExecutor(controller).execute(
            _make_sink(Channel.ECOBEE, json.dumps({"access_token": "eco"})),
            _decision(Action.CONSUME),
            SinkContext(sample=SAMPLE),
        )
        assert result.success is True
        token, command = controller.set_thermostat_command.await_args.args
        assert token == "eco"
        assert (command.heat_hold_temp, command.cool_hold_temp, command.hold_hours) == (72, 70, 2)
        assert result.success_reason == "set 2h hold (72F/70F)"

    async def test_produce_sets_eco_hold(self) -> None:
        executor = EcobeeExecutor(AsyncMock(), EcobeeConfig(hold_hours=3))
        command = executor.command_for(Action.PRODUCE)
        assert command is not None
        assert (command.heat_hold_temp, command.cool_hold_temp, command.hold_hours) == (64, 78, 3)

    @pytest.mark.parametrize("action", [Action.NONE, Action.INFO])
    async def test_non_mutative_is_a_no_op(self, action: Action) -> None:
        controller = AsyncMock()
        result = await EcobeeExecutor(controller).execute(
            _make_sink(Channel.ECOBEE, "tok"), _decision(action), SinkContext()
        )
        assert result.success is True
        controller.set_thermostat_command.assert_not_awaited()

    async def test_info_is_dropped_with_reason(self) -> None:
        controller = AsyncMock()
        result = await EcobeeExecutor(controller).execute(
            _make_sink(Channel.ECOBEE, "tok"), _decision(Action.INFO), SinkContext(metering_error="upstream down")
        )
        assert result.success is True
        assert result.executed == Action.INFO
        assert result.success_reason == "thermostat cannot display info messages"
        controller.set_thermostat_command.assert_not_awaited()

    async def test_none_has_no_reason(self) -> None:
        result = await EcobeeExecutor(AsyncMock()).execute(
            _make_sink(Channel.ECOBEE, "tok"), _decision(Action.NONE), SinkContext()
        )
        assert result.success_reason == ""

    async def test_failure_is_reported(self) -> None:
        controller = AsyncMock()
        controller.set_thermostat_command.side_effect = RuntimeError("ecobee setHold rejected: auth")
        result = await EcobeeExecutor(controller).execute(
            _make_sink(Channel.ECOBEE, "tok"), _decision(Action.PRODUCE), SinkContext(sample=SAMPLE)
        )
        assert result.success is False
        assert result.success_reason == "failed to send ecobee command: ecobee setHold rejected: auth"


@pytest.mark.asyncio
class TestFactory:
    async def test_one_executor_per_channel(self) -> None:
        executors = build_executors(AppConfig(), email_sender=AsyncMock(), sms_sender=AsyncMock(), thermostat=AsyncMock())
        assert set(executors) == set(Channel)
        for channel, executor in executors.items():
            assert executor.channel == channel
            assert isinstance(executor, SinkExecutor)

    async def test_default_senders_warn_when_unconfigured(self, caplog: pytest.LogCaptureFixture) -> None:
        caplog.set_level(logging.WARNING, logger="solarsnoop.sinks.factory")
        executors = build_executors(AppConfig())
        assert "SendGrid API key not configured" in caplog.text
        assert "Twilio account not configured" in caplog.text
        sender = executors[Channel.EMAIL].sender  # type: ignore[attr-defined]
        assert isinstance(sender, SendGridSender)
        for executor in executors.values():
            client = getattr(executor, "sender", None) or getattr(executor, "controller", None)
            if client is not None:
                await client.close()
