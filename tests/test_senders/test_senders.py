"""Tests for the SendGrid, Twilio and ecobee HTTP clients."""

from __future__ import annotations

import json
from urllib.parse import parse_qs

import httpx
import pytest

from solarsnoop.config.schema import EcobeeConfig, SendGridConfig, TwilioConfig
from solarsnoop.senders.ecobee import EcobeeClient
from solarsnoop.senders.sendgrid import SendGridSender
from solarsnoop.senders.twilio import TwilioSender
from solarsnoop.sinks.base import Action, ThermostatCommand


class Recorder:
    """MockTransport handler that records requests and returns a canned response."""

    def __init__(self, response: httpx.Response) -> None:
        self.response = response
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.response


def _client(base_url: str, handler: Recorder, **kwargs) -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=base_url, transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
class TestSendGridSender:
    async def test_posts_plain_text_mail(self) -> None:
        config = SendGridConfig(api_key="SG.key", from_address="alerts@example.com")
        handler = Recorder(httpx.Response(202))
        sender = SendGridSender(config, client=_client(config.base_url, handler))

        await sender.send_message("me@example.com", "Subject line", "Body text")

        (request,) = handler.requests
        assert request.method == "POST"
        assert request.url.path == "/v3/mail/send"
        payload = json.loads(request.content)
        assert payload["personalizations"] == [{"to": [{"email": "me@example.com"}]}]
        assert payload["from"]["email"] == "alerts@example.com"
        assert payload["subject"] == "Subject line"
        assert payload["content"] == [{"type": "text/plain", "value": "Body text"}]

    async def test_rejection_raises(self) -> None:
        config = SendGridConfig()
        handler = Recorder(httpx.Response(401, json={"errors": [{"message": "bad key"}]}))
        sender = SendGridSender(config, client=_client(config.base_url, handler))
        with pytest.raises(httpx.HTTPStatusError):
            await sender.send_message("me@example.com", "s", "b")

    async def test_default_client_carries_bearer(self) -> None:
        sender = SendGridSender(SendGridConfig(api_key="SG.key"))
        try:
            assert sender._client.headers["Authorization"] == "Bearer SG.key"
        finally:
            await sender.close()


@pytest.mark.asyncio
class TestTwilioSender:
    async def test_posts_form_encoded_message(self) -> None:
        config = TwilioConfig(account_sid="AC123", auth_token="secret", from_number="+15550000")
        handler = Recorder(httpx.Response(201, json={"sid": "SM1"}))
        sender = TwilioSender(config, client=_client(config.base_url, handler, auth=("AC123", "secret")))

        await sender.send_message("+15550100", "", "hello")

        (request,) = handler.requests
        assert request.url.path == "/2010-04-01/Accounts/AC123/Messages.json"
        form = parse_qs(request.content.decode())
        assert form == {"To": ["+15550100"], "From": ["+15550000"], "Body": ["hello"]}
        assert request.headers["Authorization"].startswith("Basic ")

    async def test_subject_is_prefixed(self) -> None:
        config = TwilioConfig(account_sid="AC123")
        handler = Recorder(httpx.Response(201, json={"sid": "SM1"}))
        sender = TwilioSender(config, client=_client(config.base_url, handler))
        await sender.send_message("+15550100", "Heads up", "body")
        form = parse_qs(handler.requests[0].content.decode())
        assert form["Body"] == ["Heads up body"]

    async def test_error_raises(self) -> None:
        config = TwilioConfig(account_sid="AC123")
        handler = Recorder(httpx.Response(400, json={"message": "invalid To"}))
        sender = TwilioSender(config, client=_client(config.base_url, handler))
        with pytest.raises(httpx.HTTPStatusError):
            await sender.send_message("nope", "", "body")


COMMAND = ThermostatCommand(action=Action.CONSUME, heat_hold_temp=72, cool_hold_temp=70, hold_hours=2)


@pytest.mark.asyncio
class TestEcobeeClient:
    async def test_set_hold_body(self) -> None:
        config = EcobeeConfig()
        handler = Recorder(httpx.Response(200, json={"status": {"code": 0, "message": ""}}))
        client = EcobeeClient(config, client=_client(config.base_url, handler))

        await client.set_thermostat_command("eco-token", COMMAND)

        (request,) = handler.requests
        assert request.url.path == "/1/thermostat"
        assert request.url.params["format"] == "json"
        assert request.headers["Authorization"] == "Bearer eco-token"
        body = json.loads(request.content)
        assert body["selection"] == {"selectionType": "registered", "selectionMatch": ""}
        (function,) = body["functions"]
        assert function["type"] == "setHold"
        assert function["params"] == {
            "holdType": "holdHours",
            "heatHoldTemp": 720,
            "coolHoldTemp": 700,
            "holdHours": 2,
        }

    async def test_api_status_error_raises(self) -> None:
        config = EcobeeConfig()
        handler = Recorder(httpx.Response(200, json={"status": {"code": 14, "message": "token expired"}}))
        client = EcobeeClient(config, client=_client(config.base_url, handler))
        with pytest.raises(RuntimeError, match="token expired"):
            await client.set_thermostat_command("eco-token", COMMAND)

    async def test_http_error_raises(self) -> None:
        config = EcobeeConfig()
        handler = Recorder(httpx.Response(500))
        client = EcobeeClient(config, client=_client(config.base_url, handler))
        with pytest.raises(httpx.HTTPStatusError):
            await client.set_thermostat_command("eco-token", COMMAND)
