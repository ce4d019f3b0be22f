"""Twilio programmable messaging sender."""

from __future__ import annotations

import logging

import httpx

from solarsnoop.config.schema import TwilioConfig

logger = logging.getLogger(__name__)


class TwilioSender:
    """Sends SMS through the Twilio REST API (form-encoded, basic auth)."""

    def __init__(self, config: TwilioConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            auth=(config.account_sid, config.auth_token),
            timeout=config.timeout_seconds,
        )
        self._owns_client = client is None

    async def send_message(self, recipient: str, subject: str, body: str) -> None:
        text = f"{subject} {body}" if subject else body
        resp = await self._client.post(
            f"/2010-04-01/Accounts/{self._config.account_sid}/Messages.json",
            data={"To": recipient, "From": self._config.from_number, "Body": text},
        )
        resp.raise_for_status()
        logger.debug("Twilio queued message %s to %r", resp.json().get("sid", "?"), recipient)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
