"""SendGrid v3 mail sender.

API docs: https://docs.sendgrid.com/api-reference/mail-send/mail-send
"""

from __future__ import annotations

import logging

import httpx

from solarsnoop.config.schema import SendGridConfig

logger = logging.getLogger(__name__)


class SendGridSender:
    """Sends plain-text email through the SendGrid HTTP API."""

    def __init__(self, config: SendGridConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            headers={"Authorization": f"Bearer {config.api_key}"},
            timeout=config.timeout_seconds,
        )
        self._owns_client = client is None

    async def send_message(self, recipient: str, subject: str, body: str) -> None:
        payload = {
            "personalizations": [{"to": [{"email": recipient}]}],
            "from": {"email": self._config.from_address, "name": self._config.from_name},
            "subject": subject,
            "content": [{"type": "text/plain", "value": body}],
        }
        resp = await self._client.post("/v3/mail/send", json=payload)
        resp.raise_for_status()
        logger.debug("SendGrid accepted message to %r (status %d)", recipient, resp.status_code)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
