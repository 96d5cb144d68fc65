"""Roblox Open Cloud MessagingService channel (outbound only).

Commands are published to a topic the in-game plugin subscribes to. The
publish API is fire-and-forget: a 200 only means the message was accepted
for delivery. Answers come back separately through the callback webhook.

Open Cloud setup:
  - API key with the ``universe-messaging-service:publish`` scope
  - Universe id of the experience running the plugin
  - Topic name matching the plugin's subscription (default WebPanel_Command)
"""

import asyncio
import json
import logging
from typing import Any, Optional

import httpx

from ..core.types import CommandEnvelope

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


class TransportError(Exception):
    """Publishing failed before the remote environment could see the command."""

    def __init__(self, detail: str, status_code: Optional[int] = None):
        super().__init__(detail)
        self.detail = detail
        self.status_code = status_code

    @property
    def retryable(self) -> bool:
        return self.status_code is None or self.status_code in _RETRYABLE_STATUS


class OpenCloudChannel:
    """Publishes command envelopes through the Open Cloud messaging API."""

    def __init__(
        self,
        api_key: str,
        universe_id: str,
        topic: str = "WebPanel_Command",
        base_url: str = "https://apis.roblox.com/messaging-service/v1",
        timeout: float = 10.0,
        attempts: int = 1,
        backoff: float = 0.5,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the channel.

        Args:
            api_key: Open Cloud API key (sent as x-api-key)
            universe_id: Target universe
            topic: Messaging topic the plugin listens on
            base_url: Messaging service root
            timeout: Per-attempt bound in seconds
            attempts: Total publish attempts; 1 disables retries
            backoff: Initial delay between attempts, doubled each retry
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self.api_key = api_key
        self.universe_id = universe_id
        self.topic = topic
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.attempts = max(1, attempts)
        self.backoff = backoff
        self._transport = transport

        self.enabled = bool(api_key and universe_id)

        if self.enabled:
            logger.info(f"✅ Open Cloud channel initialized (universe={universe_id}, topic={topic})")
        else:
            logger.info("Open Cloud channel disabled (missing API key or universe id)")

    @property
    def url(self) -> str:
        return f"{self.base_url}/universes/{self.universe_id}/topics/{self.topic}"

    async def publish(self, envelope: CommandEnvelope) -> None:
        """Publish one envelope.

        Raises:
            TransportError: network failure, timeout, or non-2xx response
        """
        if not self.enabled:
            raise TransportError("Open Cloud channel not configured (API key / universe id missing)")

        body = {"message": json.dumps(envelope.to_wire())}
        last_error: Optional[TransportError] = None

        for attempt in range(1, self.attempts + 1):
            try:
                await self._post(body)
                logger.info(f"📤 Published '{envelope.command}' ({envelope.request_id}) to {self.topic}")
                return
            except TransportError as e:
                last_error = e
                if attempt >= self.attempts or not e.retryable:
                    break
                delay = self.backoff * (2 ** (attempt - 1))
                logger.warning(f"Publish attempt {attempt}/{self.attempts} failed ({e.detail}); retrying in {delay:.1f}s")
                await asyncio.sleep(delay)

        logger.error(f"[Open Cloud] publish of '{envelope.command}' failed: {last_error.detail}")
        raise last_error

    async def _post(self, body: dict) -> None:
        headers = {
            "x-api-key": self.api_key,
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=body, headers=headers)
        except httpx.TimeoutException:
            raise TransportError(f"timed out after {self.timeout}s")
        except httpx.HTTPError as e:
            raise TransportError(str(e) or e.__class__.__name__)

        if not resp.is_success:
            raise TransportError(_error_detail(resp), status_code=resp.status_code)


def _error_detail(resp: httpx.Response) -> str:
    """Best upstream explanation for a failed publish."""
    try:
        data: Any = resp.json()
    except ValueError:
        data = None
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    text = resp.text.strip()
    return text[:300] if text else f"HTTP {resp.status_code}"
