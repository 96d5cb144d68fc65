"""Long-lived service context shared by every request handler."""

import logging
from typing import Optional

import httpx

from .accounts import AccountStore, SessionStore
from .commands import PanelCommands
from .dispatcher import CommandDispatcher
from .fanout import ObserverHub
from .pending import PendingCallRegistry
from .presence import PresenceSnapshot
from .ring_buffer import RingBuffer
from .router import CallbackRouter
from .types import BridgeConfig
from ..channels.open_cloud_channel import OpenCloudChannel

logger = logging.getLogger(__name__)


class BridgeContext:
    """Owns all bridge state; built once at startup and passed to the server."""

    def __init__(self, config: BridgeConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config

        self.registry = PendingCallRegistry(
            timeout=config.command_timeout,
            log_late_answers=config.log_late_answers,
        )
        self.logs = RingBuffer(config.log_capacity)
        self.history = RingBuffer(config.history_capacity)
        self.presence = PresenceSnapshot()
        self.hub = ObserverHub()

        self.channel = OpenCloudChannel(
            api_key=config.roblox_api_key,
            universe_id=config.universe_id,
            topic=config.messaging_topic,
            base_url=config.messaging_base_url,
            timeout=config.publish_timeout,
            attempts=config.publish_attempts,
            backoff=config.publish_backoff,
            transport=transport,
        )
        self.dispatcher = CommandDispatcher(
            channel=self.channel,
            registry=self.registry,
            history=self.history,
            secret=config.panel_secret,
        )
        self.commands = PanelCommands(self.dispatcher)
        self.router = CallbackRouter(
            secret=config.panel_secret,
            registry=self.registry,
            logs=self.logs,
            presence=self.presence,
            hub=self.hub,
            snapshot_logs=config.snapshot_logs,
        )

        self.accounts = AccountStore()
        self.sessions = SessionStore(config.session_ttl_hours)

    def bootstrap_owner(self) -> Optional[str]:
        """Create the owner account on first start and log its password once."""
        password = self.accounts.ensure_owner(self.config.owner_name)
        if password:
            logger.warning("=" * 50)
            logger.warning("OWNER ACCOUNT CREATED")
            logger.warning(f"  Name     : {self.config.owner_name}")
            logger.warning(f"  Password : {password}")
            logger.warning("  Write this password down now; it is not shown again.")
            logger.warning("=" * 50)
        return password

    async def aclose(self) -> None:
        """Resolve anything still waiting so no caller hangs past shutdown, then stop observer senders."""
        self.registry.drain("shutdown")
        await self.hub.aclose()
