"""Single ingress for everything the remote environment reports back.

One callback body can carry any mix of:
  - a command answer      (requestId / correlationId + success + result)
  - a log push            (type == "log_push" + logs[])
  - a presence snapshot   (players[])
Each part is handled on its own; none depends on another being present.
"""

import asyncio
import hmac
import logging
from typing import Any, Dict

from .fanout import Observer, ObserverHub
from .pending import PendingCallRegistry
from .presence import PresenceSnapshot
from .ring_buffer import RingBuffer
from .types import CommandOutcome, now_ms

logger = logging.getLogger(__name__)


class CallbackRouter:
    """Authenticates callbacks and routes them to the registry, buffers and observers."""

    def __init__(
        self,
        secret: str,
        registry: PendingCallRegistry,
        logs: RingBuffer,
        presence: PresenceSnapshot,
        hub: ObserverHub,
        snapshot_logs: int = 50,
    ):
        self._secret = secret
        self.registry = registry
        self.logs = logs
        self.presence = presence
        self.hub = hub
        self.snapshot_logs = snapshot_logs
        # Serializes ingestion and warm starts so observers see events in processing order.
        # Nothing under it awaits socket I/O; the hub only enqueues.
        self._ingest_lock = asyncio.Lock()

    # ── Authentication ─────────────────────────────────────────────────

    def authorize(self, payload: Any, source: str = "unknown") -> bool:
        """Constant-time check of the shared secret carried in the body."""
        secret = payload.get("secret") if isinstance(payload, dict) else None
        if not isinstance(secret, str) or not secret:
            logger.warning(f"Callback rejected: missing secret (from {source})")
            return False
        if not hmac.compare_digest(secret.encode(), self._secret.encode()):
            logger.warning(f"Callback rejected: invalid secret (from {source})")
            return False
        return True

    # ── Routing ────────────────────────────────────────────────────────

    async def on_callback(self, payload: Any, source: str = "unknown") -> bool:
        """Authorize then route. Returns False if the callback was rejected."""
        if not self.authorize(payload, source):
            return False
        await self.route(payload)
        return True

    async def route(self, payload: Dict[str, Any]) -> None:
        """Route an already-authorized payload. Never raises on malformed parts."""
        request_id = payload.get("requestId") or payload.get("correlationId")
        if request_id:
            outcome = CommandOutcome(
                success=payload.get("success") is True,
                result="" if payload.get("result") is None else str(payload.get("result")),
            )
            self.registry.resolve(str(request_id), outcome)

        async with self._ingest_lock:
            logs = payload.get("logs")
            if payload.get("type") == "log_push" and isinstance(logs, list):
                self._ingest_logs(logs)

            players = payload.get("players")
            if isinstance(players, list):
                self.presence.replace(players)
                self.hub.broadcast({"type": "players", "data": players})
                logger.debug(f"Presence updated: {len(players)} player(s)")

    def _ingest_logs(self, logs: list) -> None:
        accepted = 0
        for raw in logs:
            if not isinstance(raw, dict):
                logger.debug(f"Skipping non-object log entry: {raw!r}")
                continue
            entry = dict(raw)
            entry["receivedAt"] = now_ms()
            self.logs.push(entry)
            self.hub.broadcast({"type": "log", "data": entry})
            accepted += 1
        if accepted:
            logger.debug(f"Ingested {accepted} log entr{'y' if accepted == 1 else 'ies'}")

    # ── Observers ──────────────────────────────────────────────────────

    def snapshot(self) -> Dict[str, Any]:
        """Warm-start state: current presence plus newest logs, newest first."""
        return {
            "players": self.presence.current(),
            "logs": self.logs.recent(self.snapshot_logs),
        }

    async def attach(self, observer: Observer) -> None:
        """Queue the warm-start snapshot and join the fan-out, atomically w.r.t. ingestion."""
        async with self._ingest_lock:
            self.hub.subscribe(observer, self.snapshot())

    def detach(self, observer: Observer) -> None:
        self.hub.unsubscribe(observer)

