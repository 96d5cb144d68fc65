"""Live push of log and presence events to connected panel sessions.

Every observer gets its own bounded outbox and a sender task that writes to
the socket. Subscribing and broadcasting only enqueue, so a peer that stops
reading can never hold up ingestion or the other observers. An observer
whose outbox overflows, or whose send fails or stalls, is dropped.
"""

import asyncio
import json
import logging
import threading
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

logger = logging.getLogger(__name__)


class Observer(Protocol):
    """Anything with an async ``send_text``; FastAPI's WebSocket qualifies."""

    async def send_text(self, data: str) -> None: ...


@dataclass
class _Subscription:
    observer: Observer
    outbox: asyncio.Queue
    sender: Optional[asyncio.Task] = None


class ObserverHub:
    """Set of connected observers, each fed through its own outbox."""

    def __init__(self, outbox_size: int = 256, send_timeout: float = 10.0):
        """Initialize the hub.

        Args:
            outbox_size: Events buffered per observer before it is dropped
            send_timeout: Seconds a single socket write may take
        """
        self.outbox_size = outbox_size
        self.send_timeout = send_timeout
        self._subs: Dict[Observer, _Subscription] = {}
        self._lock = threading.Lock()

    def subscribe(self, observer: Observer, snapshot: Dict[str, Any]) -> None:
        """Queue the warm-start ``init`` event and join the broadcast set.

        Must be called from inside the event loop; the init is always the
        first message the observer receives.
        """
        sub = _Subscription(observer=observer, outbox=asyncio.Queue(maxsize=self.outbox_size))
        sub.outbox.put_nowait(json.dumps({"type": "init", "data": snapshot}, default=str))

        with self._lock:
            previous = self._subs.pop(observer, None)
            self._subs[observer] = sub
            count = len(self._subs)
        if previous is not None:
            self._stop(previous)

        sub.sender = asyncio.create_task(self._pump(sub))
        logger.info(f"Observer connected ({count} live)")

    def unsubscribe(self, observer: Observer) -> None:
        sub = self._remove(observer)
        if sub is not None:
            self._stop(sub)

    def broadcast(self, event: Dict[str, Any]) -> int:
        """Serialize once and queue for every observer. Returns how many accepted it."""
        message = json.dumps(event, default=str)
        with self._lock:
            members: List[_Subscription] = list(self._subs.values())

        queued = 0
        for sub in members:
            try:
                sub.outbox.put_nowait(message)
                queued += 1
            except asyncio.QueueFull:
                logger.warning(f"Observer outbox full ({self.outbox_size} events); dropping it")
                self.unsubscribe(sub.observer)
        return queued

    async def flush(self) -> None:
        """Wait until everything queued so far has been written or discarded."""
        with self._lock:
            members = list(self._subs.values())
        await asyncio.gather(*(sub.outbox.join() for sub in members))

    async def aclose(self) -> None:
        """Stop every sender task and forget all observers."""
        with self._lock:
            members = list(self._subs.values())
            self._subs.clear()
        for sub in members:
            self._stop(sub)
        senders = [sub.sender for sub in members if sub.sender is not None]
        await asyncio.gather(*senders, return_exceptions=True)

    async def _pump(self, sub: _Subscription) -> None:
        while True:
            message = await sub.outbox.get()
            try:
                await asyncio.wait_for(sub.observer.send_text(message), self.send_timeout)
            except asyncio.CancelledError:
                sub.outbox.task_done()
                raise
            except asyncio.TimeoutError:
                sub.outbox.task_done()
                logger.warning(f"Observer send stalled for {self.send_timeout}s; dropping it")
                break
            except Exception as e:
                sub.outbox.task_done()
                logger.debug(f"Send to observer failed, removing it: {e}")
                break
            sub.outbox.task_done()

        if self._remove(sub.observer, sub) is not None:
            _discard_outbox(sub.outbox)

    def _remove(self, observer: Observer, expected: Optional[_Subscription] = None) -> Optional[_Subscription]:
        with self._lock:
            sub = self._subs.get(observer)
            if sub is None or (expected is not None and sub is not expected):
                return None
            del self._subs[observer]
            count = len(self._subs)
        logger.info(f"Observer disconnected ({count} live)")
        return sub

    @staticmethod
    def _stop(sub: _Subscription) -> None:
        if sub.sender is not None and not sub.sender.done():
            sub.sender.cancel()
        _discard_outbox(sub.outbox)

    def __len__(self) -> int:
        with self._lock:
            return len(self._subs)


def _discard_outbox(outbox: asyncio.Queue) -> None:
    while True:
        try:
            outbox.get_nowait()
        except asyncio.QueueEmpty:
            return
        outbox.task_done()
