"""Registry of dispatched commands still waiting for their answer.

Every entry owns a one-shot future. The first of {callback answer, timeout,
drain} to reach the entry pops it from the registry and settles the future;
anything arriving afterwards finds nothing and is dropped.
"""

import asyncio
import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Dict, List, Optional

from .types import CommandOutcome, TIMEOUT_OUTCOME

logger = logging.getLogger(__name__)


@dataclass
class PendingCall:
    """A command awaiting exactly one resolution."""
    request_id: str
    created_at: float
    future: asyncio.Future
    loop: asyncio.AbstractEventLoop
    timer: Optional[asyncio.TimerHandle] = None

    @property
    def age(self) -> float:
        return time.monotonic() - self.created_at


def _settle(future: asyncio.Future, outcome: CommandOutcome) -> None:
    # The waiter may have been cancelled (client went away); that is not an error.
    if not future.done():
        future.set_result(outcome)


class PendingCallRegistry:
    """Maps request ids to pending calls, with a per-call timeout."""

    EXPIRED_MEMORY = 256  # timed-out ids remembered for late-answer auditing

    def __init__(self, timeout: float = 10.0, log_late_answers: bool = True):
        """Initialize the registry.

        Args:
            timeout: Seconds before an unanswered call resolves as ``timeout``
            log_late_answers: Log answers that arrive after their call timed out
        """
        self.timeout = timeout
        self.log_late_answers = log_late_answers
        self._calls: Dict[str, PendingCall] = {}
        self._expired: "OrderedDict[str, float]" = OrderedDict()
        self._lock = threading.Lock()

    # ── Registration ───────────────────────────────────────────────────

    def register(self, request_id: str, armed: bool = True) -> asyncio.Future:
        """Insert a pending call and, unless ``armed`` is False, start its timeout.

        Must be called from inside the event loop that will await the future.
        An unarmed call can be answered but never times out until ``arm()``.

        Returns:
            Future that receives the CommandOutcome
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        call = PendingCall(
            request_id=request_id,
            created_at=time.monotonic(),
            future=future,
            loop=loop,
        )
        with self._lock:
            if request_id in self._calls:
                raise ValueError(f"request id already pending: {request_id}")
            self._calls[request_id] = call
            if armed:
                call.timer = loop.call_later(self.timeout, self._expire, request_id)

        logger.debug(f"Registered pending call {request_id} (timeout {self.timeout}s)")
        return future

    def arm(self, request_id: str, delay: Optional[float] = None) -> bool:
        """Start the timeout of an unarmed call, after ``delay`` seconds (default: the registry timeout).

        Returns:
            False if the call is gone (already answered or withdrawn) or already armed
        """
        with self._lock:
            call = self._calls.get(request_id)
            if call is None or call.timer is not None:
                return False
            delay = self.timeout if delay is None else max(0.0, delay)
            call.timer = call.loop.call_later(delay, self._expire, request_id)
        return True

    def discard(self, request_id: str) -> bool:
        """Withdraw a call without resolving it (its command never went out)."""
        with self._lock:
            call = self._calls.pop(request_id, None)
        if call is None:
            return False
        if call.timer is not None:
            call.timer.cancel()
        call.future.cancel()
        logger.debug(f"Discarded pending call {request_id}")
        return True

    # ── Resolution ─────────────────────────────────────────────────────

    def resolve(self, request_id: str, outcome: CommandOutcome) -> bool:
        """Deliver an answer to the matching call.

        Returns:
            True if a pending call was found and resolved, False otherwise.
            Unknown, forged or already-resolved ids are a silent no-op.
        """
        with self._lock:
            call = self._calls.pop(request_id, None)
            late = call is None and request_id in self._expired

        if call is None:
            if late and self.log_late_answers:
                logger.warning(
                    f"Late answer for {request_id} discarded "
                    f"(success={outcome.success}, result={outcome.result[:120]!r})"
                )
            else:
                logger.debug(f"No pending call for {request_id}; answer ignored")
            return False

        if call.timer is not None:
            call.timer.cancel()
        self._settle_on_loop(call, outcome)
        logger.debug(f"Resolved {request_id} after {call.age:.2f}s (success={outcome.success})")
        return True

    def _expire(self, request_id: str) -> None:
        with self._lock:
            call = self._calls.pop(request_id, None)
            if call is None:
                return
            self._expired[request_id] = time.monotonic()
            while len(self._expired) > self.EXPIRED_MEMORY:
                self._expired.popitem(last=False)

        logger.warning(f"Command {request_id} timed out after {self.timeout}s")
        _settle(call.future, TIMEOUT_OUTCOME)

    def _settle_on_loop(self, call: PendingCall, outcome: CommandOutcome) -> None:
        try:
            running = asyncio.get_running_loop()
        except RuntimeError:
            running = None
        if running is call.loop:
            _settle(call.future, outcome)
        else:
            call.loop.call_soon_threadsafe(_settle, call.future, outcome)

    # ── Lifecycle ──────────────────────────────────────────────────────

    def drain(self, reason: str = "shutdown") -> int:
        """Resolve every outstanding call as failed. Returns how many were drained."""
        with self._lock:
            calls: List[PendingCall] = list(self._calls.values())
            self._calls.clear()

        outcome = CommandOutcome.failure(reason)
        for call in calls:
            if call.timer is not None:
                call.timer.cancel()
            self._settle_on_loop(call, outcome)

        if calls:
            logger.info(f"Drained {len(calls)} pending call(s): {reason}")
        return len(calls)

    def __len__(self) -> int:
        with self._lock:
            return len(self._calls)

    def __contains__(self, request_id: str) -> bool:
        with self._lock:
            return request_id in self._calls
