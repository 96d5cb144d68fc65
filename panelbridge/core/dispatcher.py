"""Turns a one-way publish into a request/response call with a bounded wait."""

import asyncio
import logging
import time
import uuid
from typing import Any, Callable, Iterable

from .pending import PendingCallRegistry
from .ring_buffer import RingBuffer
from .types import CommandEnvelope, CommandHistoryEntry, CommandOutcome
from ..channels.open_cloud_channel import OpenCloudChannel, TransportError

logger = logging.getLogger(__name__)


class CommandDispatcher:
    """Publishes a command, then waits for its correlated answer or timeout."""

    def __init__(
        self,
        channel: OpenCloudChannel,
        registry: PendingCallRegistry,
        history: RingBuffer,
        secret: str,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.channel = channel
        self.registry = registry
        self.history = history
        self.secret = secret
        self._new_id = id_factory

    async def dispatch(self, command: str, args: Iterable[Any] = (), caller: str = "WebPanel") -> CommandOutcome:
        """Send ``command`` to the remote environment and wait for the outcome.

        Never raises for remote-side or transport problems; those come back as a
        failed CommandOutcome. Returns within the registry timeout, publish included.
        """
        request_id = self._new_id()
        envelope = CommandEnvelope(
            secret=self.secret,
            command=command,
            args=tuple(args),
            caller=caller,
            request_id=request_id,
        )

        deadline = self.registry.timeout
        started = time.monotonic()
        # Registered unarmed before publishing so an answer racing the publish response is kept;
        # the timeout only starts once the command is known to have gone out.
        future = self.registry.register(request_id, armed=False)
        try:
            await asyncio.wait_for(self.channel.publish(envelope), deadline)
        except TransportError as e:
            outcome = self._withdraw(request_id, future, f"publish error: {e.detail}")
        except asyncio.TimeoutError:
            outcome = self._withdraw(request_id, future, f"publish error: not confirmed within {deadline}s")
        except BaseException:
            self.registry.discard(request_id)
            raise
        else:
            self.registry.arm(request_id, deadline - (time.monotonic() - started))
            outcome = await future

        self.history.push(CommandHistoryEntry(
            command=command,
            args=envelope.args,
            caller=caller,
            outcome=outcome,
        ))
        logger.info(
            f"Command '{command}' by {caller} -> "
            f"{'ok' if outcome.success else 'failed'}: {outcome.result[:120]}"
        )
        return outcome

    def _withdraw(self, request_id: str, future, failure: str) -> CommandOutcome:
        # An answer may already have arrived while the publish was still in flight
        if future.done() and not future.cancelled():
            return future.result()
        self.registry.discard(request_id)
        return CommandOutcome.failure(failure)
