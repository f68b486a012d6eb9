"""Rendezvous channel carrying signals to the control loop.

procwatch runtime module
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque

__all__ = ["SignalChannel"]

logger = logging.getLogger(__name__)


class SignalChannel:
    """Unbuffered signal channel.

    ``send`` completes only once the receiver has taken the signal (returns
    True) or the channel was closed first (returns False). Signals are
    received in send order.
    """

    def __init__(self) -> None:
        self._pending: deque[tuple[int, asyncio.Future[bool]]] = deque()
        self._receiver: asyncio.Future[None] | None = None
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def send(self, sig: int) -> bool:
        if self._closed:
            return False

        delivered: asyncio.Future[bool] = asyncio.get_running_loop().create_future()
        entry = (sig, delivered)
        self._pending.append(entry)
        self._wake_receiver()

        try:
            return await delivered
        except asyncio.CancelledError:
            if entry in self._pending:
                self._pending.remove(entry)
            raise

    async def receive(self) -> int:
        """Wait for the next signal.

        Cancelling a pending receive never loses a signal.
        """
        while True:
            while self._pending:
                sig, delivered = self._pending.popleft()
                if delivered.done():
                    continue
                delivered.set_result(True)
                return sig

            self._receiver = asyncio.get_running_loop().create_future()
            try:
                await self._receiver
            finally:
                self._receiver = None

    def close(self) -> None:
        """Drop all waiting senders; later sends return False at once."""
        self._closed = True
        while self._pending:
            sig, delivered = self._pending.popleft()
            if not delivered.done():
                logger.debug(f"Dropped signal {sig}: receiver is gone")
                delivered.set_result(False)

    def _wake_receiver(self) -> None:
        if self._receiver is not None and not self._receiver.done():
            self._receiver.set_result(None)
