"""Readiness detection and start deadline.

procwatch runtime module

Both are one-shot sources consumed by the supervisor's control loop:
- Detection fires once when a marker shows up in an OutputBuffer
- Deadline fires once after a timeout, and only when armed
"""

from __future__ import annotations

import asyncio
import logging

from .output import OutputBuffer

__all__ = [
    "Deadline",
    "Detection",
    "watch",
]

logger = logging.getLogger(__name__)


class Detection:
    """One-shot "marker seen" notification.

    ``cancel()`` before a match suppresses the notification for good;
    after a match it does nothing.
    """

    def __init__(self, marker: str) -> None:
        self.marker = marker
        self._event = asyncio.Event()
        self._buffer: OutputBuffer | None = None
        self._watch_id: int | None = None
        self._cancelled = False

    @property
    def fired(self) -> bool:
        return self._event.is_set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    async def wait(self) -> None:
        await self._event.wait()

    def cancel(self) -> None:
        if self.fired or self._cancelled:
            return
        self._cancelled = True
        if self._buffer is not None and self._watch_id is not None:
            self._buffer.cancel_detect(self._watch_id)
        self._watch_id = None

    def _fire(self) -> None:
        if not self._cancelled:
            self._event.set()


def watch(buffer: OutputBuffer, marker: str) -> Detection:
    """Watch ``buffer`` for ``marker``.

    An empty marker yields a detection that has already fired.
    """
    detection = Detection(marker)
    if not marker:
        detection._fire()
        return detection

    detection._buffer = buffer
    detection._watch_id = buffer.detect(marker, detection._fire)
    return detection


class Deadline:
    """One-shot timer; ``Deadline(None)`` is never armed."""

    def __init__(self, timeout: float | None) -> None:
        self.timeout = timeout
        self._event = asyncio.Event()
        self._handle: asyncio.TimerHandle | None = None
        if timeout is not None:
            loop = asyncio.get_running_loop()
            self._handle = loop.call_later(timeout, self._event.set)

    @classmethod
    def for_start_check(cls, marker: str, timeout: float) -> Deadline:
        """Arm a deadline only when a readiness marker is configured."""
        return cls(timeout if marker else None)

    @property
    def armed(self) -> bool:
        return self._handle is not None and not self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()

    def disarm(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
