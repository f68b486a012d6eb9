"""Output capture for supervised processes.

procwatch runtime module

Provides:
- OutputBuffer: append-only byte buffer with substring detection
- LineLogger: sink that logs complete output lines with a name prefix
- TeeSink: mirrors every write to several sinks
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Protocol

__all__ = [
    "LineLogger",
    "OutputBuffer",
    "Sink",
    "TeeSink",
]

logger = logging.getLogger(__name__)

OUTPUT_LOGGER_NAME = "procwatch.output"


class Sink(Protocol):
    """Anything that accepts raw output bytes."""

    def write(self, data: bytes) -> Any: ...


@dataclass
class _Watch:
    needle: bytes
    on_match: Callable[[], None]
    # Position up to which the buffer has been searched
    offset: int = 0


class OutputBuffer:
    """Append-only buffer that can watch for substrings.

    Watches see the whole buffer, including bytes written before they were
    registered. Each watch fires its callback once, on the first match, and
    is then dropped.
    """

    def __init__(self) -> None:
        self._data = bytearray()
        self._watches: dict[int, _Watch] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._data)

    def write(self, data: bytes) -> int:
        self._data.extend(data)
        if self._watches:
            self._scan()
        return len(data)

    def contents(self) -> bytes:
        return bytes(self._data)

    def text(self, encoding: str = "utf-8") -> str:
        return self._data.decode(encoding, errors="replace")

    def detect(self, marker: str, on_match: Callable[[], None]) -> int:
        """Call ``on_match`` once ``marker`` appears in the buffer.

        Returns a watch id for ``cancel_detect``. If the marker is already
        present the callback runs before this method returns.
        """
        watch_id = next(self._ids)
        self._watches[watch_id] = _Watch(needle=marker.encode("utf-8"), on_match=on_match)
        self._scan()
        return watch_id

    def cancel_detect(self, watch_id: int) -> None:
        self._watches.pop(watch_id, None)

    def cancel_detects(self) -> None:
        self._watches.clear()

    def _scan(self) -> None:
        matched = []
        for watch_id, watch in self._watches.items():
            # Re-check the tail of the previous window in case the marker
            # straddles two writes.
            start = max(0, watch.offset - len(watch.needle) + 1)
            if self._data.find(watch.needle, start) != -1:
                matched.append(watch_id)
            else:
                watch.offset = len(self._data)

        for watch_id in matched:
            watch = self._watches.pop(watch_id)
            watch.on_match()


class LineLogger:
    """Sink that logs complete lines as ``[name] line``.

    Partial lines are held until a newline arrives or ``flush`` is called.
    """

    def __init__(
        self,
        name: str,
        *,
        level: int = logging.INFO,
        target: logging.Logger | None = None,
    ) -> None:
        self.name = name
        self.level = level
        self._logger = target or logging.getLogger(OUTPUT_LOGGER_NAME)
        self._pending = b""

    def write(self, data: bytes) -> int:
        self._pending += data
        *lines, self._pending = self._pending.split(b"\n")
        for line in lines:
            self._emit(line)
        return len(data)

    def flush(self) -> None:
        if self._pending:
            self._emit(self._pending)
            self._pending = b""

    def _emit(self, line: bytes) -> None:
        text = line.rstrip(b"\r").decode("utf-8", errors="replace")
        self._logger.log(self.level, f"[{self.name}] {text}")


class TeeSink:
    """Mirror writes to every wrapped sink."""

    def __init__(self, *sinks: Sink) -> None:
        self.sinks = sinks

    def write(self, data: bytes) -> int:
        for sink in self.sinks:
            sink.write(data)
        return len(data)
