"""Replay buffer for peeking at forward-only sources.

A ReplayReader serves bytes that were already read for sniffing, then
falls through to the live source once those bytes are exhausted.
"""

from __future__ import annotations

import io
from typing import BinaryIO


class ReplayReader(io.RawIOBase):
    """Serve a captured prefix first, then delegate to the live source.

    The reader does not own ``source``: closing it only drops the captured
    prefix, and the source is closed by whoever registered it.
    """

    def __init__(self, prefix: bytes, source: BinaryIO) -> None:
        super().__init__()
        self._prefix = memoryview(prefix)
        self._offset = 0
        self._source = source

    def readable(self) -> bool:
        return True

    def readinto(self, buffer: bytearray | memoryview) -> int:  # type: ignore[override]
        target = memoryview(buffer).cast("B")
        if not len(target):
            return 0
        remaining = len(self._prefix) - self._offset
        if remaining > 0:
            count = min(remaining, len(target))
            target[:count] = self._prefix[self._offset : self._offset + count]
            self._offset += count
            return count
        data = self._source.read(len(target))
        if not data:
            return 0
        target[: len(data)] = data
        return len(data)

    @property
    def replay_remaining(self) -> int:
        """Number of captured bytes not yet served."""
        return len(self._prefix) - self._offset

    def close(self) -> None:
        self._prefix = memoryview(b"")
        self._offset = 0
        super().close()
