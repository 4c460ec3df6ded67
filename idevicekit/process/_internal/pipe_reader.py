# idevicekit/process/_internal/pipe_reader.py
from __future__ import annotations

import threading
from typing import IO, Callable, Optional

_CHUNK = 64 * 1024


class PipeReader(threading.Thread):
    """
    Thread that drains one child pipe into memory.

    Keeps at most `limit` bytes. Once the limit is crossed it calls
    `on_overflow` once and keeps draining (discarding) so the child never
    blocks on a full pipe before it is killed.
    """

    def __init__(
        self,
        pipe: IO[bytes],
        limit: int,
        on_overflow: Optional[Callable[[], None]] = None,
    ):
        super().__init__(daemon=True)
        self._pipe = pipe
        self._limit = int(limit)
        self._on_overflow = on_overflow
        self._chunks: list[bytes] = []
        self._size = 0
        self.overflowed = False

    def run(self) -> None:
        read = getattr(self._pipe, "read1", self._pipe.read)
        try:
            while True:
                chunk = read(_CHUNK)
                if not chunk:
                    break
                self._append(chunk)
        except (OSError, ValueError):
            # pipe closed underneath us during teardown
            pass

    def _append(self, chunk: bytes) -> None:
        if self.overflowed:
            return
        room = self._limit - self._size
        if len(chunk) > room:
            if room > 0:
                self._chunks.append(chunk[:room])
                self._size += room
            self.overflowed = True
            if self._on_overflow:
                self._on_overflow()
            return
        self._chunks.append(chunk)
        self._size += len(chunk)

    @property
    def size(self) -> int:
        return self._size

    def data(self) -> bytes:
        return b"".join(self._chunks)

    def text(self, encoding: str) -> str:
        return self.data().decode(encoding, errors="replace")
