# idevicekit/streaming/_internal/stdout_worker.py
from __future__ import annotations

import codecs
import threading
from typing import IO, TYPE_CHECKING

if TYPE_CHECKING:
    from idevicekit.streaming.session import LogStreamSession

_CHUNK = 4096


class StdoutWorker(threading.Thread):
    """Thread that reads a child's stdout and feeds decoded text to the session."""

    def __init__(self, session: "LogStreamSession", pipe: IO[bytes], encoding: str = "utf-8"):
        super().__init__(daemon=True, name=f"syslog:{session.identifier}")
        self.session = session
        self._pipe = pipe
        # multi-byte sequences may straddle chunk boundaries
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")

    def run(self) -> None:
        read = getattr(self._pipe, "read1", self._pipe.read)
        try:
            while True:
                chunk = read(_CHUNK)
                if not chunk:
                    break
                self.session._feed(self._decoder.decode(chunk))
            self.session._feed(self._decoder.decode(b"", final=True))
        except (OSError, ValueError):
            self.session._log.debug("SYSLOG_STDOUT_CLOSED identifier=%s", self.session.identifier)
        except Exception:
            self.session._log.exception("SYSLOG_WORKER_EXCEPTION identifier=%s", self.session.identifier)
        finally:
            try:
                self._pipe.close()
            except OSError:
                pass
            self.session._on_end_of_stream()
