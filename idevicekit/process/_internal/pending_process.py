# idevicekit/process/_internal/pending_process.py
from __future__ import annotations

import time
from concurrent.futures import Future
from typing import Any, Callable, Optional, Sequence


class PendingProcess:
    """Holds a Future for an in-flight external process invocation."""

    def __init__(self, program: str, args: Sequence[str]):
        self.program = str(program)
        self.args = list(args)
        self.created_at = time.perf_counter()
        self.future: Future = Future()

    def add_done_callback(self, cb: Callable[[Future], Any]) -> Any:
        """Forward callback registration to the underlying Future."""
        return self.future.add_done_callback(cb)

    def done(self) -> bool:
        return self.future.done()

    def result(self, timeout: Optional[float] = None) -> Any:
        """Block until the process finishes; re-raises ProcessError subclasses."""
        return self.future.result(timeout=timeout)

    def exception(self, timeout: Optional[float] = None) -> Optional[BaseException]:
        return self.future.exception(timeout=timeout)

    def __repr__(self) -> str:
        state = "done" if self.done() else "running"
        return f"PendingProcess(program='{self.program}', state={state})"
