# idevicekit/streaming/session.py
from __future__ import annotations

import logging
import re
import subprocess
import threading
from typing import Callable, List, Optional, Sequence

from idevicekit.core.errors import ProcessSpawnError, SessionStateError
from idevicekit.interfaces.log_sink import LogSink
from idevicekit.model.identifier import DeviceIdentifier, require_identifier
from idevicekit.streaming.classifier import LineClassifier
from idevicekit.streaming.state import LogNotification, LogStreamStatus, SessionState
from idevicekit.streaming._internal.stdout_worker import StdoutWorker

LogCallback = Callable[[LogNotification], None]
Spawner = Callable[[Sequence[str]], subprocess.Popen]

# Terminators are kept as their own tokens, matching idevicesyslog framing.
_LINE_SPLIT = re.compile(r"(\r?\n)")
_TERMINATE_GRACE_S = 2.0


def _default_spawn(argv: Sequence[str]) -> subprocess.Popen:
    return subprocess.Popen(
        list(argv),
        stdin=subprocess.DEVNULL,
        stdout=subprocess.PIPE,
        stderr=subprocess.DEVNULL,
    )


class LogStreamSession:
    """
    Long-lived syslog capture for one device.

    Created -> Streaming -> Closed. Each classified line is published as a
    "log" notification; unclassified lines are dropped. End of stdout (or an
    explicit close()) publishes exactly one "close" notification, and the
    session's own close handler terminates the child process.

    Notifications are delivered in order on the reader thread.
    """

    def __init__(
        self,
        identifier: DeviceIdentifier,
        *,
        classifier: LineClassifier,
        program: str = "idevicesyslog",
        category: str = "log",
        encoding: str = "utf-8",
        spawn: Optional[Spawner] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.identifier = require_identifier(identifier)
        self.program = program
        self.category = category
        self.encoding = encoding

        self._classifier = classifier
        self._spawn = spawn or _default_spawn
        self._log = logger or logging.getLogger(__name__)

        self._lock = threading.RLock()
        # serializes delivery so "close" is never followed by a "log"
        self._publish_lock = threading.RLock()
        self._closed_event = threading.Event()
        self._state = SessionState.CREATED
        self._proc: Optional[subprocess.Popen] = None
        self._worker: Optional[StdoutWorker] = None
        self._carry = ""

        self._lines_seen = 0
        self._records_published = 0
        self._lines_dropped = 0

        self._callbacks: List[LogCallback] = [self._terminate_on_close]

    # ---------------- lifecycle ----------------
    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._state

    @property
    def argv(self) -> List[str]:
        return [self.program, "-u", self.identifier]

    def start(self) -> "LogStreamSession":
        with self._lock:
            if self._state is not SessionState.CREATED:
                raise SessionStateError(
                    f"Cannot start session in state '{self._state.value}'.",
                    details={"identifier": self.identifier},
                )

            try:
                proc = self._spawn(self.argv)
            except OSError as e:
                self._log.warning("SYSLOG_SPAWN_FAILED program=%s err=%s", self.program, e)
                raise ProcessSpawnError(
                    f"Could not start '{self.program}'.",
                    program=self.program,
                    args=self.argv[1:],
                    hint=str(e),
                ) from None

            self._proc = proc
            self._state = SessionState.STREAMING
            self._worker = StdoutWorker(self, proc.stdout, self.encoding)

        self._log.info("SYSLOG_STARTED identifier=%s pid=%s", self.identifier, proc.pid)
        self._worker.start()
        return self

    def close(self) -> None:
        """Publish "close" (once) and terminate the process. Idempotent."""
        with self._lock:
            if self._state is SessionState.CLOSED:
                return
            self._state = SessionState.CLOSED
            callbacks = list(self._callbacks)

        self._log.info("SYSLOG_CLOSED identifier=%s records=%d", self.identifier, self._records_published)
        with self._publish_lock:
            self._publish(callbacks, LogNotification(kind="close"))
        self._closed_event.set()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until the session is closed. Returns False on timeout."""
        return self._closed_event.wait(timeout)

    def status(self) -> LogStreamStatus:
        with self._lock:
            proc = self._proc
            return LogStreamStatus(
                identifier=self.identifier,
                state=self._state,
                pid=proc.pid if proc is not None else None,
                lines_seen=self._lines_seen,
                records_published=self._records_published,
                lines_dropped=self._lines_dropped,
                returncode=proc.returncode if proc is not None else None,
            )

    # ---------------- subscribers ----------------
    def subscribe(self, cb: LogCallback) -> Callable[[], None]:
        with self._lock:
            self._callbacks.append(cb)

        def _unsubscribe() -> None:
            with self._lock:
                if cb in self._callbacks:
                    self._callbacks.remove(cb)

        return _unsubscribe

    def subscribe_sink(self, sink: LogSink) -> Callable[[], None]:
        def _dispatch(note: LogNotification) -> None:
            if note.kind == "log":
                sink.on_log(note.record)  # type: ignore[arg-type]
            elif note.kind == "close":
                sink.on_close()

        return self.subscribe(_dispatch)

    # ---------------- data path (reader thread) ----------------
    def _feed(self, text: str) -> None:
        if not text:
            return
        with self._lock:
            if self._state is SessionState.CLOSED:
                return
            tokens = _LINE_SPLIT.split(self._carry + text)
            # last token is an unterminated tail (possibly "")
            self._carry = tokens.pop()
        for token in tokens:
            self._handle_line(token)

    def _handle_line(self, line: str) -> None:
        if not line or _LINE_SPLIT.fullmatch(line):
            return

        with self._lock:
            if self._state is SessionState.CLOSED:
                return
            self._lines_seen += 1

        try:
            record = self._classifier.classify(line, self.category)
        except Exception:
            # a classifier bug on one line must not end the session
            record = None

        if record is None:
            with self._lock:
                self._lines_dropped += 1
            return

        with self._publish_lock:
            with self._lock:
                # close() may have run while the line was being classified
                if self._state is SessionState.CLOSED:
                    self._lines_dropped += 1
                    return
                self._records_published += 1
                callbacks = list(self._callbacks)
            self._publish(callbacks, LogNotification(kind="log", record=record))

    def _on_end_of_stream(self) -> None:
        with self._lock:
            tail, self._carry = self._carry, ""
        if tail:
            self._handle_line(tail)
        self.close()

    def _publish(self, callbacks: List[LogCallback], note: LogNotification) -> None:
        for cb in callbacks:
            try:
                cb(note)
            except Exception:
                self._log.exception("LOG_SUBSCRIBER_ERROR kind=%s", note.kind)

    # ---------------- process ownership ----------------
    def _terminate_on_close(self, note: LogNotification) -> None:
        if note.kind == "close":
            self._terminate()

    def _terminate(self) -> None:
        proc = self._proc
        if proc is None:
            return
        if proc.poll() is None:
            try:
                proc.terminate()
                proc.wait(timeout=_TERMINATE_GRACE_S)
            except subprocess.TimeoutExpired:
                self._log.warning("SYSLOG_KILL_ESCALATED pid=%s", proc.pid)
                proc.kill()
                proc.wait()
            except ProcessLookupError:
                pass
        else:
            proc.wait()

    def __enter__(self) -> "LogStreamSession":
        if self.state is SessionState.CREATED:
            self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
