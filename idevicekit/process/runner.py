# idevicekit/process/runner.py
from __future__ import annotations

import logging
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Iterator, Optional, Protocol as TypingProtocol, Sequence

from idevicekit.core.errors import (
    OutputLimitError,
    ProcessError,
    ProcessSpawnError,
    ProcessTimeoutError,
)
from .options import ProcessOptions
from ._internal.pending_process import PendingProcess
from ._internal.pipe_reader import PipeReader

_POLL_S = 0.05
_KILL_GRACE_S = 2.0
_READER_JOIN_S = 1.0


@dataclass(frozen=True)
class ProcessResult:
    stdout: str
    stderr: str

    def __iter__(self) -> Iterator[str]:
        # allows: out, err = runner.run(...)
        yield self.stdout
        yield self.stderr


class Runner(TypingProtocol):
    """Minimal interface DeviceClient needs from a process runner."""
    def run(
        self,
        program: str,
        args: Sequence[str],
        options: Optional[ProcessOptions] = None,
    ) -> ProcessResult: ...


class ProcessRunner:
    """
    Runs one external program per call with bounded time and output.

    - non-zero exit         -> ProcessError
    - runs past timeout_s   -> killed with kill_signal, ProcessTimeoutError
    - output over max_buffer -> killed with kill_signal, OutputLimitError
    Every error carries the stdout/stderr captured so far.
    """

    def __init__(
        self,
        defaults: Optional[ProcessOptions] = None,
        *,
        logger: Optional[logging.Logger] = None,
    ):
        self.defaults = defaults or ProcessOptions()
        self._log = logger or logging.getLogger(__name__)

    # ---------------- Blocking API ----------------
    def run(
        self,
        program: str,
        args: Sequence[str],
        options: Optional[ProcessOptions] = None,
    ) -> ProcessResult:
        opts = options or self.defaults
        args = [str(a) for a in args]
        argv = [program, *args]

        self._log.debug("PROCESS_SPAWN argv=%s timeout_s=%s", argv, opts.timeout_s)

        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                cwd=opts.cwd,
                env=dict(opts.env) if opts.env is not None else None,
            )
        except OSError as e:
            self._log.warning("PROCESS_SPAWN_FAILED program=%s err=%s", program, e)
            raise ProcessSpawnError(
                f"Could not start '{program}'.",
                program=program,
                args=args,
                hint=str(e),
            ) from None

        overflow = threading.Event()
        out_reader = PipeReader(proc.stdout, opts.max_buffer, overflow.set)
        err_reader = PipeReader(proc.stderr, opts.max_buffer, overflow.set)
        out_reader.start()
        err_reader.start()

        reason = self._wait(proc, opts, overflow)
        if reason is not None:
            self._terminate(proc, opts)

        # Readers finish once every writer of the pipe is gone.
        out_reader.join(timeout=_READER_JOIN_S)
        err_reader.join(timeout=_READER_JOIN_S)
        self._close_pipes(proc, out_reader, err_reader)

        if reason is None and overflow.is_set():
            # exited on its own but still produced too much output
            reason = "max_buffer"

        stdout = out_reader.text(opts.encoding)
        stderr = err_reader.text(opts.encoding)
        returncode = proc.returncode

        if reason == "timeout":
            self._log.warning("PROCESS_TIMEOUT program=%s timeout_s=%s", program, opts.timeout_s)
            raise ProcessTimeoutError(
                f"'{program}' timed out after {opts.timeout_s}s.",
                program=program,
                args=args,
                returncode=returncode,
                stdout=stdout,
                stderr=stderr,
                hint=f"Killed with {opts.kill_signal.name}.",
            )

        if reason == "max_buffer":
            self._log.warning("PROCESS_OUTPUT_LIMIT program=%s max_buffer=%d", program, opts.max_buffer)
            raise OutputLimitError(
                f"'{program}' exceeded max_buffer={opts.max_buffer} bytes.",
                program=program,
                args=args,
                returncode=returncode,
                stdout=stdout,
                stderr=stderr,
                hint=f"Killed with {opts.kill_signal.name}.",
            )

        if returncode != 0:
            self._log.warning("PROCESS_FAILED program=%s returncode=%s", program, returncode)
            raise ProcessError(
                f"'{program}' exited with status {returncode}.",
                program=program,
                args=args,
                returncode=returncode,
                stdout=stdout,
                stderr=stderr,
                hint=stderr.strip() or None,
            )

        return ProcessResult(stdout=stdout, stderr=stderr)

    # ---------------- Async API ----------------
    def run_async(
        self,
        program: str,
        args: Sequence[str],
        options: Optional[ProcessOptions] = None,
    ) -> PendingProcess:
        pending = PendingProcess(program, args)

        def _work() -> None:
            if not pending.future.set_running_or_notify_cancel():
                return
            try:
                result = self.run(program, args, options)
            except BaseException as e:
                pending.future.set_exception(e)
            else:
                pending.future.set_result(result)

        threading.Thread(target=_work, name=f"run:{program}", daemon=True).start()
        return pending

    # ---------------- internals ----------------
    @staticmethod
    def _wait(proc: subprocess.Popen, opts: ProcessOptions, overflow: threading.Event) -> Optional[str]:
        """Return None if the process exited by itself, else the kill reason."""
        deadline = time.monotonic() + opts.timeout_s
        while proc.poll() is None:
            if overflow.is_set():
                return "max_buffer"
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return "timeout"
            overflow.wait(min(remaining, _POLL_S))
        return None

    def _terminate(self, proc: subprocess.Popen, opts: ProcessOptions) -> None:
        if proc.poll() is not None:
            return
        try:
            proc.send_signal(opts.kill_signal)
            proc.wait(timeout=_KILL_GRACE_S)
        except subprocess.TimeoutExpired:
            self._log.warning("PROCESS_KILL_ESCALATED pid=%s signal=%s", proc.pid, opts.kill_signal.name)
            proc.kill()
            proc.wait()
        except ProcessLookupError:
            proc.wait()

    @staticmethod
    def _close_pipes(proc: subprocess.Popen, *readers: PipeReader) -> None:
        # A pipe still held open by a grandchild is left to its daemon reader.
        for pipe, reader in zip((proc.stdout, proc.stderr), readers):
            if pipe is not None and not reader.is_alive():
                try:
                    pipe.close()
                except OSError:
                    pass
