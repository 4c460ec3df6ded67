# idevicekit/process/options.py
from __future__ import annotations

import signal
from dataclasses import dataclass, replace
from typing import Mapping, Optional

DEFAULT_TIMEOUT_S = 30.0
DEFAULT_MAX_BUFFER = 256 * 1024 * 1024


@dataclass(frozen=True)
class ProcessOptions:
    """
    Resource bounds for one external process invocation.

    max_buffer applies to stdout and stderr separately.
    cwd/env of None inherit from the current process.
    """
    encoding: str = "utf-8"
    timeout_s: float = DEFAULT_TIMEOUT_S
    max_buffer: int = DEFAULT_MAX_BUFFER
    kill_signal: signal.Signals = signal.SIGTERM
    cwd: Optional[str] = None
    env: Optional[Mapping[str, str]] = None

    def __post_init__(self) -> None:
        if self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be > 0, got {self.timeout_s}")
        if self.max_buffer <= 0:
            raise ValueError(f"max_buffer must be > 0, got {self.max_buffer}")
        # 'SIGKILL', 'KILL' and 9 are all accepted
        object.__setattr__(self, "kill_signal", resolve_signal(self.kill_signal))

    def with_overrides(self, **changes) -> "ProcessOptions":
        return replace(self, **changes)


def resolve_signal(value: "str | int | signal.Signals") -> signal.Signals:
    """Accept 'SIGKILL', 'KILL', 9 or signal.SIGKILL."""
    if isinstance(value, signal.Signals):
        return value
    if isinstance(value, int):
        return signal.Signals(value)
    name = str(value).strip().upper()
    if not name.startswith("SIG"):
        name = "SIG" + name
    try:
        return signal.Signals[name]
    except KeyError:
        raise ValueError(f"Unknown signal '{value}'") from None
