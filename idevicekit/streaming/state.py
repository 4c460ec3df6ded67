# idevicekit/streaming/state.py
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from idevicekit.model.log_record import LogRecord


class SessionState(str, Enum):
    CREATED = "created"
    STREAMING = "streaming"
    CLOSED = "closed"


@dataclass(frozen=True)
class LogNotification:
    """
    kind: "log" (record set) | "close" (record None)
    """
    kind: str
    record: Optional[LogRecord] = None


@dataclass(frozen=True)
class LogStreamStatus:
    """
    A snapshot of a log stream session, safe to share across threads.
    """
    identifier: str
    state: SessionState
    pid: Optional[int] = None
    lines_seen: int = 0
    records_published: int = 0
    lines_dropped: int = 0
    returncode: Optional[int] = None
