# idevicekit/interfaces/log_sink.py
from typing import Protocol

from idevicekit.model.log_record import LogRecord


class LogSink(Protocol):
    def on_log(self, record: LogRecord) -> None: ...
    def on_close(self) -> None: ...
