from .client.device_client import DeviceClient
from .core.context import ClientContext
from .app.config import ClientConfig
from .app.logging_setup import configure_logging
from .core.errors import (
    IDeviceError,
    ConfigError,
    InvalidIdentifierError,
    UnsupportedIdentifierError,
    ProcessError,
    ProcessTimeoutError,
    OutputLimitError,
    ProcessSpawnError,
    DecodeError,
    SessionStateError,
)
from .model.identifier import is_valid_identifier
from .process.runner import ProcessRunner, ProcessResult
from .process.options import ProcessOptions
from .streaming.session import LogStreamSession

__all__ = [
    "DeviceClient", "ClientContext", "ClientConfig", "configure_logging",
    "IDeviceError", "ConfigError", "InvalidIdentifierError", "UnsupportedIdentifierError",
    "ProcessError", "ProcessTimeoutError", "OutputLimitError", "ProcessSpawnError",
    "DecodeError", "SessionStateError",
    "is_valid_identifier",
    "ProcessRunner", "ProcessResult", "ProcessOptions",
    "LogStreamSession",
]
