# idevicekit/core/errors.py
from __future__ import annotations

from typing import Optional, Sequence


class IDeviceError(Exception):
    """
    Base class for all expected operational errors in idevicekit.
    """

    #: Stable machine-readable identifier (for exit mapping, service APIs, etc.)
    code: str = "unknown"

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        details: dict | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.hint = hint
        self.details = details or {}

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Configuration / setup errors (no process spawned yet)
# ---------------------------------------------------------------------------

class ConfigError(IDeviceError):
    """
    Client configuration is invalid.

    Examples:
      - unknown key in config YAML
      - unknown tool role in tools.yml
      - malformed classifier pattern file
    """
    code = "config_error"


# ---------------------------------------------------------------------------
# Validation errors (always raised before any process is spawned)
# ---------------------------------------------------------------------------

class InvalidIdentifierError(IDeviceError):
    """
    Device identifier does not match either accepted serial shape.
    """
    code = "invalid_identifier"

    def __init__(self, identifier: object):
        super().__init__(
            "Invalid device identifier.",
            hint="Expected 40 lowercase hex chars or XXXXXXXX-XXXXXXXXXXXXXXXX.",
            details={"identifier": identifier},
        )
        self.identifier = identifier


class UnsupportedIdentifierError(IDeviceError):
    """
    Identifier is well-formed but cannot be used for this operation.

    Examples:
      - exit recovery with a 40-char hex identifier (no ECID suffix to derive)
    """
    code = "unsupported_identifier"


# ---------------------------------------------------------------------------
# External process errors
# ---------------------------------------------------------------------------

class ProcessError(IDeviceError):
    """
    External tool failed. Carries whatever output was captured.

    Examples:
      - non-zero exit status
      - killed after timeout / output limit (see subclasses)
    """
    code = "process_error"
    reason: str = "exit"

    def __init__(
        self,
        message: str,
        *,
        program: str,
        args: Sequence[str] = (),
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
        hint: str | None = None,
    ):
        super().__init__(
            message,
            hint=hint,
            details={
                "program": program,
                "args": list(args),
                "returncode": returncode,
                "reason": self.reason,
            },
        )
        self.program = program
        self.args_list = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class ProcessTimeoutError(ProcessError):
    """Process ran past its wall-clock limit and was killed."""
    code = "process_timeout"
    reason = "timeout"


class OutputLimitError(ProcessError):
    """Process produced more output than max_buffer and was killed."""
    code = "output_limit"
    reason = "max_buffer"


class ProcessSpawnError(ProcessError):
    """Executable could not be started (missing binary, permissions)."""
    code = "process_spawn_error"
    reason = "spawn"


# ---------------------------------------------------------------------------
# Decode errors
# ---------------------------------------------------------------------------

class DecodeError(IDeviceError):
    """
    Tool output was captured but could not be decoded.

    Examples:
      - stdout is not a property list
      - a present field has the wrong shape (e.g. non-numeric ScreenWidth)
    """
    code = "decode_error"


# ---------------------------------------------------------------------------
# Streaming errors
# ---------------------------------------------------------------------------

class SessionStateError(IDeviceError):
    """
    Illegal log stream session transition (start twice, start after close).
    """
    code = "session_state"
