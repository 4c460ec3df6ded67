# idevicekit/model/identifier.py
from __future__ import annotations

import re

from idevicekit.core.errors import InvalidIdentifierError, UnsupportedIdentifierError

DeviceIdentifier = str

# Legacy UDID: 40 lowercase hex chars.
_UDID_RE = re.compile(r"[0-9a-f]{40}")
# Newer hardware (iPhone XS/XR and later): 8-16 uppercase alphanumerics.
_SERIAL_RE = re.compile(r"[A-Z0-9]{8}-[A-Z0-9]{16}")


def is_valid_identifier(token: object) -> bool:
    """Return True if token matches exactly one of the two serial shapes."""
    if not isinstance(token, str):
        return False
    return _UDID_RE.fullmatch(token) is not None or _SERIAL_RE.fullmatch(token) is not None


def require_identifier(token: object) -> DeviceIdentifier:
    if not is_valid_identifier(token):
        raise InvalidIdentifierError(token)
    return token  # type: ignore[return-value]


def recovery_device_id(identifier: DeviceIdentifier) -> str:
    """
    Derive the hex ECID argument used by the recovery tool.

    ABCDEFGH-0123456789ABCDEF -> 0x0123456789abcdef
    """
    require_identifier(identifier)
    if _SERIAL_RE.fullmatch(identifier) is None:
        raise UnsupportedIdentifierError(
            "Identifier has no ECID component.",
            hint="Exit recovery needs a XXXXXXXX-XXXXXXXXXXXXXXXX identifier.",
            details={"identifier": identifier},
        )
    return "0x" + identifier.split("-", 1)[1].lower()
