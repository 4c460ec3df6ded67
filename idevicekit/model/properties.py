# idevicekit/model/properties.py
"""
Structured output decoding.

Wraps `plistlib` behind a typed boundary:

- decode_plist(text) -> raw value tree (dict / list / scalar)
- DeviceProperties   -> read-only mapping with explicit "field absent" lookups
"""

from __future__ import annotations

import math
import plistlib
from typing import Any, Iterator, Mapping, Optional
from xml.parsers.expat import ExpatError

from idevicekit.core.errors import DecodeError


class _Absent:
    """Marker for a key that is not present in the decoded document."""

    _instance: Optional["_Absent"] = None

    def __new__(cls) -> "_Absent":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT = _Absent()


def decode_plist(text: str | bytes, *, encoding: str = "utf-8") -> Any:
    """
    Decode a property-list document (XML or binary). Input is never mutated.
    """
    data = text.encode(encoding) if isinstance(text, str) else bytes(text)
    if not data.strip():
        raise DecodeError("Empty property list output.")
    try:
        return plistlib.loads(data)
    except (plistlib.InvalidFileException, ExpatError, ValueError, TypeError) as e:
        raise DecodeError(
            "Output is not a valid property list.",
            hint=str(e),
            details={"length": len(data)},
        ) from None


class DeviceProperties(Mapping[str, Any]):
    """
    Read-only view over a decoded property-list dictionary.

    field(key) returns ABSENT when the key is missing so callers can tell
    "not reported" apart from "reported as empty".
    """

    def __init__(self, data: Mapping[str, Any]):
        self._data = dict(data)

    @classmethod
    def from_plist(cls, text: str | bytes, *, encoding: str = "utf-8") -> "DeviceProperties":
        value = decode_plist(text, encoding=encoding)
        if not isinstance(value, dict):
            raise DecodeError(
                "Expected a property list dictionary.",
                details={"type": type(value).__name__},
            )
        return cls(value)

    def field(self, key: str) -> Any:
        return self._data.get(key, ABSENT)

    def has(self, key: str) -> bool:
        return key in self._data

    def int_field(self, key: str) -> Any:
        """Parse a field as a base-10 integer; ABSENT stays ABSENT."""
        value = self.field(key)
        if value is ABSENT:
            return ABSENT
        if isinstance(value, bool):
            raise DecodeError(f"Field '{key}' is a boolean, expected integer.", details={"key": key})
        if isinstance(value, int):
            return value
        if isinstance(value, float):
            # <real> values truncate toward zero
            if math.isfinite(value):
                return int(value)
            raise DecodeError(f"Field '{key}' is not finite.", details={"key": key, "value": value})
        try:
            return int(str(value).strip(), 10)
        except ValueError:
            raise DecodeError(
                f"Field '{key}' is not an integer.",
                details={"key": key, "value": value},
            ) from None

    def as_dict(self) -> dict:
        return dict(self._data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"DeviceProperties(keys={sorted(self._data)})"
