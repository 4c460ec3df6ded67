# idevicekit/model/device.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from idevicekit.core.errors import DecodeError

from .properties import ABSENT, DeviceProperties

# iPhone 6/6s/7/8 Plus render at 1242x2208 and downsample to a 1080x1920
# panel, so floor(physical / scale) gives the wrong logical size.
_DOWNSAMPLED_PANEL = (1080, 1920)
_DOWNSAMPLED_POINTS = (414, 736)


@dataclass(frozen=True)
class Points:
    """Logical resolution. Fields are ABSENT if the device did not report them."""
    width: Any
    height: Any


@dataclass(frozen=True)
class ScreenDetails:
    width: Any
    height: Any
    scale: Any
    points: Points

    @classmethod
    def from_properties(cls, props: DeviceProperties) -> "ScreenDetails":
        width = props.int_field("ScreenWidth")
        height = props.int_field("ScreenHeight")
        scale = props.int_field("ScreenScaleFactor")
        return cls(width=width, height=height, scale=scale, points=compute_points(width, height, scale))

    def as_dict(self) -> Dict[str, Any]:
        return {
            "width": self.width,
            "height": self.height,
            "scale": self.scale,
            "points": {"width": self.points.width, "height": self.points.height},
        }


def compute_points(width: Any, height: Any, scale: Any) -> Points:
    if (width, height) == _DOWNSAMPLED_PANEL:
        return Points(*_DOWNSAMPLED_POINTS)
    if ABSENT in (width, height, scale) or not scale:
        return Points(ABSENT, ABSENT)
    return Points(width // scale, height // scale)


@dataclass(frozen=True)
class StorageDetails:
    size: Any
    used: Any
    free: Any
    free_percent: Any

    @classmethod
    def from_properties(cls, props: DeviceProperties) -> "StorageDetails":
        size = props.field("TotalDataCapacity")
        free = props.field("TotalDataAvailable")
        return cls.compute(size, free)

    @classmethod
    def compute(cls, size: Any, free: Any) -> "StorageDetails":
        if size is ABSENT or free is ABSENT:
            return cls(size=size, used=ABSENT, free=free, free_percent=ABSENT)
        for key, value in (("TotalDataCapacity", size), ("TotalDataAvailable", free)):
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise DecodeError(
                    f"Field '{key}' is not numeric.",
                    details={"key": key, "value": value},
                )
        # +2 in the denominator is kept for compatibility with existing consumers.
        return cls(
            size=size,
            used=size - free,
            free=free,
            free_percent=free * 100 / (size + 2),
        )

    def as_dict(self) -> Dict[str, Any]:
        return {
            "size": self.size,
            "used": self.used,
            "free": self.free,
            "free_percent": self.free_percent,
        }


@dataclass(frozen=True)
class BatteryDetails:
    level: Any
    properties: DeviceProperties

    @classmethod
    def from_properties(cls, props: DeviceProperties) -> "BatteryDetails":
        return cls(level=props.field("BatteryCurrentCapacity"), properties=props)

    def as_dict(self) -> Dict[str, Any]:
        out = self.properties.as_dict()
        out["level"] = self.level
        return out
