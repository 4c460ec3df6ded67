from .identifier import DeviceIdentifier, is_valid_identifier, require_identifier
from .properties import ABSENT, DeviceProperties, decode_plist
from .device import BatteryDetails, Points, ScreenDetails, StorageDetails
from .log_record import LogRecord
from .tools import ToolCatalog

__all__ = ["DeviceIdentifier",
           "is_valid_identifier",
           "require_identifier",
           "ABSENT",
           "DeviceProperties",
           "decode_plist",
           "BatteryDetails",
           "Points",
           "ScreenDetails",
           "StorageDetails",
           "LogRecord",
           "ToolCatalog"]
