# idevicekit/model/log_record.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class LogRecord:
    """
    One classified line of device syslog output.

    category: tag passed to the classifier (e.g. "log")
    pattern:  name of the pattern that matched
    fields:   named captures from the pattern
    """
    category: str
    pattern: str
    message: str
    raw: str
    fields: Dict[str, Any] = field(default_factory=dict)
    timestamp: Optional[datetime] = None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "pattern": self.pattern,
            "message": self.message,
            "raw": self.raw,
            "fields": dict(self.fields),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }
