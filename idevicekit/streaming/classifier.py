# idevicekit/streaming/classifier.py
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, Sequence

import yaml

from idevicekit.core.errors import ConfigError
from idevicekit.model.log_record import LogRecord


class LineClassifier(Protocol):
    """Maps one raw line to a LogRecord, or None when nothing matches. Must not raise."""
    def classify(self, line: str, category: str) -> Optional[LogRecord]: ...


@dataclass(frozen=True)
class LinePattern:
    name: str
    regex: re.Pattern
    timestamp_field: Optional[str] = None
    timestamp_format: Optional[str] = None

    def match(self, line: str) -> Optional[re.Match]:
        return self.regex.match(line)


class PatternClassifier:
    """
    First-match regex classifier.

    Pattern data comes from a YAML document:

        patterns:
          - name: syslog
            match: '^(?P<ts>...) (?P<process>...) ...: (?P<message>.*)$'
            timestamp: {field: ts, format: '%b %d %H:%M:%S'}

    Named groups become LogRecord.fields; the 'message' group (if any)
    becomes LogRecord.message, otherwise the whole line does.
    """

    def __init__(self, patterns: Sequence[LinePattern]):
        self.patterns: List[LinePattern] = list(patterns)

    # ---------------------------------------------------------------------
    # Loading
    # ---------------------------------------------------------------------
    @classmethod
    def from_yaml(cls, path: str | Path) -> "PatternClassifier":
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                "Failed to load classifier patterns.",
                hint=str(e),
                details={"path": str(path)},
            ) from None
        return cls.from_mapping(data, source=str(path))

    @classmethod
    def from_mapping(cls, data: Any, *, source: str = "<mapping>") -> "PatternClassifier":
        entries = data.get("patterns") if isinstance(data, Mapping) else None
        if not isinstance(entries, list):
            raise ConfigError(
                "Pattern document is missing 'patterns' list.",
                details={"source": source},
            )

        patterns: List[LinePattern] = []
        for i, entry in enumerate(entries):
            if not isinstance(entry, Mapping):
                raise ConfigError(f"Pattern #{i} must be a mapping.", details={"source": source})

            name = entry.get("name") or f"pattern_{i}"
            expr = entry.get("match")
            if not isinstance(expr, str) or not expr:
                raise ConfigError(f"Pattern '{name}' is missing 'match'.", details={"source": source})
            try:
                regex = re.compile(expr)
            except re.error as e:
                raise ConfigError(
                    f"Pattern '{name}' has an invalid regex.",
                    hint=str(e),
                    details={"source": source, "match": expr},
                ) from None

            ts = entry.get("timestamp") or {}
            if not isinstance(ts, Mapping):
                raise ConfigError(f"Pattern '{name}' timestamp must be a mapping.", details={"source": source})
            ts_field = ts.get("field")
            if ts_field is not None and ts_field not in regex.groupindex:
                raise ConfigError(
                    f"Pattern '{name}' timestamp field '{ts_field}' is not a named group.",
                    details={"source": source},
                )

            patterns.append(
                LinePattern(
                    name=str(name),
                    regex=regex,
                    timestamp_field=ts_field,
                    timestamp_format=ts.get("format"),
                )
            )
        return cls(patterns)

    # ---------------------------------------------------------------------
    # Classification
    # ---------------------------------------------------------------------
    def classify(self, line: str, category: str) -> Optional[LogRecord]:
        if not line or not line.strip():
            return None

        for pattern in self.patterns:
            try:
                m = pattern.match(line)
            except (TypeError, RecursionError):
                return None
            if m is None:
                continue

            fields = {k: v for k, v in m.groupdict().items() if v is not None}
            return LogRecord(
                category=category,
                pattern=pattern.name,
                message=fields.get("message", line),
                raw=line,
                fields=fields,
                timestamp=_parse_timestamp(pattern, fields),
            )
        return None


def _parse_timestamp(pattern: LinePattern, fields: Mapping[str, str]) -> Optional[datetime]:
    if not pattern.timestamp_field or not pattern.timestamp_format:
        return None
    value = fields.get(pattern.timestamp_field)
    if not value:
        return None

    fmt = pattern.timestamp_format
    # syslog omits the year
    if "%Y" not in fmt:
        fmt = "%Y " + fmt
        value = f"{datetime.now().year} {value}"
    try:
        return datetime.strptime(" ".join(value.split()), fmt)
    except ValueError:
        return None


def default_patterns_path() -> Path:
    return Path(__file__).resolve().parents[1] / "metadata" / "syslog_patterns.yml"
