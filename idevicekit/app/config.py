# idevicekit/app/config.py
from __future__ import annotations

import signal
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from idevicekit.app.logging_setup import resolve_level
from idevicekit.core.errors import ConfigError
from idevicekit.process.options import (
    DEFAULT_MAX_BUFFER,
    DEFAULT_TIMEOUT_S,
    ProcessOptions,
    resolve_signal,
)


@dataclass(frozen=True)
class ClientConfig:
    tools_file: Optional[str] = None
    patterns_file: Optional[str] = None
    timeout_s: float = DEFAULT_TIMEOUT_S
    max_buffer: int = DEFAULT_MAX_BUFFER
    kill_signal: signal.Signals = signal.SIGTERM
    encoding: str = "utf-8"
    cwd: Optional[str] = None
    env: Optional[Mapping[str, str]] = None
    max_workers: int = 8
    log_file: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ClientConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(
                f"Unknown config keys: {unknown}.",
                hint=f"Valid keys: {sorted(known)}",
                details={"unknown": unknown},
            )

        values: Dict[str, Any] = dict(data)
        try:
            if "kill_signal" in values:
                values["kill_signal"] = resolve_signal(values["kill_signal"])
            if "timeout_s" in values:
                values["timeout_s"] = float(values["timeout_s"])
            if "max_buffer" in values:
                values["max_buffer"] = int(values["max_buffer"])
            if "log_level" in values:
                resolve_level(values["log_level"])
            if "max_workers" in values:
                values["max_workers"] = int(values["max_workers"])
        except (TypeError, ValueError) as e:
            raise ConfigError("Invalid config value.", hint=str(e)) from None

        return cls(**values)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ClientConfig":
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                "Failed to load client config.",
                hint=str(e),
                details={"path": str(path)},
            ) from None

        if not isinstance(data, dict):
            raise ConfigError("Client config must be a mapping.", details={"path": str(path)})

        cfg = cls.from_mapping(data)
        # relative file references resolve against the config file's directory
        base = path.resolve().parent
        return cfg._with_base(base)

    def _with_base(self, base: Path) -> "ClientConfig":
        def _abs(p: Optional[str]) -> Optional[str]:
            if p is None or Path(p).is_absolute():
                return p
            return str(base / p)

        return replace(
            self,
            tools_file=_abs(self.tools_file),
            patterns_file=_abs(self.patterns_file),
            log_file=_abs(self.log_file),
        )

    def process_options(self) -> ProcessOptions:
        try:
            return ProcessOptions(
                encoding=self.encoding,
                timeout_s=self.timeout_s,
                max_buffer=self.max_buffer,
                kill_signal=self.kill_signal,
                cwd=self.cwd,
                env=self.env,
            )
        except ValueError as e:
            raise ConfigError("Invalid process limits.", hint=str(e)) from None
