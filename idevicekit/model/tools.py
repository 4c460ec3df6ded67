# idevicekit/model/tools.py
from __future__ import annotations

from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from idevicekit.core.errors import ConfigError

DEFAULT_TOOLS: Dict[str, str] = {
    "enumerate": "idevice_id",
    "info": "ideviceinfo",
    "installer": "ideviceinstaller",
    "diagnostics": "idevicediagnostics",
    "enter_recovery": "ideviceenterrecovery",
    "recovery": "irecovery",
    "name": "idevicename",
    "crash_report": "idevicecrashreport",
    "syslog": "idevicesyslog",
    "mktemp": "mktemp",
}


class ToolCatalog:
    """
    Maps tool roles -> executable name or path.

    - NO process spawning
    - roles are fixed; only the executable can be overridden
    """

    def __init__(self, overrides: Optional[Mapping[str, str]] = None):
        self._tools: Dict[str, str] = dict(DEFAULT_TOOLS)
        for role, program in (overrides or {}).items():
            if role not in DEFAULT_TOOLS:
                raise ConfigError(
                    f"Unknown tool role '{role}'.",
                    hint=f"Valid roles: {sorted(DEFAULT_TOOLS)}",
                    details={"role": role},
                )
            if not isinstance(program, str) or not program.strip():
                raise ConfigError(
                    f"Tool '{role}' must be a non-empty string.",
                    details={"role": role, "value": program},
                )
            self._tools[role] = program

    @classmethod
    def default(cls) -> "ToolCatalog":
        return cls()

    @classmethod
    def from_yaml(cls, path: str | Path) -> "ToolCatalog":
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(
                "Failed to load tool catalog.",
                hint=str(e),
                details={"path": str(path)},
            ) from None

        tools = data.get("tools") if isinstance(data, dict) else None
        if not isinstance(tools, dict):
            raise ConfigError(
                "Tool catalog is missing 'tools' root node.",
                details={"path": str(path)},
            )
        return cls(tools)

    def program(self, role: str) -> str:
        try:
            return self._tools[role]
        except KeyError:
            raise ConfigError(f"Unknown tool role '{role}'.", details={"role": role}) from None

    def as_dict(self) -> Dict[str, str]:
        return dict(self._tools)
