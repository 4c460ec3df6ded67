# idevicekit/app/logging_setup.py
from __future__ import annotations

import logging
from pathlib import Path

PACKAGE_LOGGER = "idevicekit"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(threadName)s %(name)s: %(message)s"


def resolve_level(level: "str | int") -> int:
    """Accept 'debug', 'INFO', 20 ..."""
    if isinstance(level, int):
        return level
    value = logging.getLevelName(str(level).strip().upper())
    if not isinstance(value, int):
        raise ValueError(f"Unknown log level '{level}'")
    return value


def configure_logging(log_file: "str | Path", level: "str | int" = logging.INFO) -> logging.FileHandler:
    """
    Send the idevicekit logger tree to a file.

    Only the package logger is touched; the root logger and its handlers are
    left to the application. Calling again with the same file returns the
    existing handler and only updates its level.
    """
    lvl = resolve_level(level)
    pkg = logging.getLogger(PACKAGE_LOGGER)
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    target = str(path.resolve())

    for h in pkg.handlers:
        if isinstance(h, logging.FileHandler) and getattr(h, "baseFilename", None) == target:
            h.setLevel(lvl)
            return h

    fh = logging.FileHandler(path, encoding="utf-8", delay=True)
    fh.setLevel(lvl)
    fh.setFormatter(logging.Formatter(LOG_FORMAT))
    pkg.addHandler(fh)

    if pkg.level == logging.NOTSET or pkg.level > lvl:
        pkg.setLevel(lvl)
    return fh
