# process/__init__.py

from .options import ProcessOptions, resolve_signal
from .runner import ProcessRunner, ProcessResult, Runner

__all__ = [
    "ProcessOptions", "resolve_signal",
    "ProcessRunner", "ProcessResult", "Runner"]
