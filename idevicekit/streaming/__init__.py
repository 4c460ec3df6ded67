# streaming/__init__.py

from .classifier import LineClassifier, PatternClassifier, default_patterns_path
from .session import LogStreamSession
from .state import LogNotification, LogStreamStatus, SessionState

__all__ = [
    "LineClassifier", "PatternClassifier", "default_patterns_path",
    "LogStreamSession",
    "LogNotification", "LogStreamStatus", "SessionState"]
