"""
MissionLog - Append-only Narration Log

Timestamped mission narration shown in the operator log panel. Entries
are never mutated or removed once appended.
"""

import uuid
import logging
import threading
from enum import Enum
from datetime import datetime
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

logger = logging.getLogger(__name__)


class LogKind(Enum):
    """Log entry category used by the panel for styling."""
    INFO = "info"
    WARNING = "warning"
    SUCCESS = "success"
    ANALYSIS = "analysis"


# Python logging level used when mirroring each kind
_KIND_LEVELS = {
    LogKind.INFO: logging.INFO,
    LogKind.WARNING: logging.WARNING,
    LogKind.SUCCESS: logging.INFO,
    LogKind.ANALYSIS: logging.INFO,
}


@dataclass(frozen=True)
class LogEntry:
    """Single narration entry."""
    id: str
    timestamp: datetime
    message: str
    kind: LogKind

    @property
    def time_label(self) -> str:
        return self.timestamp.strftime('%H:%M:%S')

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'timestamp': self.time_label,
            'message': self.message,
            'type': self.kind.value
        }


class MissionLog:
    """
    Thread-safe, insertion-ordered narration log.

    Listeners are called after each append, outside the log's lock.
    """

    def __init__(self, clock: Callable[[], datetime] = None):
        """
        Initialize MissionLog.

        Args:
            clock: Time source for entry timestamps (datetime.now by default)
        """
        self._clock = clock or datetime.now
        self._entries: List[LogEntry] = []
        self._lock = threading.Lock()
        self._listeners: List[Callable[[LogEntry], None]] = []

    def append(self, message: str, kind: LogKind = LogKind.INFO) -> LogEntry:
        """
        Append a new entry.

        Args:
            message: Narration text
            kind: Entry category

        Returns:
            The created LogEntry
        """
        entry = LogEntry(
            id=uuid.uuid4().hex,
            timestamp=self._clock(),
            message=message,
            kind=kind
        )

        with self._lock:
            self._entries.append(entry)

        logger.log(_KIND_LEVELS[kind], f"[{kind.value}] {message}")

        for listener in list(self._listeners):
            try:
                listener(entry)
            except Exception as e:
                logger.error(f"Log listener error: {e}")

        return entry

    def info(self, message: str) -> LogEntry:
        return self.append(message, LogKind.INFO)

    def warning(self, message: str) -> LogEntry:
        return self.append(message, LogKind.WARNING)

    def success(self, message: str) -> LogEntry:
        return self.append(message, LogKind.SUCCESS)

    def analysis(self, message: str) -> LogEntry:
        return self.append(message, LogKind.ANALYSIS)

    def entries(self, kind: Optional[LogKind] = None) -> Tuple[LogEntry, ...]:
        """
        Get entries, oldest first.

        Args:
            kind: Optional filter on entry kind
        """
        with self._lock:
            entries = tuple(self._entries)
        if kind is not None:
            return tuple(e for e in entries if e.kind == kind)
        return entries

    def add_listener(self, listener: Callable[[LogEntry], None]):
        """Register a callback invoked with every new entry."""
        self._listeners.append(listener)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
