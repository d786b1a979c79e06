"""
Structured event channel injected into each pipeline stage.

Stages report what they did (detector skipped, dataset parsed, ...) through a
Telemetry object supplied by the caller instead of printing or raising UI
notifications, so the analysis functions stay pure and testable.
"""
import logging
import threading
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class Telemetry:
    """No-op event sink. Subclasses decide where events go."""

    def emit(self, event: str, **fields: Any) -> None:
        pass


class LoggingTelemetry(Telemetry):
    """Forwards events to the standard logging tree as structured records."""

    def __init__(self, level: int = logging.DEBUG, logger_name: str = "insight_engine.events"):
        self.level = level
        self._logger = logging.getLogger(logger_name)

    def emit(self, event: str, **fields: Any) -> None:
        self._logger.log(self.level, event, extra={'event': event, 'fields': fields})


class RecordingTelemetry(Telemetry):
    """Keeps every event in memory; handy for callers that surface diagnostics."""

    def __init__(self):
        self._events: List[Tuple[str, Dict[str, Any]]] = []
        self._lock = threading.Lock()

    def emit(self, event: str, **fields: Any) -> None:
        with self._lock:
            self._events.append((event, dict(fields)))

    @property
    def events(self) -> List[Tuple[str, Dict[str, Any]]]:
        with self._lock:
            return list(self._events)

    def names(self) -> List[str]:
        return [name for name, _ in self.events]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


_default = LoggingTelemetry()


def resolve(telemetry: Optional[Telemetry]) -> Telemetry:
    """Return the caller's telemetry sink, or the logging-backed default."""
    return telemetry if telemetry is not None else _default
