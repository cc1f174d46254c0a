"""Event emitters for the deployment engine."""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterable, List

from deployment_engine.core.events_model import DeploymentEvent

logger = logging.getLogger(__name__)


ALLOWED_EVENTS = {
    "deployment_started",
    "step_completed",
    "step_failed",
    "deployment_completed",
    "deployment_failed",
    "deployment_cancelled",
    "execution_error",
    "recovery_successful",
    "recovery_failed",
    "issue_detected",
    "issue_resolved",
    "warning_added",
    "zombie_servers_detected",
}


def validate_event(event: DeploymentEvent) -> None:
    if event.event_type not in ALLOWED_EVENTS:
        raise ValueError(f"Invalid event type: {event.event_type}")
    if not event.deployment_id:
        raise ValueError("Event must have deployment_id")


class EventEmitter(ABC):
    """Abstract event emitter."""

    @abstractmethod
    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        """Emit one or more events."""
        pass


class RecordingEventEmitter(EventEmitter):
    """Keeps events in memory (tests and in-process listeners)."""

    def __init__(self):
        self.events: List[DeploymentEvent] = []
        self._lock = threading.Lock()

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        for event in events:
            validate_event(event)
            with self._lock:
                self.events.append(event)

    def of_type(self, event_type: str) -> List[DeploymentEvent]:
        with self._lock:
            return [e for e in self.events if e.event_type == event_type]

    def types(self) -> List[str]:
        with self._lock:
            return [e.event_type for e in self.events]


class LoggingEventEmitter(EventEmitter):
    """Logs every event."""

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        for event in events:
            validate_event(event)
            logger.info(f"[event] {event.event_type} | deployment={event.deployment_id}")


class MultiEventEmitter(EventEmitter):
    """Fan-out to multiple emitters."""

    def __init__(self, emitters: Iterable[EventEmitter]):
        self._emitters = list(emitters)

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        events = list(events)
        for emitter in self._emitters:
            emitter.emit(events)


class NullEventEmitter(EventEmitter):
    """No-op emitter (used when events are not needed)."""

    def emit(self, events: Iterable[DeploymentEvent]) -> None:
        pass
