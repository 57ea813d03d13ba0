"""Event sinks for convergence records.

A sink is any callable taking a ConvergeEvent. The engine emits records
and never decides how they are presented.
"""
import logging
from typing import Callable

from .schema import ConvergeEvent, EventType

EventSink = Callable[[ConvergeEvent], None]

logger = logging.getLogger(__name__)

_LEVELS = {
    EventType.SKIPPED: logging.DEBUG,
    EventType.WOULD_CHANGE: logging.INFO,
    EventType.CHANGING: logging.INFO,
    EventType.CHANGED: logging.INFO,
    EventType.FAILED: logging.ERROR,
}


class LoggingSink:
    """Write events to a logger."""

    def __init__(self, log: logging.Logger = logger):
        self.log = log

    def __call__(self, event: ConvergeEvent) -> None:
        prefix = "Would " if event.event == EventType.WOULD_CHANGE else ""
        self.log.log(
            _LEVELS[event.event],
            f"{event.resource} [{event.action.value}] {event.event.value}: {prefix}{event.detail}",
        )


class CollectingSink:
    """Keep events in memory."""

    def __init__(self):
        self.events: list[ConvergeEvent] = []

    def __call__(self, event: ConvergeEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[ConvergeEvent]:
        return [e for e in self.events if e.event == event_type]


def fan_out(*sinks: EventSink) -> EventSink:
    """Combine sinks into one that forwards every event to each."""
    def sink(event: ConvergeEvent) -> None:
        for s in sinks:
            s(event)
    return sink


def discard(event: ConvergeEvent) -> None:
    """Sink that drops everything."""
