"""Lifecycle events emitted by speech adapters."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Type, Union

from pagevoice.utils.logger import logger


@dataclass(frozen=True)
class AdapterEvent:
    request_id: Optional[str] = None


@dataclass(frozen=True)
class PlayEvent(AdapterEvent):
    text: str = ""


@dataclass(frozen=True)
class PauseEvent(AdapterEvent):
    pass


@dataclass(frozen=True)
class ResumeEvent(AdapterEvent):
    pass


@dataclass(frozen=True)
class StopEvent(AdapterEvent):
    pass


@dataclass(frozen=True)
class EndEvent(AdapterEvent):
    pass


@dataclass(frozen=True)
class ErrorEvent(AdapterEvent):
    message: str = ""
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class WordBoundaryEvent(AdapterEvent):
    word: str = ""
    offset: int = 0


EVENT_TYPES: Dict[str, Type[AdapterEvent]] = {
    "play": PlayEvent,
    "pause": PauseEvent,
    "resume": ResumeEvent,
    "stop": StopEvent,
    "end": EndEvent,
    "error": ErrorEvent,
    "wordBoundary": WordBoundaryEvent,
    "word_boundary": WordBoundaryEvent,
}

EventKey = Union[str, Type[AdapterEvent]]
EventCallback = Callable[[AdapterEvent], None]


def resolve_event_type(event: EventKey) -> Type[AdapterEvent]:
    if isinstance(event, type) and issubclass(event, AdapterEvent):
        if event is AdapterEvent:
            raise ValueError("Subscribe to a concrete adapter event type")
        return event
    try:
        return EVENT_TYPES[str(event)]
    except KeyError:
        raise ValueError(f"Unknown adapter event: {event!r}") from None


class AdapterEventBus:
    """Synchronous, ordered dispatch of adapter events to subscribers."""

    def __init__(self) -> None:
        self._subscribers: Dict[Type[AdapterEvent], List[EventCallback]] = {}

    def on(self, event: EventKey, callback: EventCallback) -> None:
        callbacks = self._subscribers.setdefault(resolve_event_type(event), [])
        callbacks.append(callback)

    def off(self, event: EventKey, callback: EventCallback) -> None:
        callbacks = self._subscribers.get(resolve_event_type(event), [])
        if callback in callbacks:
            callbacks.remove(callback)

    def clear(self) -> None:
        self._subscribers.clear()

    def subscriber_count(self, event: EventKey) -> int:
        return len(self._subscribers.get(resolve_event_type(event), []))

    def emit(self, event: AdapterEvent) -> None:
        for callback in list(self._subscribers.get(type(event), [])):
            try:
                callback(event)
            except Exception as exc:
                logger.error(
                    "Adapter event callback failed for %s: %s",
                    type(event).__name__,
                    exc,
                )
