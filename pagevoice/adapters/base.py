from __future__ import annotations

from abc import ABC, abstractmethod

from pagevoice.core.events import AdapterEvent, AdapterEventBus, EventCallback, EventKey
from pagevoice.core.types import PlayResult, TextChunk


class SpeechAdapter(ABC):
    """Contract between the playback orchestrator and a speech backend.

    ``play`` resolves once the utterance has *started* and raises when it
    cannot be synthesized or played.  Transport controls are no-ops when
    nothing is loaded.  Lifecycle changes are reported through ``on``/``off``
    subscriptions to the event classes in ``pagevoice.core.events``.
    """

    name: str = ""

    def __init__(self) -> None:
        self.events = AdapterEventBus()

    @abstractmethod
    async def play(self, chunk: TextChunk) -> PlayResult:
        raise NotImplementedError

    @abstractmethod
    def pause(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def resume(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def stop(self) -> None:
        raise NotImplementedError

    async def prepare(self, chunk: TextChunk) -> None:
        """Optionally synthesize ``chunk`` ahead of its turn."""
        return None

    async def drain(self) -> None:
        """Wait until the utterance currently playing has ended or was stopped."""
        return None

    def get_is_playing(self) -> bool:
        return False

    def get_is_paused(self) -> bool:
        return False

    def on(self, event: EventKey, callback: EventCallback) -> None:
        self.events.on(event, callback)

    def off(self, event: EventKey, callback: EventCallback) -> None:
        self.events.off(event, callback)

    def emit(self, event: AdapterEvent) -> None:
        self.events.emit(event)

    def destroy(self) -> None:
        self.stop()
        self.events.clear()
