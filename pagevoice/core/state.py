from __future__ import annotations

from dataclasses import replace
from typing import Callable, List

from pagevoice.core.types import PlaybackState
from pagevoice.utils.logger import logger

StateListener = Callable[[PlaybackState], None]


class PlaybackStateMachine:
    """Single source of truth for the read-aloud play state.

    Every mutation replaces the immutable ``PlaybackState`` snapshot and
    notifies each subscriber exactly once.  ``is_enabled`` is only changed by
    ``enable``/``disable``/``toggle``; turning TTS off also clears all playback
    flags so audio stops the instant the user disables it.
    """

    def __init__(self, initial: PlaybackState | None = None) -> None:
        self._state = initial or PlaybackState()
        self._listeners: List[StateListener] = []

    def get_state(self) -> PlaybackState:
        return self._state

    @property
    def state(self) -> PlaybackState:
        return self._state

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return _unsubscribe

    def _update(self, **changes) -> None:
        self._state = replace(self._state, **changes)
        self._notify()

    def _notify(self) -> None:
        snapshot = self._state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception as exc:
                logger.error("Playback state listener failed: %s", exc)

    def set_playing(self, is_playing: bool) -> None:
        is_playing = bool(is_playing)
        self._update(
            is_playing=is_playing,
            is_paused=False if is_playing else self._state.is_paused,
        )

    def set_paused(self, is_paused: bool) -> None:
        is_paused = bool(is_paused)
        self._update(
            is_paused=is_paused,
            is_playing=False if is_paused else self._state.is_playing,
        )

    def set_generating(self, is_generating: bool) -> None:
        self._update(is_generating=bool(is_generating))

    def set_error(self, error: str | None) -> None:
        self._update(error=error or None)

    def set_adapter(self, name: str) -> None:
        self._update(current_adapter=name)

    def enable(self) -> None:
        self._update(is_enabled=True, error=None)

    def disable(self) -> None:
        self._update(
            is_enabled=False,
            is_playing=False,
            is_paused=False,
            is_generating=False,
            error=None,
        )

    def toggle(self) -> None:
        if self._state.is_enabled:
            self.disable()
        else:
            self.enable()

    def reset(self) -> None:
        self._update(
            is_playing=False,
            is_paused=False,
            is_generating=False,
            error=None,
        )
