from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

FALLBACK_ELEMENT = "fallback"


@dataclass(frozen=True)
class TextChunk:
    """One utterance handed to a speech adapter."""

    text: str
    element_type: Optional[str] = None

    @property
    def is_fallback(self) -> bool:
        return self.element_type == FALLBACK_ELEMENT

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"text": self.text}
        if self.element_type is not None:
            payload["element_type"] = self.element_type
        return payload


@dataclass(frozen=True)
class PlayResult:
    """Returned by ``SpeechAdapter.play`` once playback has started."""

    request_id: Optional[str] = None


@dataclass(frozen=True)
class Rect:
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def has_area(self) -> bool:
        return self.width > 0 and self.height > 0

    def intersects(self, viewport_width: float, viewport_height: float) -> bool:
        # Partially visible elements count as visible.
        return (
            self.bottom > 0
            and self.top < viewport_height
            and self.right > 0
            and self.left < viewport_width
        )


@dataclass(frozen=True)
class PlaybackState:
    is_playing: bool = False
    is_paused: bool = False
    is_generating: bool = False
    is_enabled: bool = True
    error: Optional[str] = None
    current_adapter: Optional[str] = None

    @property
    def phase(self) -> str:
        if self.error:
            return "error"
        if self.is_paused:
            return "paused"
        if self.is_playing:
            return "playing"
        if self.is_generating:
            return "generating"
        return "idle"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_playing": self.is_playing,
            "is_paused": self.is_paused,
            "is_generating": self.is_generating,
            "is_enabled": self.is_enabled,
            "error": self.error,
            "current_adapter": self.current_adapter,
            "phase": self.phase,
        }
