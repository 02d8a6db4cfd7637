"""Document access, text extraction, page navigation and playback state."""

from .errors import (
    AdapterNotAvailableError,
    DocumentAccessError,
    PagevoiceError,
    SpeechAdapterError,
)
from .extractor import ViewportTextExtractor
from .navigator import PageNavigator
from .snapshot import SnapshotDocument
from .state import PlaybackStateMachine
from .types import PlaybackState, PlayResult, TextChunk

__all__ = [
    "AdapterNotAvailableError",
    "DocumentAccessError",
    "PageNavigator",
    "PagevoiceError",
    "PlaybackState",
    "PlaybackStateMachine",
    "PlayResult",
    "SnapshotDocument",
    "SpeechAdapterError",
    "TextChunk",
    "ViewportTextExtractor",
]
