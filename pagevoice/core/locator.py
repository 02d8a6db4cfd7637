from __future__ import annotations

from typing import Optional, Sequence

from pagevoice.core.document import DocumentProvider, ElementHandle, FrameHandle
from pagevoice.utils.logger import logger

# Most specific first; the bare ``iframe`` catches readers with unknown markup.
IFRAME_SELECTORS: tuple[str, ...] = (
    'iframe.readium-navigator-iframe:not([style*="hidden"])',
    "iframe.readium-navigator-iframe",
    'iframe[class*="readium"]',
    'iframe[title="Readium"]',
    "iframe",
)


class ReaderLocator:
    """Find the content root of the reader iframe that is currently shown."""

    def __init__(
        self,
        document: DocumentProvider,
        selectors: Sequence[str] = IFRAME_SELECTORS,
    ) -> None:
        self.document = document
        self.selectors = tuple(selectors)

    def find_reader_frame(self) -> Optional[FrameHandle]:
        for selector in self.selectors:
            try:
                frames = self.document.query_frames(selector)
            except Exception as exc:
                logger.debug("Frame query %r failed: %s", selector, exc)
                continue
            for frame in frames:
                if self._root_of(frame) is not None:
                    return frame
        return None

    def find_reader_root(self) -> Optional[ElementHandle]:
        frame = self.find_reader_frame()
        if frame is None:
            return None
        return self._root_of(frame)

    @staticmethod
    def _root_of(frame: FrameHandle) -> Optional[ElementHandle]:
        try:
            if frame.is_visible():
                return frame.content_root()
        except Exception as exc:
            logger.debug("Cannot access iframe: %s", exc)
        return None
