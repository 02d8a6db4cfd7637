from __future__ import annotations

import re
from typing import List, Optional, Sequence

from pagevoice.core.document import (
    DocumentProvider,
    ElementHandle,
    TextNodeHandle,
    iter_text_nodes,
)
from pagevoice.core.locator import ReaderLocator
from pagevoice.core.types import FALLBACK_ELEMENT, TextChunk
from pagevoice.utils.logger import logger

FALLBACK_TEXT_LIMIT = 2000
CHUNK_TEXT_LIMIT = 1000

UNABLE_TO_EXTRACT_TEXT = "Unable to extract text from current position."
NO_READABLE_TEXT = "No readable text found."

_SENTENCE_RE = re.compile(r"[^.!?]+(?:[.!?]+|$)")


def limit_text_length(text: str, max_chars: int = CHUNK_TEXT_LIMIT) -> str:
    """Keep the leading complete sentences of ``text`` that fit in ``max_chars``."""
    cleaned = re.sub(r"\s+", " ", str(text or "")).strip()
    if not cleaned:
        return NO_READABLE_TEXT
    result = ""
    for match in _SENTENCE_RE.finditer(cleaned):
        sentence = match.group(0).strip()
        if not sentence:
            continue
        candidate = f"{result} {sentence}".strip()
        if len(candidate) > max_chars:
            break
        result = candidate
    if result:
        return result
    # A single sentence longer than the limit: cut on a word boundary.
    head = cleaned[:max_chars]
    if " " in head and len(cleaned) > max_chars:
        head = head.rsplit(" ", 1)[0]
    return head.strip() or NO_READABLE_TEXT


class ViewportTextExtractor:
    """Turn the visible part of the reader document into ordered text chunks.

    Extraction never raises and never returns an empty list.  When nothing is
    visible it falls back to the whole subtree (capped for long chapters), and
    when the document cannot be walked at all it produces a single
    ``"fallback"`` chunk from the body text, the user's selection, or a
    marker sentence.
    """

    def __init__(
        self,
        document: DocumentProvider,
        *,
        locator: Optional[ReaderLocator] = None,
        fallback_text_limit: int = FALLBACK_TEXT_LIMIT,
        chunk_text_limit: int = CHUNK_TEXT_LIMIT,
    ) -> None:
        self.document = document
        self.locator = locator or ReaderLocator(document)
        self.fallback_text_limit = int(fallback_text_limit)
        self.chunk_text_limit = int(chunk_text_limit)

    def get_current_reader_element(self) -> Optional[ElementHandle]:
        try:
            return self.locator.find_reader_root()
        except Exception as exc:
            logger.debug("Reader root lookup failed: %s", exc)
            return None

    async def extract_chunks(self) -> List[TextChunk]:
        return self.extract_chunks_now()

    def extract_chunks_now(self) -> List[TextChunk]:
        root = self.get_current_reader_element()
        if root is None:
            logger.debug("No reader root found; using fallback text.")
            return [self._last_resort_chunk(None)]

        chunks = self._visible_chunks(root)
        if chunks:
            return chunks

        logger.debug("No visible text found, using fallback extraction")
        try:
            chunks = self._subtree_chunks(root)
        except Exception as exc:
            logger.debug("Whole-subtree extraction failed: %s", exc)
            chunks = []
        return chunks or [self._last_resort_chunk(root)]

    # ---- tiers ---------------------------------------------------------------
    def _visible_chunks(self, root: ElementHandle) -> List[TextChunk]:
        try:
            nodes = [
                node for node in iter_text_nodes(root)
                if self._parent_in_viewport(node)
            ]
        except Exception as exc:
            logger.debug("Visible text walk failed: %s", exc)
            return []
        return self._to_chunks(nodes)

    def _subtree_chunks(self, root: ElementHandle) -> List[TextChunk]:
        nodes = list(iter_text_nodes(root))
        total = sum(len(node.text.strip()) for node in nodes)
        if total < self.fallback_text_limit:
            return self._to_chunks(nodes)

        chunks: List[TextChunk] = []
        accumulated = 0
        for chunk in self._to_chunks(nodes):
            chunks.append(chunk)
            accumulated += len(chunk.text)
            if accumulated > self.chunk_text_limit:
                break
        return chunks

    def _last_resort_chunk(self, root: Optional[ElementHandle]) -> TextChunk:
        text = ""
        if root is not None:
            try:
                body_text = root.inner_text()
            except Exception as exc:
                logger.debug("Reader body text unavailable: %s", exc)
                body_text = ""
            if body_text and body_text.strip():
                text = limit_text_length(body_text, self.chunk_text_limit)
        if not text:
            try:
                text = (self.document.selection_text() or "").strip()
            except Exception as exc:
                logger.debug("Selection text unavailable: %s", exc)
                text = ""
        return TextChunk(text=text or UNABLE_TO_EXTRACT_TEXT, element_type=FALLBACK_ELEMENT)

    # ---- helpers -----------------------------------------------------------
    @staticmethod
    def _to_chunks(nodes: Sequence[TextNodeHandle]) -> List[TextChunk]:
        chunks: List[TextChunk] = []
        for node in nodes:
            text = node.text.strip()
            if not text:
                continue
            parent = node.parent
            chunks.append(
                TextChunk(text=text, element_type=parent.tag_name if parent else None)
            )
        return chunks

    def _parent_in_viewport(self, node: TextNodeHandle) -> bool:
        parent = node.parent
        if parent is None:
            return False
        return self.is_element_in_viewport(parent)

    def is_element_in_viewport(self, element: ElementHandle) -> bool:
        try:
            rect = element.bounding_rect()
            if not rect.has_area:
                return False
            frame = element.owner_frame()
            if frame is not None:
                width, height = frame.viewport_size()
            else:
                width, height = self.document.viewport_size()
            return rect.intersects(width, height)
        except Exception as exc:
            # Unknown geometry: read it rather than silently skip content.
            logger.debug("Error checking viewport visibility: %s", exc)
            return True
