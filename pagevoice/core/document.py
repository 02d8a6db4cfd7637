"""Access layer between the read-aloud engine and a reader's document tree.

The engine never touches a browser directly.  Everything it needs from the
host page (the top-level document holding reader controls, and the iframe
holding the book content) goes through the small handle classes below, so a
live web view and a static HTML snapshot can be driven by the same code.

Any method on a handle may raise (cross-origin frames, detached nodes,
missing geometry); callers are expected to catch locally.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterator, Mapping, Optional, Sequence, Tuple, Union

from pagevoice.core.types import Rect

# Elements whose text is never spoken.
NON_TEXT_TAGS = frozenset({"SCRIPT", "STYLE", "TEMPLATE", "NOSCRIPT", "HEAD", "TITLE"})


class TextNodeHandle(ABC):
    @property
    @abstractmethod
    def text(self) -> str:
        raise NotImplementedError

    @property
    @abstractmethod
    def parent(self) -> Optional["ElementHandle"]:
        raise NotImplementedError


class ElementHandle(ABC):
    @property
    @abstractmethod
    def tag_name(self) -> str:
        """Upper-cased tag name, like the DOM's ``Element.tagName``."""
        raise NotImplementedError

    @abstractmethod
    def children(self) -> Sequence[Union["ElementHandle", TextNodeHandle]]:
        raise NotImplementedError

    @abstractmethod
    def bounding_rect(self) -> Rect:
        raise NotImplementedError

    @abstractmethod
    def owner_frame(self) -> Optional["FrameHandle"]:
        """The iframe hosting this element's document, if any."""
        raise NotImplementedError

    @abstractmethod
    def text_content(self) -> str:
        raise NotImplementedError

    def inner_text(self) -> str:
        return self.text_content()

    def focus(self) -> None:
        return None


class FrameHandle(ABC):
    @abstractmethod
    def is_visible(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def content_root(self) -> Optional[ElementHandle]:
        """Body of the framed document; raises when the frame is inaccessible."""
        raise NotImplementedError

    @abstractmethod
    def viewport_size(self) -> Tuple[float, float]:
        """Inner ``(width, height)`` of the frame's content window."""
        raise NotImplementedError

    @abstractmethod
    def post_message(self, message: Mapping[str, Any]) -> None:
        raise NotImplementedError


class ControlHandle(ABC):
    """A clickable reader control in the top-level document."""

    @abstractmethod
    def is_disabled(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def click(self) -> None:
        raise NotImplementedError


class DocumentProvider(ABC):
    """The top-level document that embeds the reader."""

    @abstractmethod
    def location_url(self) -> str:
        raise NotImplementedError

    @abstractmethod
    def viewport_size(self) -> Tuple[float, float]:
        raise NotImplementedError

    @abstractmethod
    def query_frames(self, selector: str) -> Sequence[FrameHandle]:
        raise NotImplementedError

    @abstractmethod
    def query_control(self, selector: str) -> Optional[ControlHandle]:
        raise NotImplementedError

    @abstractmethod
    def dispatch_key(self, key: str, target: Optional[ElementHandle] = None) -> None:
        """Dispatch a keydown for ``key`` at ``target`` (top document when None)."""
        raise NotImplementedError

    def reader_hook(self, path: str) -> Optional[Callable[[], Any]]:
        """Return a callable for a scripting hook like ``readium.navigator.next``."""
        return None

    def selection_text(self) -> str:
        return ""

    def sync(self) -> None:
        """Ask a live document to pull fresh content; snapshots are already current."""
        return None


def iter_text_nodes(root: ElementHandle) -> Iterator[TextNodeHandle]:
    """Yield non-blank text nodes under ``root`` in document order."""
    stack: list[Union[ElementHandle, TextNodeHandle]] = [root]
    while stack:
        node = stack.pop()
        if isinstance(node, TextNodeHandle):
            if node.text.strip():
                yield node
            continue
        if node is not root and node.tag_name in NON_TEXT_TAGS:
            continue
        stack.extend(reversed(list(node.children())))
