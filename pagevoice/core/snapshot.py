"""HTML snapshot implementation of the document access layer.

A snapshot is a JSON-friendly payload describing the host page at one
instant::

    {
        "url": "https://reader.example/book#loc=12",
        "viewport": {"width": 1280, "height": 800},
        "selection": "",
        "html": "<body><button title='next'>...</button>"
                "<iframe class='readium-navigator-iframe' data-pv-frame='main'></iframe></body>",
        "frames": {
            "main": {
                "html": "<body><p data-pv-rect='0,0,600,40'>Call me Ishmael.</p></body>",
                "viewport": {"width": 800, "height": 600},
                "accessible": true
            }
        },
        "keyboard_target": "document",
        "hooks": ["readium.navigator.next"],
        "message_navigation": false
    }

Layout comes from ``data-pv-rect="left,top,width,height"`` attributes written
by the page-side collector script; computed iframe styles come from
``data-pv-style``.  Several payloads form a paged book: navigation actions
that the current page reacts to advance to the next payload.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString, Tag

from pagevoice.core.document import (
    ControlHandle,
    DocumentProvider,
    ElementHandle,
    FrameHandle,
    TextNodeHandle,
    iter_text_nodes,
)
from pagevoice.core.errors import DocumentAccessError
from pagevoice.core.types import Rect

Payload = Dict[str, Any]

DEFAULT_VIEWPORT = (1280.0, 800.0)


def _parse_viewport(value: Any, fallback: Tuple[float, float]) -> Tuple[float, float]:
    if isinstance(value, Mapping):
        try:
            return float(value.get("width")), float(value.get("height"))
        except (TypeError, ValueError):
            return fallback
    if isinstance(value, (list, tuple)) and len(value) == 2:
        try:
            return float(value[0]), float(value[1])
        except (TypeError, ValueError):
            return fallback
    return fallback


def parse_style(text: str) -> Dict[str, str]:
    style: Dict[str, str] = {}
    for declaration in str(text or "").split(";"):
        if ":" not in declaration:
            continue
        name, value = declaration.split(":", 1)
        name = name.strip().lower()
        if name:
            style[name] = value.strip().lower()
    return style


def parse_rect(value: str) -> Rect:
    parts = [p for p in str(value or "").replace(" ", ",").split(",") if p]
    if len(parts) != 4:
        raise DocumentAccessError(f"Malformed layout rectangle: {value!r}")
    try:
        left, top, width, height = (float(p) for p in parts)
    except ValueError as exc:
        raise DocumentAccessError(f"Malformed layout rectangle: {value!r}") from exc
    return Rect(left=left, top=top, width=width, height=height)


def _is_text_string(node: Any) -> bool:
    return isinstance(node, NavigableString) and not isinstance(node, PreformattedString)


class SnapshotTextNode(TextNodeHandle):
    def __init__(self, string: NavigableString, frame: Optional["SnapshotFrame"]) -> None:
        self._string = string
        self._frame = frame

    @property
    def text(self) -> str:
        return str(self._string)

    @property
    def parent(self) -> Optional["SnapshotElement"]:
        parent = self._string.parent
        if isinstance(parent, Tag):
            return SnapshotElement(parent, self._frame)
        return None


class SnapshotElement(ElementHandle):
    def __init__(self, tag: Tag, frame: Optional["SnapshotFrame"]) -> None:
        self._tag = tag
        self._frame = frame

    @property
    def tag(self) -> Tag:
        return self._tag

    @property
    def tag_name(self) -> str:
        return str(self._tag.name or "").upper()

    def children(self) -> List[Union[ElementHandle, TextNodeHandle]]:
        out: List[Union[ElementHandle, TextNodeHandle]] = []
        for child in self._tag.children:
            if isinstance(child, Tag):
                out.append(SnapshotElement(child, self._frame))
            elif _is_text_string(child):
                out.append(SnapshotTextNode(child, self._frame))
        return out

    def bounding_rect(self) -> Rect:
        raw = self._tag.get("data-pv-rect")
        if raw is None:
            raise DocumentAccessError(
                f"No layout information for <{self._tag.name}> element"
            )
        return parse_rect(raw)

    def owner_frame(self) -> Optional["SnapshotFrame"]:
        return self._frame

    def text_content(self) -> str:
        return "".join(node.text for node in iter_text_nodes(self))

    def inner_text(self) -> str:
        return "\n".join(node.text.strip() for node in iter_text_nodes(self))

    def focus(self) -> None:
        if self._frame is not None:
            self._frame.document.record("focus", "reader")


class SnapshotFrame(FrameHandle):
    def __init__(self, document: "SnapshotDocument", tag: Tag, key: str) -> None:
        self.document = document
        self._tag = tag
        self.key = key

    def _entry(self) -> Optional[Payload]:
        frames = self.document.current_payload.get("frames") or {}
        entry = frames.get(self.key) if isinstance(frames, Mapping) else None
        return entry if isinstance(entry, dict) else None

    def computed_style(self) -> Dict[str, str]:
        style = parse_style(self._tag.get("style", ""))
        style.update(parse_style(self._tag.get("data-pv-style", "")))
        return style

    def is_visible(self) -> bool:
        style = self.computed_style()
        if style.get("visibility") == "hidden" or style.get("display") == "none":
            return False
        opacity = style.get("opacity")
        if opacity is not None:
            try:
                return float(opacity) != 0.0
            except ValueError:
                return True
        return True

    def content_root(self) -> Optional[SnapshotElement]:
        entry = self._entry()
        if entry is None:
            return None
        if not entry.get("accessible", True):
            raise DocumentAccessError(f"Frame {self.key!r} is not accessible")
        soup = self.document.frame_soup(self.key, str(entry.get("html") or ""))
        body = soup.body or soup
        return SnapshotElement(body, self)

    def viewport_size(self) -> Tuple[float, float]:
        entry = self._entry() or {}
        return _parse_viewport(entry.get("viewport"), self.document.viewport_size())

    def post_message(self, message: Mapping[str, Any]) -> None:
        self.document.post_frame_message(self, dict(message))


class SnapshotControl(ControlHandle):
    def __init__(self, document: "SnapshotDocument", tag: Tag, selector: str) -> None:
        self._document = document
        self._tag = tag
        self.selector = selector

    def is_disabled(self) -> bool:
        if self._tag.has_attr("disabled"):
            return True
        if "disabled" in (self._tag.get("class") or []):
            return True
        return parse_style(self._tag.get("style", "")).get("display") == "none"

    def click(self) -> None:
        self._document.click_control(self)


class SnapshotDocument(DocumentProvider):
    """Paged, in-memory host document built from snapshot payloads."""

    def __init__(self, pages: Sequence[Union[Payload, str]], *, start_page: int = 0) -> None:
        self.pages: List[Payload] = [self._coerce_payload(p) for p in pages]
        if not self.pages:
            self.pages = [self._coerce_payload("")]
        self.page_index = max(0, min(int(start_page), len(self.pages) - 1))
        self.actions: List[Tuple[str, ...]] = []
        self._soup_cache: Dict[Tuple[int, str], BeautifulSoup] = {}

    # ---- construction ----------------------------------------------------
    @staticmethod
    def _coerce_payload(page: Union[Payload, str]) -> Payload:
        if isinstance(page, dict):
            return dict(page)
        # Bare HTML: treat it as the reader frame's content.
        return {
            "html": '<body><iframe title="Readium" data-pv-frame="main"></iframe></body>',
            "frames": {"main": {"html": str(page or "")}},
        }

    @classmethod
    def from_files(cls, paths: Sequence[Union[str, Path]]) -> "SnapshotDocument":
        pages: List[Union[Payload, str]] = []
        for path in paths:
            path = Path(path).expanduser()
            text = path.read_text(encoding="utf-8")
            if path.suffix.lower() == ".json":
                data = json.loads(text)
                if isinstance(data, list):
                    pages.extend(data)
                else:
                    pages.append(data)
            else:
                pages.append(text)
        return cls(pages)

    def load_payload(self, payload: Union[Payload, str]) -> None:
        """Replace the current page with a fresh snapshot."""
        self.pages[self.page_index] = self._coerce_payload(payload)
        self._soup_cache = {
            k: v for k, v in self._soup_cache.items() if k[0] != self.page_index
        }

    # ---- state -------------------------------------------------------------
    @property
    def current_payload(self) -> Payload:
        return self.pages[self.page_index]

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def record(self, *action: str) -> None:
        self.actions.append(tuple(action))

    def advance(self) -> bool:
        if self.page_index + 1 >= len(self.pages):
            return False
        self.page_index += 1
        return True

    def _soup(self, key: str, html: str) -> BeautifulSoup:
        cache_key = (self.page_index, key)
        soup = self._soup_cache.get(cache_key)
        if soup is None:
            soup = BeautifulSoup(html, "html.parser")
            self._soup_cache[cache_key] = soup
        return soup

    def top_soup(self) -> BeautifulSoup:
        return self._soup("", str(self.current_payload.get("html") or ""))

    def frame_soup(self, key: str, html: str) -> BeautifulSoup:
        return self._soup(f"frame:{key}", html)

    # ---- DocumentProvider ------------------------------------------------
    def location_url(self) -> str:
        url = self.current_payload.get("url")
        if url:
            return str(url)
        return f"snapshot://page/{self.page_index + 1}"

    def viewport_size(self) -> Tuple[float, float]:
        return _parse_viewport(self.current_payload.get("viewport"), DEFAULT_VIEWPORT)

    def query_frames(self, selector: str) -> List[SnapshotFrame]:
        frames: List[SnapshotFrame] = []
        for index, tag in enumerate(self.top_soup().select(selector)):
            if tag.name != "iframe":
                continue
            key = str(tag.get("data-pv-frame") or tag.get("id") or f"frame-{index}")
            frames.append(SnapshotFrame(self, tag, key))
        return frames

    def query_control(self, selector: str) -> Optional[SnapshotControl]:
        tag = self.top_soup().select_one(selector)
        if tag is None:
            return None
        return SnapshotControl(self, tag, selector)

    def dispatch_key(self, key: str, target: Optional[ElementHandle] = None) -> None:
        where = "reader" if target is not None else "document"
        self.record("key", key, where)
        listens_on = self.current_payload.get("keyboard_target", "document")
        if key == "ArrowRight" and listens_on == where:
            self.advance()

    def reader_hook(self, path: str) -> Optional[Callable[[], Any]]:
        hooks = self.current_payload.get("hooks") or []
        if path not in hooks:
            return None

        def _invoke() -> bool:
            return self.invoke_hook(path)

        return _invoke

    def selection_text(self) -> str:
        return str(self.current_payload.get("selection") or "")

    # ---- navigation actions (overridden by live documents) ---------------
    def click_control(self, control: SnapshotControl) -> None:
        self.record("click", control.selector)
        if not control.is_disabled():
            self.advance()

    def invoke_hook(self, path: str) -> bool:
        self.record("hook", path)
        return self.advance()

    def post_frame_message(self, frame: SnapshotFrame, message: Dict[str, Any]) -> None:
        self.record("post_message", frame.key, json.dumps(message, sort_keys=True))
        if self.current_payload.get("message_navigation") and message.get("action") == "nextPage":
            self.advance()
