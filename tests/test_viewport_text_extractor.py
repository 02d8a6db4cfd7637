from __future__ import annotations

import asyncio

from pagevoice.core.extractor import (
    NO_READABLE_TEXT,
    UNABLE_TO_EXTRACT_TEXT,
    ViewportTextExtractor,
    limit_text_length,
)
from pagevoice.core.document import ElementHandle
from pagevoice.core.locator import ReaderLocator
from pagevoice.core.snapshot import SnapshotDocument
from pagevoice.core.types import Rect

_READER_SHELL = (
    '<body><iframe class="readium-navigator-iframe" data-pv-frame="main"></iframe></body>'
)


def _page(body: str, **extra) -> dict:
    payload = {
        "html": _READER_SHELL,
        "frames": {
            "main": {
                "html": f"<body>{body}</body>",
                "viewport": {"width": 800, "height": 600},
            }
        },
    }
    payload.update(extra)
    return payload


def _extract(payload) -> list:
    return ViewportTextExtractor(SnapshotDocument([payload])).extract_chunks_now()


def test_visible_paragraphs_become_ordered_chunks() -> None:
    body = (
        '<p data-pv-rect="0,0,600,40">First paragraph.</p>'
        '<p data-pv-rect="0,50,600,40">Second paragraph.</p>'
        '<p data-pv-rect="0,100,600,40">Third paragraph.</p>'
    )
    chunks = _extract(_page(body))
    assert [c.text for c in chunks] == [
        "First paragraph.",
        "Second paragraph.",
        "Third paragraph.",
    ]
    assert {c.element_type for c in chunks} == {"P"}


def test_offscreen_and_zero_area_text_is_skipped() -> None:
    body = (
        '<p data-pv-rect="0,-100,600,40">Scrolled past.</p>'
        '<p data-pv-rect="0,580,600,40">Partially visible.</p>'
        '<p data-pv-rect="0,100,0,0">Collapsed.</p>'
        '<p data-pv-rect="900,100,100,40">Beside the viewport.</p>'
    )
    chunks = _extract(_page(body))
    assert [c.text for c in chunks] == ["Partially visible."]


def test_element_type_is_the_immediate_parent() -> None:
    body = (
        '<p data-pv-rect="0,0,600,40">Call me '
        '<em data-pv-rect="60,0,80,40">Ishmael</em>.</p>'
    )
    chunks = _extract(_page(body))
    assert [(c.text, c.element_type) for c in chunks] == [
        ("Call me", "P"),
        ("Ishmael", "EM"),
        (".", "P"),
    ]


def test_scripts_and_styles_are_not_read() -> None:
    body = (
        "<style>p { color: red; }</style>"
        '<p data-pv-rect="0,0,600,40">Readable.</p>'
        "<script>window.x = 1;</script>"
    )
    assert [c.text for c in _extract(_page(body))] == ["Readable."]


def test_short_hidden_chapter_is_read_whole() -> None:
    body = "".join(
        f'<p data-pv-rect="0,{2000 + i * 50},600,40">{"Line %d. " % i * 10}</p>'
        for i in range(5)
    )
    chunks = _extract(_page(body))
    assert len(chunks) == 5
    assert sum(len(c.text) for c in chunks) < 2000
    assert not any(c.is_fallback for c in chunks)


def test_long_hidden_chapter_is_capped_after_crossing_the_chunk_limit() -> None:
    paragraph = ("word " * 20).strip()
    body = "".join(
        f'<p data-pv-rect="0,{2000 + i * 50},600,40">{paragraph}</p>' for i in range(50)
    )
    chunks = _extract(_page(body))
    lengths = [len(c.text) for c in chunks]
    assert len(paragraph) == 99
    assert len(chunks) == 11
    assert sum(lengths) > 1000
    assert sum(lengths[:-1]) <= 1000


def test_custom_limits_are_honoured() -> None:
    body = "".join(
        f'<p data-pv-rect="0,{2000 + i * 50},600,40">Sentence number {i}.</p>'
        for i in range(20)
    )
    extractor = ViewportTextExtractor(
        SnapshotDocument([_page(body)]), fallback_text_limit=50, chunk_text_limit=40
    )
    chunks = extractor.extract_chunks_now()
    assert [c.text for c in chunks] == [
        "Sentence number 0.",
        "Sentence number 1.",
        "Sentence number 2.",
    ]


def test_missing_layout_is_treated_as_visible() -> None:
    chunks = _extract(_page("<p>No geometry here.</p><div>Nor here.</div>"))
    assert [c.text for c in chunks] == ["No geometry here.", "Nor here."]


def test_no_reader_frame_yields_the_marker_chunk() -> None:
    chunks = _extract({"html": "<body><p>Host page only.</p></body>"})
    assert len(chunks) == 1
    assert chunks[0].text == UNABLE_TO_EXTRACT_TEXT
    assert chunks[0].element_type == "fallback"


def test_no_reader_frame_prefers_the_selection() -> None:
    chunks = _extract(
        {"html": "<body><p>Host page only.</p></body>", "selection": "  picked words "}
    )
    assert [(c.text, c.element_type) for c in chunks] == [("picked words", "fallback")]


def test_inaccessible_frame_falls_back() -> None:
    payload = _page('<p data-pv-rect="0,0,600,40">Secret.</p>')
    payload["frames"]["main"]["accessible"] = False
    chunks = _extract(payload)
    assert chunks[0].text == UNABLE_TO_EXTRACT_TEXT
    assert chunks[0].is_fallback


def test_hidden_iframe_is_skipped_for_the_visible_one() -> None:
    payload = {
        "html": (
            "<body>"
            '<iframe class="readium-navigator-iframe" data-pv-frame="old" '
            'data-pv-style="visibility:hidden"></iframe>'
            '<iframe class="readium-navigator-iframe" data-pv-frame="main"></iframe>'
            "</body>"
        ),
        "frames": {
            "old": {"html": '<body><p data-pv-rect="0,0,10,10">Old page.</p></body>'},
            "main": {"html": '<body><p data-pv-rect="0,0,10,10">Current page.</p></body>'},
        },
    }
    assert [c.text for c in _extract(payload)] == ["Current page."]


def test_blank_reader_uses_selection_then_marker() -> None:
    body = '<p data-pv-rect="0,0,600,40">   </p>'
    chunks = _extract(_page(body, selection="highlighted"))
    assert [(c.text, c.element_type) for c in chunks] == [("highlighted", "fallback")]
    assert _extract(_page(body))[0].text == UNABLE_TO_EXTRACT_TEXT


def test_extract_chunks_is_awaitable() -> None:
    extractor = ViewportTextExtractor(
        SnapshotDocument([_page('<p data-pv-rect="0,0,10,10">Async.</p>')])
    )
    chunks = asyncio.run(extractor.extract_chunks())
    assert [c.text for c in chunks] == ["Async."]


def test_limit_text_length_keeps_whole_sentences() -> None:
    assert limit_text_length("One. Two. Three.", 9) == "One. Two."
    assert limit_text_length("One.\n\n  Two!", 100) == "One. Two!"


def test_limit_text_length_cuts_long_sentence_on_a_word() -> None:
    assert limit_text_length("aaaa bbbb cccc", 10) == "aaaa bbbb"


def test_limit_text_length_empty_text() -> None:
    assert limit_text_length("   ", 10) == NO_READABLE_TEXT


class _DetachedRoot(ElementHandle):
    """A reader body that can no longer be walked but still reports its text."""

    tag_name = "BODY"

    def children(self):
        raise RuntimeError("node is detached")

    def bounding_rect(self) -> Rect:
        raise RuntimeError("node is detached")

    def owner_frame(self):
        return None

    def text_content(self) -> str:
        raise RuntimeError("node is detached")

    def inner_text(self) -> str:
        return "  The whale surfaced.\n\nIt dove again.  "


class _FixedRootLocator(ReaderLocator):
    def __init__(self, document, root) -> None:
        super().__init__(document)
        self.root = root

    def find_reader_root(self):
        return self.root


def test_unwalkable_root_falls_back_to_its_inner_text() -> None:
    document = SnapshotDocument([_page("")])
    extractor = ViewportTextExtractor(
        document, locator=_FixedRootLocator(document, _DetachedRoot())
    )
    chunks = extractor.extract_chunks_now()
    assert [(c.text, c.element_type) for c in chunks] == [
        ("The whale surfaced. It dove again.", "fallback")
    ]
