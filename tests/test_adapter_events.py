from __future__ import annotations

import pytest

from pagevoice.core.events import (
    AdapterEvent,
    AdapterEventBus,
    EndEvent,
    PlayEvent,
    WordBoundaryEvent,
    resolve_event_type,
)


def test_resolve_event_type_accepts_names_and_classes() -> None:
    assert resolve_event_type("play") is PlayEvent
    assert resolve_event_type("wordBoundary") is WordBoundaryEvent
    assert resolve_event_type("word_boundary") is WordBoundaryEvent
    assert resolve_event_type(EndEvent) is EndEvent
    with pytest.raises(ValueError):
        resolve_event_type("explode")
    with pytest.raises(ValueError):
        resolve_event_type(AdapterEvent)


def test_bus_dispatches_in_subscription_order_by_type() -> None:
    bus = AdapterEventBus()
    calls = []
    bus.on(PlayEvent, lambda e: calls.append(("first", e.text)))
    bus.on("play", lambda e: calls.append(("second", e.text)))
    bus.on(EndEvent, lambda e: calls.append(("end", e.request_id)))

    bus.emit(PlayEvent(request_id="r1", text="hello"))
    bus.emit(EndEvent(request_id="r1"))
    assert calls == [("first", "hello"), ("second", "hello"), ("end", "r1")]


def test_off_and_clear_remove_subscribers() -> None:
    bus = AdapterEventBus()
    calls = []

    def _cb(event) -> None:
        calls.append(event)

    bus.on(PlayEvent, _cb)
    assert bus.subscriber_count("play") == 1
    bus.off(PlayEvent, _cb)
    bus.off(PlayEvent, _cb)
    bus.emit(PlayEvent())
    assert calls == []

    bus.on(EndEvent, _cb)
    bus.clear()
    bus.emit(EndEvent())
    assert calls == []
    assert bus.subscriber_count(EndEvent) == 0


def test_callback_failure_is_contained() -> None:
    bus = AdapterEventBus()
    calls = []

    def _boom(event) -> None:
        raise RuntimeError("subscriber bug")

    bus.on(EndEvent, _boom)
    bus.on(EndEvent, calls.append)
    bus.emit(EndEvent(request_id="x"))
    assert [e.request_id for e in calls] == ["x"]
