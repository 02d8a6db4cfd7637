from __future__ import annotations

from pagevoice.core.state import PlaybackStateMachine
from pagevoice.core.types import PlaybackState


def test_initial_state_is_idle_and_enabled() -> None:
    state = PlaybackStateMachine().get_state()
    assert state == PlaybackState()
    assert state.is_enabled is True
    assert state.phase == "idle"


def test_playing_and_paused_are_mutually_exclusive() -> None:
    machine = PlaybackStateMachine()
    machine.set_playing(True)
    assert machine.state.is_playing and not machine.state.is_paused
    machine.set_paused(True)
    assert machine.state.is_paused and not machine.state.is_playing
    machine.set_playing(True)
    assert machine.state.is_playing and not machine.state.is_paused
    machine.set_paused(False)
    assert machine.state.is_playing and not machine.state.is_paused


def test_disable_clears_all_activity() -> None:
    machine = PlaybackStateMachine()
    machine.set_generating(True)
    machine.set_playing(True)
    machine.set_error("boom")
    machine.disable()
    state = machine.get_state()
    assert state.is_enabled is False
    assert not (state.is_playing or state.is_paused or state.is_generating)
    assert state.error is None


def test_toggle_and_enable_clear_error() -> None:
    machine = PlaybackStateMachine()
    machine.toggle()
    assert machine.state.is_enabled is False
    machine.set_error("still broken")
    machine.toggle()
    assert machine.state.is_enabled is True
    assert machine.state.error is None


def test_reset_keeps_enabled_flag_and_adapter() -> None:
    machine = PlaybackStateMachine()
    machine.set_adapter("mock")
    machine.set_playing(True)
    machine.set_error("x")
    machine.reset()
    state = machine.get_state()
    assert state.current_adapter == "mock"
    assert state.is_enabled is True
    assert state.phase == "idle"


def test_each_mutation_notifies_once_with_a_snapshot() -> None:
    machine = PlaybackStateMachine()
    seen = []
    machine.subscribe(seen.append)
    machine.set_generating(True)
    machine.set_playing(True)
    machine.set_paused(True)
    machine.reset()
    assert [s.phase for s in seen] == ["generating", "playing", "paused", "idle"]
    assert seen[0] is not seen[1]


def test_failing_listener_does_not_block_others() -> None:
    machine = PlaybackStateMachine()
    seen = []

    def _broken(state: PlaybackState) -> None:
        raise RuntimeError("listener bug")

    machine.subscribe(_broken)
    machine.subscribe(seen.append)
    machine.set_playing(True)
    assert len(seen) == 1


def test_unsubscribe_stops_notifications() -> None:
    machine = PlaybackStateMachine()
    seen = []
    unsubscribe = machine.subscribe(seen.append)
    machine.set_playing(True)
    unsubscribe()
    unsubscribe()
    machine.set_playing(False)
    assert len(seen) == 1


def test_error_phase_wins_and_serializes() -> None:
    machine = PlaybackStateMachine()
    machine.set_playing(True)
    machine.set_error("TTS Error: gone")
    payload = machine.state.to_dict()
    assert payload["phase"] == "error"
    assert payload["error"] == "TTS Error: gone"
    assert payload["is_playing"] is True
