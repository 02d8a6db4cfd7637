from __future__ import annotations

import numpy as np

from pagevoice.utils import audio_playback


def test_env_flag_disables_playback(monkeypatch) -> None:
    monkeypatch.setenv("PAGEVOICE_DISABLE_AUDIO", "true")
    assert audio_playback.audio_disabled_by_env() is True
    assert audio_playback.audio_playback_available() is False
    assert audio_playback.play_audio_buffer(np.zeros(10, dtype=np.float32), 22050) is False


def test_empty_or_invalid_buffers_are_skipped(monkeypatch) -> None:
    monkeypatch.delenv("PAGEVOICE_DISABLE_AUDIO", raising=False)
    assert audio_playback.play_audio_buffer(np.zeros(0, dtype=np.float32), 22050) is False
    assert audio_playback.play_audio_buffer(np.zeros(10, dtype=np.float32), 0) is False


def test_missing_sounddevice_is_reported_unavailable(monkeypatch) -> None:
    monkeypatch.delenv("PAGEVOICE_DISABLE_AUDIO", raising=False)
    monkeypatch.setattr(audio_playback, "sd", None)
    monkeypatch.setattr(audio_playback, "_AUDIO_AVAILABLE", None)
    monkeypatch.setattr(audio_playback, "_linux_has_audio_device", lambda: True)
    assert audio_playback.audio_playback_available() is False
    audio_playback.stop_audio_playback()
