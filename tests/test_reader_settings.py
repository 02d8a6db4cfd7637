from __future__ import annotations

import json
from pathlib import Path


def _isolate(tmp_path: Path, monkeypatch):
    from pagevoice.utils import reader_settings as mod

    monkeypatch.setattr(mod, "_SETTINGS_DIR", tmp_path)
    monkeypatch.setattr(mod, "_SETTINGS_FILE", tmp_path / "reader_settings.json")
    return mod


def test_defaults_when_no_file(tmp_path: Path, monkeypatch) -> None:
    mod = _isolate(tmp_path, monkeypatch)
    settings = mod.load_reader_settings()
    assert settings["adapter"] == "mock"
    assert settings["fallback_text_limit"] == 2000
    assert settings["chunk_text_limit"] == 1000
    assert settings["whole_page_reading"] is True
    assert settings["max_chunks_per_pass"] == 3


def test_save_merges_partial_updates(tmp_path: Path, monkeypatch) -> None:
    mod = _isolate(tmp_path, monkeypatch)
    mod.save_reader_settings({"adapter": "azure", "max_page_turns": 5})
    mod.save_reader_settings({"wholePageReading": False})

    persisted = mod.load_reader_settings()
    assert persisted["adapter"] == "azure"
    assert persisted["max_page_turns"] == 5
    assert persisted["whole_page_reading"] is False
    assert "wholePageReading" not in persisted


def test_corrupt_file_falls_back_to_defaults(tmp_path: Path, monkeypatch) -> None:
    mod = _isolate(tmp_path, monkeypatch)
    (tmp_path / "reader_settings.json").write_text("{not json", encoding="utf-8")
    assert mod.load_reader_settings() == mod.default_reader_settings()


def test_typed_settings_are_clamped(tmp_path: Path, monkeypatch) -> None:
    mod = _isolate(tmp_path, monkeypatch)
    (tmp_path / "reader_settings.json").write_text(
        json.dumps(
            {
                "adapter": " ElevenLabs ",
                "maxChunksPerPass": 0,
                "navigationPollIntervalS": 0,
                "pregenerate": "yes",
                "autoAdvance": "off",
            }
        ),
        encoding="utf-8",
    )
    settings = mod.ReaderSettings.load()
    assert settings.adapter == "elevenlabs"
    assert settings.max_chunks_per_pass == 1
    assert settings.navigation_poll_interval_s == 0.001
    assert settings.pregenerate is True
    assert settings.auto_advance is False
    assert settings.to_dict()["chunk_text_limit"] == 1000


def test_from_dict_ignores_none_values() -> None:
    from pagevoice.utils.reader_settings import ReaderSettings

    settings = ReaderSettings.from_dict({"fallback_text_limit": None, "max_page_turns": 2})
    assert settings.fallback_text_limit == 2000
    assert settings.max_page_turns == 2


def test_invalid_values_fall_back_per_key(tmp_path: Path, monkeypatch) -> None:
    mod = _isolate(tmp_path, monkeypatch)
    (tmp_path / "reader_settings.json").write_text(
        json.dumps(
            {
                "maxChunksPerPass": "abc",
                "navigationTimeoutS": [3],
                "maxPageTurns": "7",
            }
        ),
        encoding="utf-8",
    )
    settings = mod.ReaderSettings.load()
    assert settings.max_chunks_per_pass == 3
    assert settings.navigation_timeout_s == 3.0
    assert settings.max_page_turns == 7
