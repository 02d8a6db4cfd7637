from __future__ import annotations

import json
from pathlib import Path

import pytest

from pagevoice.cli import main as pagevoice_read


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path: Path, monkeypatch) -> None:
    from pagevoice.utils import reader_settings as mod

    monkeypatch.setattr(mod, "_SETTINGS_DIR", tmp_path / "settings")
    monkeypatch.setattr(mod, "_SETTINGS_FILE", tmp_path / "settings" / "reader_settings.json")
    monkeypatch.setenv("PAGEVOICE_DISABLE_AUDIO", "1")


def _write_page(tmp_path: Path) -> Path:
    page = tmp_path / "page.html"
    page.write_text(
        "<body><p>Call me Ishmael.</p><p>Some years ago.</p><p>Never mind how long.</p></body>",
        encoding="utf-8",
    )
    return page


def test_list_adapters(capsys) -> None:
    assert pagevoice_read(["--list-adapters"]) == 0
    rows = json.loads(capsys.readouterr().out)
    assert {"key": "mock", "name": "Mock tone generator", "implemented": True} in rows


def test_chunks_only_prints_extracted_text(tmp_path: Path, capsys) -> None:
    page = _write_page(tmp_path)
    assert pagevoice_read(["--chunks-only", "--max-chunks", "2", str(page)]) == 0
    chunks = json.loads(capsys.readouterr().out)
    assert chunks == [
        {"text": "Call me Ishmael.", "element_type": "P"},
        {"text": "Some years ago.", "element_type": "P"},
    ]


def test_reads_a_page_with_the_mock_adapter(tmp_path: Path, capsys) -> None:
    page = _write_page(tmp_path)
    rc = pagevoice_read(["--no-advance", "--time-scale", "0.001", str(page)])
    assert rc == 0
    lines = [json.loads(line) for line in capsys.readouterr().out.splitlines() if line]
    summary = lines[-1]
    assert summary["status"] == "ok"
    assert summary["adapter"] == "mock"
    assert summary["chunks_played"] == 3
    phases = [line["phase"] for line in lines[:-1]]
    assert phases[0] == "generating"
    assert phases[-1] == "idle"


def test_bad_input_exit_codes(tmp_path: Path, capsys) -> None:
    assert pagevoice_read([]) == 2
    assert pagevoice_read([str(tmp_path / "missing.html")]) == 2
    broken = tmp_path / "broken.json"
    broken.write_text("{nope", encoding="utf-8")
    assert pagevoice_read([str(broken)]) == 2
    page = _write_page(tmp_path)
    assert pagevoice_read(["--adapter", "azure", str(page)]) == 2
    err = capsys.readouterr().err
    assert "not installed" in err


def test_invalid_settings_values_do_not_break_reading(tmp_path: Path, capsys) -> None:
    settings_dir = tmp_path / "settings"
    settings_dir.mkdir()
    (settings_dir / "reader_settings.json").write_text(
        json.dumps({"maxChunksPerPass": "abc"}), encoding="utf-8"
    )
    page = _write_page(tmp_path)
    assert pagevoice_read(["--chunks-only", str(page)]) == 0
    chunks = json.loads(capsys.readouterr().out)
    assert len(chunks) == 3
