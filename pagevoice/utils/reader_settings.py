from __future__ import annotations

import json
from copy import deepcopy
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from pagevoice.utils.logger import logger

_SETTINGS_DIR = Path.home() / ".pagevoice"
_SETTINGS_FILE = _SETTINGS_DIR / "reader_settings.json"

_DEFAULT_SETTINGS: Dict[str, Any] = {
    "adapter": "mock",
    "whole_page_reading": True,
    "max_chunks_per_pass": 3,
    "fallback_text_limit": 2000,
    "chunk_text_limit": 1000,
    "navigation_timeout_s": 3.0,
    "navigation_poll_interval_s": 0.1,
    "page_settle_delay_s": 1.0,
    "page_settle_attempts": 10,
    "page_settle_interval_s": 0.2,
    "auto_advance": True,
    "max_page_turns": 100,
    "use_mock_tts": False,
    "mock_words_per_minute": 150,
    "pregenerate": False,
}


def _camel_to_snake(name: str) -> str:
    out = []
    for i, ch in enumerate(str(name)):
        if ch.isupper() and i > 0:
            out.append("_")
        out.append(ch.lower())
    return "".join(out)


def _normalise_settings(settings: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in _DEFAULT_SETTINGS.items():
        settings.setdefault(key, value)
    return settings


def load_reader_settings() -> Dict[str, Any]:
    """Load reader settings from disk, falling back to defaults."""
    if not _SETTINGS_FILE.exists():
        return deepcopy(_DEFAULT_SETTINGS)

    try:
        with _SETTINGS_FILE.open("r", encoding="utf-8") as fh:
            persisted = json.load(fh)
    except (json.JSONDecodeError, OSError):
        return deepcopy(_DEFAULT_SETTINGS)

    merged = deepcopy(_DEFAULT_SETTINGS)
    if isinstance(persisted, dict):
        merged.update({_camel_to_snake(k): v for k, v in persisted.items()})
    return _normalise_settings(merged)


def save_reader_settings(settings: Dict[str, Any]) -> None:
    """Persist (and merge) reader settings to disk."""
    merged = load_reader_settings()
    if isinstance(settings, dict):
        merged.update({_camel_to_snake(k): v for k, v in settings.items()})
    merged = _normalise_settings(merged)
    _SETTINGS_DIR.mkdir(parents=True, exist_ok=True)
    with _SETTINGS_FILE.open("w", encoding="utf-8") as fh:
        json.dump(merged, fh, indent=2)


def default_reader_settings() -> Dict[str, Any]:
    """Return a copy of the default reader settings."""
    return deepcopy(_DEFAULT_SETTINGS)


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    return bool(value)


@dataclass
class ReaderSettings:
    adapter: str = "mock"
    whole_page_reading: bool = True
    max_chunks_per_pass: int = 3
    fallback_text_limit: int = 2000
    chunk_text_limit: int = 1000
    navigation_timeout_s: float = 3.0
    navigation_poll_interval_s: float = 0.1
    page_settle_delay_s: float = 1.0
    page_settle_attempts: int = 10
    page_settle_interval_s: float = 0.2
    auto_advance: bool = True
    max_page_turns: int = 100
    use_mock_tts: bool = False
    mock_words_per_minute: int = 150
    pregenerate: bool = False

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ReaderSettings":
        payload = {_camel_to_snake(k): v for k, v in dict(data or {}).items()}
        defaults = default_reader_settings()

        def pick(key: str, convert: Callable[[Any], Any] = lambda v: v) -> Any:
            value = payload.get(key)
            if value is None:
                return convert(defaults[key])
            try:
                return convert(value)
            except (TypeError, ValueError):
                logger.warning(
                    "Ignoring invalid reader setting %s=%r; using %r.",
                    key,
                    value,
                    defaults[key],
                )
                return convert(defaults[key])

        return cls(
            adapter=str(pick("adapter") or defaults["adapter"]).strip().lower(),
            whole_page_reading=pick("whole_page_reading", _as_bool),
            max_chunks_per_pass=max(1, pick("max_chunks_per_pass", int)),
            fallback_text_limit=max(0, pick("fallback_text_limit", int)),
            chunk_text_limit=max(1, pick("chunk_text_limit", int)),
            navigation_timeout_s=max(0.0, pick("navigation_timeout_s", float)),
            navigation_poll_interval_s=max(
                0.001, pick("navigation_poll_interval_s", float)
            ),
            page_settle_delay_s=max(0.0, pick("page_settle_delay_s", float)),
            page_settle_attempts=max(0, pick("page_settle_attempts", int)),
            page_settle_interval_s=max(0.0, pick("page_settle_interval_s", float)),
            auto_advance=pick("auto_advance", _as_bool),
            max_page_turns=max(0, pick("max_page_turns", int)),
            use_mock_tts=pick("use_mock_tts", _as_bool),
            mock_words_per_minute=max(1, pick("mock_words_per_minute", int)),
            pregenerate=pick("pregenerate", _as_bool),
        )

    @classmethod
    def load(cls) -> "ReaderSettings":
        return cls.from_dict(load_reader_settings())

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}
