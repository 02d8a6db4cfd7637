from __future__ import annotations

import pytest

from pagevoice.adapters import (
    available_adapters,
    create_adapter,
    register_adapter,
    unregister_adapter,
)
from pagevoice.adapters.factory import adapter_keys
from pagevoice.adapters.mock import MockSpeechAdapter
from pagevoice.core.errors import AdapterNotAvailableError


def test_builtin_and_external_adapters_are_listed() -> None:
    infos = {info.key: info for info in available_adapters()}
    assert infos["mock"].is_implemented is True
    assert infos["elevenlabs"].is_implemented is False
    assert infos["azure"].name == "Azure TTS"
    assert adapter_keys()[0] == "mock"


def test_create_mock_adapter_by_name() -> None:
    adapter = create_adapter(" Mock ", words_per_minute=200)
    assert isinstance(adapter, MockSpeechAdapter)
    assert adapter.name == "mock"
    assert adapter.words_per_minute == 200


def test_external_and_unknown_adapters_raise() -> None:
    with pytest.raises(AdapterNotAvailableError, match="ElevenLabs"):
        create_adapter("elevenlabs")
    with pytest.raises(ValueError):
        create_adapter("azure")
    with pytest.raises(AdapterNotAvailableError, match="Unknown adapter type"):
        create_adapter("carrier-pigeon")


def test_register_custom_adapter() -> None:
    def _factory(**kwargs):
        adapter = MockSpeechAdapter(**kwargs)
        adapter.name = ""
        return adapter

    register_adapter("quiet", _factory, display_name="Quiet")
    try:
        adapter = create_adapter("quiet", time_scale=0.5)
        assert adapter.name == "quiet"
        assert adapter.time_scale == 0.5
        assert {"key": "quiet", "name": "Quiet"} in [
            {"key": i.key, "name": i.name} for i in available_adapters()
        ]
        register_adapter("quiet", _factory)
        with pytest.raises(ValueError, match="Duplicate"):
            register_adapter("quiet", lambda **kw: MockSpeechAdapter())
    finally:
        unregister_adapter("quiet")
    assert "quiet" not in adapter_keys()


def test_register_rejects_empty_key() -> None:
    with pytest.raises(ValueError):
        register_adapter("  ", MockSpeechAdapter)
