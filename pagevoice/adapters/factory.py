from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from pagevoice.adapters.base import SpeechAdapter
from pagevoice.core.errors import AdapterNotAvailableError

AdapterFactory = Callable[..., SpeechAdapter]


@dataclass(frozen=True)
class AdapterInfo:
    key: str
    name: str
    is_implemented: bool


_REGISTRY: Dict[str, AdapterFactory] = {}
_DISPLAY_NAMES: Dict[str, str] = {}

# Vendor backends live outside this package; they register themselves on import.
_KNOWN_EXTERNAL: Dict[str, str] = {
    "elevenlabs": "ElevenLabs",
    "azure": "Azure TTS",
}


def _normalize(name: str) -> str:
    return str(name or "").strip().lower()


def register_adapter(
    key: str, factory: AdapterFactory, *, display_name: Optional[str] = None
) -> AdapterFactory:
    adapter_key = _normalize(key)
    if not adapter_key:
        raise ValueError("Adapter key must be a non-empty string")
    existing = _REGISTRY.get(adapter_key)
    if existing is not None and existing is not factory:
        raise ValueError(f"Duplicate speech adapter key: {adapter_key!r}")
    _REGISTRY[adapter_key] = factory
    _DISPLAY_NAMES[adapter_key] = display_name or _KNOWN_EXTERNAL.get(
        adapter_key, adapter_key.title()
    )
    return factory


def unregister_adapter(key: str) -> None:
    adapter_key = _normalize(key)
    _REGISTRY.pop(adapter_key, None)
    _DISPLAY_NAMES.pop(adapter_key, None)


def available_adapters() -> List[AdapterInfo]:
    infos = [
        AdapterInfo(key=key, name=_DISPLAY_NAMES.get(key, key), is_implemented=True)
        for key in _REGISTRY
    ]
    for key, display in _KNOWN_EXTERNAL.items():
        if key not in _REGISTRY:
            infos.append(AdapterInfo(key=key, name=display, is_implemented=False))
    return infos


def adapter_keys() -> List[str]:
    return [info.key for info in available_adapters()]


def create_adapter(key: str, **kwargs: Any) -> SpeechAdapter:
    adapter_key = _normalize(key)
    factory = _REGISTRY.get(adapter_key)
    if factory is None:
        if adapter_key in _KNOWN_EXTERNAL:
            raise AdapterNotAvailableError(
                f"The {_KNOWN_EXTERNAL[adapter_key]} adapter is not installed"
            )
        raise AdapterNotAvailableError(f"Unknown adapter type: {key!r}")
    adapter = factory(**kwargs)
    if not adapter.name:
        adapter.name = adapter_key
    return adapter


def _create_mock(**kwargs: Any) -> SpeechAdapter:
    from pagevoice.adapters.mock import MockSpeechAdapter

    return MockSpeechAdapter(**kwargs)


register_adapter("mock", _create_mock, display_name="Mock tone generator")
