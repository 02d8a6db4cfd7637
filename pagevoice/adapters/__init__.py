"""Speech adapters and the registry used to construct them by name."""

from .base import SpeechAdapter
from .factory import (
    AdapterInfo,
    available_adapters,
    create_adapter,
    register_adapter,
    unregister_adapter,
)

__all__ = [
    "SpeechAdapter",
    "AdapterInfo",
    "available_adapters",
    "create_adapter",
    "register_adapter",
    "unregister_adapter",
]
