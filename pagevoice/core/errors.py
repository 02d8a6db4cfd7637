from __future__ import annotations

from typing import Any


class PagevoiceError(RuntimeError):
    """Base exception for read-aloud failures."""


class DocumentAccessError(PagevoiceError):
    """Raised when the reader document (or one of its frames) cannot be read."""


class SpeechAdapterError(PagevoiceError):
    """Raised by speech adapters when an utterance cannot be synthesized or played."""

    def __init__(self, message: str, *, chunk_index: int | None = None) -> None:
        super().__init__(message)
        self.chunk_index = chunk_index


class AdapterNotAvailableError(PagevoiceError, ValueError):
    """Raised when an adapter name is unknown or has no implementation."""


def extract_error_message(error: Any, fallback: str = "Unknown error occurred") -> str:
    """Return a human readable message for an exception or error payload."""
    if isinstance(error, str):
        return error or fallback
    if isinstance(error, BaseException):
        return str(error) or fallback
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
        nested = error.get("error")
        if nested is not None and nested is not error:
            return extract_error_message(nested, fallback)
        return fallback
    message = getattr(error, "message", None)
    if isinstance(message, str) and message:
        return message
    return fallback
