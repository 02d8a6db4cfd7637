"""Sound-card output for the mock tone adapter's ``audible`` mode.

Hosts without a sound card (CI, containers) are detected up front, so the
adapter can call ``play_audio_buffer`` unconditionally and read-aloud keeps
its timing whether or not anything is heard.  Set ``PAGEVOICE_DISABLE_AUDIO``
to skip output entirely.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import Optional

from pagevoice.utils.logger import logger

try:
    import sounddevice as sd
except Exception as exc:  # pragma: no cover - depends on PortAudio
    sd = None
    _IMPORT_ERROR = str(exc)
else:
    _IMPORT_ERROR = ""

# Cached result of the device probe; reset to None to probe again.
_AUDIO_AVAILABLE: Optional[bool] = None


def audio_disabled_by_env() -> bool:
    value = os.getenv("PAGEVOICE_DISABLE_AUDIO", "").strip().lower()
    return value in {"1", "true", "yes", "on"}


def _linux_has_audio_device() -> bool:
    if not sys.platform.startswith("linux"):
        return True
    snd = Path("/dev/snd")
    return snd.is_dir() and any(snd.iterdir())


def _why_output_is_unusable() -> str:
    if not _linux_has_audio_device():
        return "no ALSA devices under /dev/snd"
    if sd is None:
        return f"sounddevice unavailable ({_IMPORT_ERROR or 'not installed'})"
    try:
        devices = sd.query_devices()
    except Exception as exc:  # pragma: no cover - depends on PortAudio
        return f"cannot list output devices ({exc})"
    if not any(d.get("max_output_channels", 0) > 0 for d in devices):
        return "no output devices"
    return ""


def audio_playback_available() -> bool:
    global _AUDIO_AVAILABLE
    if audio_disabled_by_env():
        return False
    if _AUDIO_AVAILABLE is None:
        reason = _why_output_is_unusable()
        if reason:
            logger.info("Mock speech is silent: %s.", reason)
        _AUDIO_AVAILABLE = not reason
    return _AUDIO_AVAILABLE


def play_audio_buffer(samples, sample_rate: int) -> bool:
    """Start playing ``samples`` without blocking; False when skipped."""
    if samples is None or getattr(samples, "size", 0) == 0:
        return False
    if not sample_rate or sample_rate <= 0:
        return False
    if not audio_playback_available():
        return False
    try:
        sd.play(samples, sample_rate, blocking=False)
    except Exception as exc:  # pragma: no cover - depends on PortAudio
        logger.warning("Tone playback failed: %s", exc)
        return False
    return True


def stop_audio_playback() -> None:
    if sd is None:
        return
    try:
        sd.stop()
    except Exception as exc:  # pragma: no cover - depends on PortAudio
        logger.debug("Stopping tone playback failed: %s", exc)
