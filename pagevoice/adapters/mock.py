"""Offline speech adapter that "reads" chunks as short sine tones.

Used for development without vendor credentials, for demos from the command
line, and throughout the test-suite.  Each utterance lasts as long as the
text would take to read at ``words_per_minute`` (scaled by ``time_scale``),
and the adapter reports the same lifecycle events a real backend does.
"""

from __future__ import annotations

import asyncio
import io
from typing import Dict, Iterable, List, Optional

import numpy as np
import soundfile as sf

from pagevoice.adapters.base import SpeechAdapter
from pagevoice.core.errors import SpeechAdapterError
from pagevoice.core.events import (
    EndEvent,
    PauseEvent,
    PlayEvent,
    ResumeEvent,
    StopEvent,
    WordBoundaryEvent,
)
from pagevoice.core.types import PlayResult, TextChunk
from pagevoice.utils.audio_playback import play_audio_buffer, stop_audio_playback
from pagevoice.utils.logger import logger

SAMPLE_RATE = 22050


def simple_hash(text: str) -> int:
    value = 0
    for ch in str(text or ""):
        value = ((value << 5) - value + ord(ch)) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 1 << 32
    return abs(value)


def synthesize_tone(text: str, sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """A 1-3 second tone whose pitch depends on the text."""
    text = str(text or "")
    duration = max(1.0, min(3.0, len(text) / 30.0))
    frequency = 440 + (simple_hash(text) % 5) * 50
    t = np.arange(int(sample_rate * duration), dtype=np.float32) / sample_rate
    return (np.sin(2 * np.pi * frequency * t) * 0.2).astype(np.float32)


def to_wav_bytes(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> bytes:
    buf = io.BytesIO()
    sf.write(buf, samples, sample_rate, format="WAV", subtype="PCM_16")
    return buf.getvalue()


class MockSpeechAdapter(SpeechAdapter):
    name = "mock"

    def __init__(
        self,
        *,
        words_per_minute: int = 150,
        time_scale: float = 1.0,
        audible: bool = False,
        fail_on: Iterable[int] = (),
        failure_message: str = "Synthesis request failed",
        tick_s: float = 0.02,
    ) -> None:
        super().__init__()
        self.words_per_minute = max(1, int(words_per_minute))
        self.time_scale = max(0.0, float(time_scale))
        self.audible = bool(audible)
        self.fail_on = {int(i) for i in fail_on}
        self.failure_message = failure_message
        self.tick_s = max(0.001, float(tick_s))

        self.played: List[TextChunk] = []
        self.prepared: Dict[str, np.ndarray] = {}
        self.last_audio: Optional[bytes] = None
        self.play_calls = 0

        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._is_playing = False
        self._is_paused = False

    def utterance_seconds(self, text: str) -> float:
        words = max(1, len(str(text or "").split()))
        return words / self.words_per_minute * 60.0 * self.time_scale

    async def prepare(self, chunk: TextChunk) -> None:
        text = chunk.text.strip()
        if text and text not in self.prepared:
            self.prepared[text] = synthesize_tone(text)

    async def play(self, chunk: TextChunk) -> PlayResult:
        self.play_calls += 1
        call = self.play_calls
        generation = self._generation
        text = chunk.text.strip()
        if call in self.fail_on:
            raise SpeechAdapterError(self.failure_message, chunk_index=call)
        if not text:
            raise SpeechAdapterError("Cannot synthesize empty text", chunk_index=call)

        await self._wait_for_current()
        if generation != self._generation:
            # Stopped while queued behind the previous utterance.
            return PlayResult(request_id=None)

        samples = self.prepared.pop(text, None)
        if samples is None:
            samples = synthesize_tone(text)
        self.last_audio = to_wav_bytes(samples)
        if self.audible:
            play_audio_buffer(samples, SAMPLE_RATE)

        request_id = f"mock-{call}"
        self.played.append(chunk)
        self._is_playing = True
        self._is_paused = False
        self._task = asyncio.ensure_future(self._run_playback(request_id, text))
        self.emit(PlayEvent(request_id=request_id, text=text))
        return PlayResult(request_id=request_id)

    async def _wait_for_current(self) -> None:
        task = self._task
        if task is not None and not task.done():
            await asyncio.wait({task})

    async def drain(self) -> None:
        await self._wait_for_current()

    async def _run_playback(self, request_id: str, text: str) -> None:
        duration = self.utterance_seconds(text)
        words = text.split()
        elapsed = 0.0
        next_word = 0
        offset = 0
        while elapsed < duration:
            await asyncio.sleep(self.tick_s)
            if self._is_paused:
                continue
            elapsed += self.tick_s
            while next_word < len(words) and elapsed >= duration * next_word / len(words):
                word = words[next_word]
                self.emit(WordBoundaryEvent(request_id=request_id, word=word, offset=offset))
                offset += len(word) + 1
                next_word += 1
        self._is_playing = False
        self._is_paused = False
        self.emit(EndEvent(request_id=request_id))

    def pause(self) -> None:
        if not self._is_playing or self._is_paused:
            return
        self._is_playing = False
        self._is_paused = True
        if self.audible:
            stop_audio_playback()
        self.emit(PauseEvent())

    def resume(self) -> None:
        if not self._is_paused:
            return
        self._is_paused = False
        self._is_playing = True
        self.emit(ResumeEvent())

    def stop(self) -> None:
        task = self._task
        self._generation += 1
        if task is None or task.done():
            return
        task.cancel()
        self._task = None
        self._is_playing = False
        self._is_paused = False
        if self.audible:
            stop_audio_playback()
        logger.debug("Mock speech playback stopped.")
        self.emit(StopEvent())

    def get_is_playing(self) -> bool:
        return self._is_playing

    def get_is_paused(self) -> bool:
        return self._is_paused
