from __future__ import annotations

import asyncio
import enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Type

from pagevoice.adapters.base import SpeechAdapter
from pagevoice.adapters.factory import available_adapters, create_adapter
from pagevoice.core.document import DocumentProvider
from pagevoice.core.errors import extract_error_message
from pagevoice.core.events import (
    AdapterEvent,
    EndEvent,
    ErrorEvent,
    PauseEvent,
    PlayEvent,
    ResumeEvent,
    StopEvent,
)
from pagevoice.core.extractor import ViewportTextExtractor
from pagevoice.core.navigator import PageNavigator
from pagevoice.core.state import PlaybackStateMachine, StateListener
from pagevoice.core.types import PlaybackState, TextChunk
from pagevoice.utils.logger import logger
from pagevoice.utils.reader_settings import ReaderSettings

# Failures mentioning these mean the speech backend itself is broken.
TTS_ERROR_KEYWORDS = ("TTS", "audio", "speech", "voice")


class ExecutionState(enum.Enum):
    IDLE = "idle"
    RUNNING = "running"


class PlaybackOrchestrator:
    """Read the visible reader content aloud, page after page.

    One ``start_reading`` run extracts the chunks in view, plays them strictly
    in order through the active speech adapter, then turns the page and keeps
    going until the book ends, the navigator gives up, or ``stop_reading`` is
    called.  Adapter lifecycle events are mirrored into the state machine,
    which is what user interfaces subscribe to.
    """

    def __init__(
        self,
        adapter: SpeechAdapter,
        extractor: ViewportTextExtractor,
        navigator: Optional[PageNavigator] = None,
        state_machine: Optional[PlaybackStateMachine] = None,
        *,
        settings: Optional[ReaderSettings] = None,
        adapter_type: Optional[str] = None,
        adapter_factory: Callable[..., SpeechAdapter] = create_adapter,
        adapter_options: Optional[Dict[str, Any]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings or ReaderSettings()
        self.extractor = extractor
        self.navigator = navigator
        self.state_machine = state_machine or PlaybackStateMachine()
        self._adapter = adapter
        self._adapter_factory = adapter_factory
        self._adapter_options = dict(adapter_options or {})
        self._sleep = sleep

        self._execution = ExecutionState.IDLE
        self._processing_multiple_chunks = False
        self._first_chunk_started = False
        self._destroyed = False
        self._unsubscribers: List[Callable[[], None]] = []
        self._handlers: Dict[Type[AdapterEvent], Callable[[Any], None]] = {
            PlayEvent: self._on_play,
            ResumeEvent: self._on_resume,
            PauseEvent: self._on_pause,
            StopEvent: self._on_stop,
            EndEvent: self._on_end,
            ErrorEvent: self._on_error,
        }

        self._use_mock_tts = False
        self._mock_adapter: Optional[SpeechAdapter] = None

        self._current_adapter_type = adapter_type or adapter.name or None
        if self._current_adapter_type:
            self.state_machine.set_adapter(self._current_adapter_type)
        self._attach(self._adapter)
        if self.settings.use_mock_tts:
            self.set_mock_tts(True)

    @classmethod
    def for_document(
        cls,
        document: DocumentProvider,
        *,
        adapter_type: Optional[str] = None,
        settings: Optional[ReaderSettings] = None,
        **adapter_options: Any,
    ) -> "PlaybackOrchestrator":
        """Wire extractor, navigator and adapter for ``document``."""
        settings = settings or ReaderSettings.load()
        extractor = ViewportTextExtractor(
            document,
            fallback_text_limit=settings.fallback_text_limit,
            chunk_text_limit=settings.chunk_text_limit,
        )
        navigator = PageNavigator(
            document,
            extractor,
            timeout_s=settings.navigation_timeout_s,
            poll_interval_s=settings.navigation_poll_interval_s,
        )
        key = adapter_type or settings.adapter
        adapter = create_adapter(key, **adapter_options)
        return cls(
            adapter,
            extractor,
            navigator,
            settings=settings,
            adapter_type=key,
            adapter_options=adapter_options,
        )

    # ---- adapter wiring ------------------------------------------------------
    @property
    def adapter(self) -> SpeechAdapter:
        if self._use_mock_tts and self._mock_adapter is not None:
            return self._mock_adapter
        return self._adapter

    def _attach(self, adapter: SpeechAdapter) -> None:
        for event_type, handler in self._handlers.items():
            adapter.on(event_type, handler)

    def _detach(self, adapter: SpeechAdapter) -> None:
        for event_type, handler in self._handlers.items():
            adapter.off(event_type, handler)

    def set_mock_tts(self, enabled: bool) -> None:
        enabled = bool(enabled)
        if enabled == self._use_mock_tts:
            return
        self.stop_reading()
        self._detach(self.adapter)
        if enabled and self._mock_adapter is None:
            self._mock_adapter = create_adapter(
                "mock", words_per_minute=self.settings.mock_words_per_minute
            )
        self._use_mock_tts = enabled
        self._attach(self.adapter)
        logger.info("Mock TTS %s.", "enabled" if enabled else "disabled")

    def is_mock_tts_enabled(self) -> bool:
        return self._use_mock_tts

    # ---- reading -------------------------------------------------------------
    def _is_running(self) -> bool:
        return self._execution is ExecutionState.RUNNING

    def _is_already_running(self) -> bool:
        return self._is_running() or self.is_playing()

    async def start_reading(self) -> None:
        """Read the current view, then continue onto following pages."""
        if self._is_already_running():
            logger.debug("Read-aloud already running; ignoring start request.")
            return
        if not self.state_machine.get_state().is_enabled:
            logger.info("Read-aloud is disabled; ignoring start request.")
            return

        self._force_cleanup()
        self._execution = ExecutionState.RUNNING
        self._first_chunk_started = False
        if self.state_machine.get_state().error:
            self.state_machine.set_error(None)
        self.state_machine.set_generating(True)

        try:
            chunks = await self._prepare_chunks()
            logger.info("Reading %d chunk(s) from the current view.", len(chunks))
            await self._play_chunks(chunks)
            await self._continue_on_next_pages(chunks)
            await self.adapter.drain()
            self._handle_successful_completion()
        except Exception as exc:
            self._handle_execution_error(exc)
            raise
        finally:
            self._execution = ExecutionState.IDLE
            self._processing_multiple_chunks = False
            self.state_machine.set_generating(False)

    async def _prepare_chunks(self) -> List[TextChunk]:
        chunks = await self.extractor.extract_chunks()
        if not self.settings.whole_page_reading:
            chunks = chunks[: self.settings.max_chunks_per_pass]
        return chunks

    async def _play_chunks(self, chunks: List[TextChunk]) -> None:
        self._processing_multiple_chunks = len(chunks) > 1
        if self.settings.pregenerate:
            await self._pregenerate(chunks)
        total = len(chunks)
        for index, chunk in enumerate(chunks, start=1):
            if not self._is_running():
                break
            await self._play_chunk(chunk, index, total)
            if not self._first_chunk_started:
                self._first_chunk_started = True
                self.state_machine.set_generating(False)

    async def _play_chunk(self, chunk: TextChunk, index: int, total: int) -> None:
        try:
            await self.adapter.play(chunk)
        except Exception as exc:
            message = extract_error_message(exc, "Failed to play text chunk")
            if self._is_fatal_error(message):
                raise
            logger.warning(
                "Skipping chunk %d/%d after playback failure: %s", index, total, message
            )

    async def _pregenerate(self, chunks: List[TextChunk]) -> None:
        results = await asyncio.gather(
            *(self.adapter.prepare(chunk) for chunk in chunks),
            return_exceptions=True,
        )
        for chunk, result in zip(chunks, results):
            if isinstance(result, Exception):
                logger.warning(
                    "Pre-generation failed for %r: %s", chunk.text[:40], result
                )

    async def _continue_on_next_pages(self, previous_chunks: List[TextChunk]) -> None:
        if self.navigator is None or not self.settings.auto_advance:
            return
        previous_texts = [c.text for c in previous_chunks]
        turns = 0
        while self._is_running() and turns < self.settings.max_page_turns:
            # Let the last line of the page finish before turning it.
            await self.adapter.drain()
            if not self._is_running():
                return
            if not await self.navigator.has_next_page():
                return
            if not await self.navigator.navigate_to_next_page():
                return
            turns += 1
            await self._wait_for_page_load()
            if not self._is_running():
                return
            chunks = await self._prepare_chunks()
            texts = [c.text for c in chunks]
            if texts == previous_texts or all(c.is_fallback for c in chunks):
                logger.info("No new content after the page turn; finishing.")
                return
            logger.info("Page %d: reading %d chunk(s).", turns + 1, len(chunks))
            await self._play_chunks(chunks)
            previous_texts = texts

    async def _wait_for_page_load(self) -> None:
        await self._sleep(self.settings.page_settle_delay_s)
        for _ in range(self.settings.page_settle_attempts):
            try:
                self.extractor.document.sync()
            except Exception as exc:
                logger.debug("Document refresh failed: %s", exc)
            root = self.extractor.get_current_reader_element()
            try:
                text = root.text_content() if root is not None else ""
            except Exception as exc:
                logger.debug("Reader text not readable yet: %s", exc)
                text = ""
            if text.strip():
                return
            await self._sleep(self.settings.page_settle_interval_s)

    def _handle_successful_completion(self) -> None:
        if not self._is_running():
            # Stopped mid-run; the adapter may not have reported it.
            self._clear_transport_state()
            return
        self._execution = ExecutionState.IDLE
        self._processing_multiple_chunks = False
        self.state_machine.reset()
        logger.info("Read-aloud run finished.")

    def _handle_execution_error(self, error: BaseException) -> None:
        message = extract_error_message(error, "Failed to start reading")
        logger.error("Read-aloud failed: %s", message)
        self._execution = ExecutionState.IDLE
        self._processing_multiple_chunks = False
        try:
            self.adapter.stop()
        except Exception as exc:
            logger.warning("Failed to stop adapter after error: %s", exc)
        self._clear_transport_state()
        self.state_machine.set_error(message)

    def _clear_transport_state(self) -> None:
        state = self.state_machine.get_state()
        if state.is_playing:
            self.state_machine.set_playing(False)
        if state.is_paused:
            self.state_machine.set_paused(False)

    def _force_cleanup(self) -> None:
        self._execution = ExecutionState.IDLE
        self._processing_multiple_chunks = False
        adapter = self.adapter
        if adapter.get_is_playing() or adapter.get_is_paused():
            adapter.stop()

    def _is_fatal_error(self, message: str) -> bool:
        if any(keyword in message for keyword in TTS_ERROR_KEYWORDS):
            return True
        return not self._processing_multiple_chunks

    # ---- transport controls --------------------------------------------------
    def pause_reading(self) -> None:
        if not self.is_playing() or self.is_paused():
            return
        self.adapter.pause()

    def resume_reading(self) -> None:
        if not self.is_paused():
            return
        self.adapter.resume()

    def stop_reading(self) -> None:
        self._execution = ExecutionState.IDLE
        self._processing_multiple_chunks = False
        adapter = self.adapter
        active = self.is_playing() or self.is_paused()
        if not (active or adapter.get_is_playing() or adapter.get_is_paused()):
            return
        adapter.stop()
        # Adapters that had nothing loaded emit no stop event.
        self.state_machine.reset()

    def enable_tts(self) -> None:
        self.state_machine.enable()

    def disable_tts(self) -> None:
        self.stop_reading()
        self.state_machine.disable()

    def toggle_tts(self) -> None:
        if self.state_machine.get_state().is_enabled:
            self.disable_tts()
        else:
            self.enable_tts()

    # ---- queries ---------------------------------------------------------------
    def is_playing(self) -> bool:
        return self.state_machine.get_state().is_playing

    def is_paused(self) -> bool:
        return self.state_machine.get_state().is_paused

    def get_state(self) -> PlaybackState:
        return self.state_machine.get_state()

    def get_current_adapter_type(self) -> Optional[str]:
        return self._current_adapter_type

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        unsubscribe = self.state_machine.subscribe(listener)
        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    # ---- adapter events ------------------------------------------------------
    def _on_play(self, event: PlayEvent) -> None:
        self.state_machine.set_playing(True)

    def _on_resume(self, event: ResumeEvent) -> None:
        self.state_machine.set_playing(True)

    def _on_pause(self, event: PauseEvent) -> None:
        self.state_machine.set_paused(True)

    def _on_stop(self, event: StopEvent) -> None:
        self._execution = ExecutionState.IDLE
        self._processing_multiple_chunks = False
        self.state_machine.reset()

    def _on_end(self, event: EndEvent) -> None:
        # Inside a run the loop decides when playback is over.
        if self._processing_multiple_chunks or self._is_running():
            return
        if not self.state_machine.get_state().error:
            self.state_machine.reset()

    def _on_error(self, event: ErrorEvent) -> None:
        detail = event.message or extract_error_message(event.error, "Unknown error")
        message = f"TTS Error: {detail}"
        if self._is_fatal_error(detail):
            logger.error(message)
            self._execution = ExecutionState.IDLE
            self._processing_multiple_chunks = False
            self.state_machine.set_error(message)
        else:
            logger.warning("Tolerating chunk failure: %s", message)

    # ---- adapter switching ---------------------------------------------------
    def _next_adapter_type(self) -> str:
        implemented = [info.key for info in available_adapters() if info.is_implemented]
        current = self._current_adapter_type
        if len(implemented) > 1:
            if current in implemented:
                return implemented[(implemented.index(current) + 1) % len(implemented)]
            return implemented[0]
        return "azure" if current == "elevenlabs" else "elevenlabs"

    def switch_adapter(self, adapter_type: Optional[str] = None) -> bool:
        target = str(adapter_type or self._next_adapter_type()).strip().lower()
        self.stop_reading()
        try:
            new_adapter = self._adapter_factory(target, **self._adapter_options)
        except Exception as exc:
            message = extract_error_message(exc, f"Failed to switch to adapter {target!r}")
            logger.error("Adapter switch to %r failed: %s", target, message)
            self.state_machine.set_error(message)
            return False

        old_adapter = self._adapter
        if not self._use_mock_tts:
            self._detach(old_adapter)
        try:
            old_adapter.destroy()
        except Exception as exc:
            logger.warning("Failed to destroy adapter %r: %s", old_adapter.name, exc)

        self._adapter = new_adapter
        if not self._use_mock_tts:
            self._attach(new_adapter)
        self._current_adapter_type = target
        self.state_machine.set_adapter(target)
        if self.state_machine.get_state().error:
            self.state_machine.set_error(None)
        logger.info("Switched speech adapter to %r.", target)
        return True

    def destroy(self) -> None:
        if self._destroyed:
            return
        self._destroyed = True
        self._execution = ExecutionState.IDLE
        self._processing_multiple_chunks = False
        for adapter in (self._adapter, self._mock_adapter):
            if adapter is None:
                continue
            self._detach(adapter)
            try:
                adapter.destroy()
            except Exception as exc:
                logger.warning("Failed to destroy adapter %r: %s", adapter.name, exc)
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
