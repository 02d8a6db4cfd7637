from __future__ import annotations

import asyncio
import inspect
from typing import Awaitable, Callable, Optional, Sequence

from pagevoice.core.document import ControlHandle, DocumentProvider
from pagevoice.core.extractor import ViewportTextExtractor
from pagevoice.core.locator import ReaderLocator
from pagevoice.utils.logger import logger

NEXT_BUTTON_SELECTORS: tuple[str, ...] = (
    'button[title*="next"]',
    'button[aria-label*="Go forward"]',
    'button[title*="Next"]',
    'button[aria-label*="Next"]',
    'button[aria-label*="forward"]',
)

# Scripting entry points exposed by known reader shells.
READER_HOOKS: tuple[str, ...] = (
    "thorium.reader.nextPage",
    "readium.navigator.next",
)

NEXT_PAGE_MESSAGE = {"action": "nextPage"}


class PageNavigator:
    """Move the reader to its next page and confirm that it moved."""

    def __init__(
        self,
        document: DocumentProvider,
        extractor: ViewportTextExtractor,
        *,
        locator: Optional[ReaderLocator] = None,
        timeout_s: float = 3.0,
        poll_interval_s: float = 0.1,
        message_grace_s: float = 0.5,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.document = document
        self.extractor = extractor
        self.locator = locator or extractor.locator
        self.timeout_s = float(timeout_s)
        self.poll_interval_s = max(0.001, float(poll_interval_s))
        self.message_grace_s = float(message_grace_s)
        self._sleep = sleep

    def find_next_page_control(self) -> Optional[ControlHandle]:
        for selector in NEXT_BUTTON_SELECTORS:
            try:
                control = self.document.query_control(selector)
            except Exception as exc:
                logger.debug("Control query %r failed: %s", selector, exc)
                continue
            if control is not None:
                return control
        return None

    async def has_next_page(self) -> bool:
        try:
            control = self.find_next_page_control()
            if control is not None:
                return not control.is_disabled()
            # Keyboard navigation is presumed to work whenever a reader is shown.
            return self.locator.find_reader_root() is not None
        except Exception as exc:
            logger.debug("Error checking for next page: %s", exc)
            return False

    async def navigate_to_next_page(self) -> bool:
        strategies = (
            ("click", self._try_click_navigation),
            ("keyboard", self._try_keyboard_navigation),
            ("reader hooks", self._try_reader_hooks),
        )
        for name, strategy in strategies:
            try:
                if await strategy():
                    logger.info("Moved to the next page using %s navigation.", name)
                    return True
            except Exception as exc:
                logger.debug("%s navigation failed: %s", name.capitalize(), exc)
        logger.info("Could not navigate to a next page.")
        return False

    async def _try_click_navigation(self) -> bool:
        control = self.find_next_page_control()
        if control is None or control.is_disabled():
            return False
        reference_url, reference_texts = self._reference()
        control.click()
        return await self.wait_for_navigation(reference_url, reference_texts)

    async def _try_keyboard_navigation(self) -> bool:
        reference_url, reference_texts = self._reference()
        reader_root = self.locator.find_reader_root()
        if reader_root is not None:
            reader_root.focus()
        self.document.dispatch_key("ArrowRight")
        if reader_root is not None:
            self.document.dispatch_key("ArrowRight", reader_root)
        return await self.wait_for_navigation(reference_url, reference_texts)

    async def _try_reader_hooks(self) -> bool:
        for path in READER_HOOKS:
            hook = self.document.reader_hook(path)
            if hook is None:
                continue
            result = hook()
            if inspect.isawaitable(result):
                await result
            return True

        frame = self.locator.find_reader_frame()
        if frame is None:
            return False
        frame.post_message(dict(NEXT_PAGE_MESSAGE))
        await self._sleep(self.message_grace_s)
        return True

    def _reference(self) -> tuple[str, Optional[list[str]]]:
        url = self.document.location_url()
        chunks = self.extractor.extract_chunks_now()
        texts = [c.text for c in chunks if not c.is_fallback]
        return url, (texts or None)

    async def wait_for_navigation(
        self,
        reference_url: str,
        reference_texts: Optional[Sequence[str]] = None,
    ) -> bool:
        """Poll until the URL or the visible text changes, up to the timeout."""
        waited = 0.0
        reference = list(reference_texts) if reference_texts is not None else None
        while waited < self.timeout_s:
            await self._sleep(self.poll_interval_s)
            waited += self.poll_interval_s

            try:
                self.document.sync()
            except Exception as exc:
                logger.debug("Document refresh failed: %s", exc)
            try:
                if self.document.location_url() != reference_url:
                    return True
            except Exception as exc:
                logger.debug("Location lookup failed: %s", exc)

            # Single-page readers swap content without touching the URL.
            chunks = await self.extractor.extract_chunks()
            texts = [c.text for c in chunks if not c.is_fallback]
            if texts and (reference is None or texts != reference):
                return True
        return False
