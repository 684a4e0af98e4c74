"""
Brings a tab's viewport to an exact size and puts everything back afterwards.
"""

import asyncio
import logging
from typing import Optional

from snapcheck.config.settings import Settings, get_settings
from snapcheck.core.interfaces import BrowserAutomation
from snapcheck.core.types import (
    OriginalWindowState,
    Size,
    Tab,
    UpdatedWindowState,
    Window,
    WindowPreparationResult,
)
from snapcheck.error_handling.exceptions import RetryExhaustedError, WindowPreparationError
from snapcheck.error_handling.recovery import FixedDelayStrategy, retry_until

logger = logging.getLogger(__name__)


class WindowPreparer:
    """Resizes (or relocates) a tab's window so its viewport has a given size.

    A tab sharing its window with other tabs is moved into a window of its
    own, so the user's other tabs are never resized. The window size needed
    is derived from the frame around the tab's content area, and the resize
    is re-issued until the browser reports that size or the attempts run out.
    """

    def __init__(
        self,
        browser: BrowserAutomation,
        settings: Optional[Settings] = None,
    ) -> None:
        self.browser = browser
        self.settings = settings or get_settings()
        self.settle_ms = self.settings.resize_settle_ms
        self.max_attempts = self.settings.resize_max_attempts

    async def prepare(self, tab: Tab, viewport: Size) -> WindowPreparationResult:
        """
        Get the tab's viewport to exactly ``viewport``.

        Args:
            tab: Tab under test
            viewport: Required content area size

        Returns:
            Where the tab now lives plus what is needed to restore it

        Raises:
            WindowPreparationError: The size could not be reached. The tab
                has already been restored when this is raised.
        """
        original_window = await self.browser.get_window(tab.window_id)
        original = OriginalWindowState(
            window=original_window,
            tab_index=tab.index,
            window_size=original_window.size,
        )

        if len(original_window.tabs) > 1:
            logger.debug(
                "Moving tab to a new window for resizing",
                extra={"tab_id": tab.id, "window_id": original_window.id},
            )
            window = await self.browser.create_window(tab.id, viewport)
            is_new_window = True
        else:
            window = original_window
            is_new_window = False

        current_tab = self._tab_in(window, tab.id)
        required = Size(
            width=window.width + (viewport.width - current_tab.width),
            height=window.height + (viewport.height - current_tab.height),
        )

        async def _attempt() -> Window:
            return await self._resize(window.id, required)

        try:
            resized = await retry_until(
                _attempt,
                lambda result: result.width == required.width and result.height == required.height,
                FixedDelayStrategy(max_attempts=self.max_attempts),
                operation_name="window resize",
            )
        except RetryExhaustedError as exc:
            last: Window = exc.last_result
            failed = WindowPreparationResult(
                updated=UpdatedWindowState(
                    tab=self._tab_in(last, tab.id),
                    window=last,
                    is_new_window_created=is_new_window,
                ),
                original=original,
            )
            await self.restore(failed)
            raise WindowPreparationError(
                f"Failed to set viewport size to {viewport}, window stuck at {last.size}",
                required_size=required.model_dump(),
                actual_size=last.size.model_dump(),
                attempts=exc.attempts,
                cause=exc,
            ) from exc

        logger.info(
            f"Viewport prepared at {viewport}",
            extra={"tab_id": tab.id, "window_id": resized.id},
        )
        return WindowPreparationResult(
            updated=UpdatedWindowState(
                tab=self._tab_in(resized, tab.id),
                window=resized,
                is_new_window_created=is_new_window,
            ),
            original=original,
        )

    async def _resize(self, window_id: int, size: Size) -> Window:
        await self.browser.update_window(window_id, size)
        await asyncio.sleep(self.settle_ms / 1000)
        return await self.browser.get_window(window_id)

    async def restore(self, result: WindowPreparationResult) -> Optional[Tab]:
        """
        Put the tab back where it came from.

        Returns:
            The restored tab, or None when it no longer exists
        """
        tab = result.updated.tab
        original = result.original

        if await self.browser.get_tab(tab.id) is None:
            logger.info("Tab closed before it could be restored", extra={"tab_id": tab.id})
            return None

        if result.updated.is_new_window_created:
            moved = await self.browser.move_tab(tab.id, original.window.id, original.tab_index)
            await self.browser.activate_tab(moved.id)
            logger.debug(
                "Tab moved back to its window",
                extra={"tab_id": tab.id, "window_id": original.window.id},
            )
            return await self.browser.get_tab(moved.id)

        await self._resize(result.updated.window.id, original.window_size)
        logger.debug(
            f"Window restored to {original.window_size}",
            extra={"tab_id": tab.id, "window_id": result.updated.window.id},
        )
        return await self.browser.get_tab(tab.id)

    @staticmethod
    def _tab_in(window: Window, tab_id: int) -> Tab:
        for candidate in window.tabs:
            if candidate.id == tab_id:
                return candidate
        raise WindowPreparationError(
            f"Window {window.id} does not contain tab {tab_id}",
        )
