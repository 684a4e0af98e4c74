"""
Screenshot capture of a prepared tab.
"""

import asyncio
import logging
from io import BytesIO
from typing import Optional

from PIL import Image

from snapcheck.config.settings import Settings, get_settings
from snapcheck.core.interfaces import BrowserAutomation
from snapcheck.core.types import Size, Tab
from snapcheck.error_handling.exceptions import CaptureError

logger = logging.getLogger(__name__)

SET_OVERFLOW_SCRIPT = (
    "(() => {{ const original = document.documentElement.style.overflow;"
    " document.documentElement.style.overflow = {value!r}; return original; }})()"
)
DEVICE_PIXEL_RATIO_SCRIPT = "window.devicePixelRatio"
PAGE_WIDTH_SCRIPT = (
    "Math.max(document.documentElement.scrollWidth,"
    " document.body ? document.body.scrollWidth : 0)"
)


class ScreenshotTaker:
    """Captures a tab the way a user would see it at 100% zoom.

    The tab is made active for the capture (only the active tab of a window
    can be captured), zoom is reset and scroll bars optionally hidden. All of
    that is undone afterwards, including when the capture fails.
    """

    def __init__(
        self,
        browser: BrowserAutomation,
        settings: Optional[Settings] = None,
    ) -> None:
        self.browser = browser
        self.settings = settings or get_settings()

    async def capture(
        self,
        tab: Tab,
        viewport: Size,
        full_page: bool = False,
        remove_scroll_bars: bool = True,
    ) -> bytes:
        """
        Capture a tab as PNG bytes.

        Args:
            tab: Tab to capture
            viewport: Expected viewport size of the tab
            full_page: Capture the entire page instead of the visible area
            remove_scroll_bars: Hide the document's scroll bars while capturing

        Returns:
            PNG bytes scaled to CSS pixels

        Raises:
            CaptureError: If the capture failed
        """
        window = await self.browser.get_window(tab.window_id)
        previously_active = next((t for t in window.tabs if t.active), None)

        await self.browser.activate_tab(tab.id)
        original_zoom: float = 1.0
        original_overflow: Optional[str] = None
        try:
            original_zoom = await self.browser.get_zoom(tab.id) or 1.0
            if original_zoom != 1.0:
                await self.browser.set_zoom(tab.id, 1.0)
                await self._settle(self.settings.zoom_settle_ms)

            if remove_scroll_bars:
                original_overflow = await self._set_overflow(tab.id, "hidden") or ""

            try:
                image = await self.browser.capture_visible_tab(tab.window_id, full_page=full_page)
            except CaptureError:
                raise
            except Exception as exc:
                raise CaptureError(
                    f"Failed to capture tab {tab.id}: {exc}",
                    tab_id=tab.id,
                    cause=exc,
                ) from exc

            return await self._normalize_scale(tab.id, image, viewport)
        finally:
            await self._restore(tab, original_overflow, original_zoom, previously_active)

    async def _restore(
        self,
        tab: Tab,
        original_overflow: Optional[str],
        original_zoom: float,
        previously_active: Optional[Tab],
    ) -> None:
        if original_overflow is not None:
            await self._set_overflow(tab.id, original_overflow)
        if original_zoom != 1.0:
            await self.browser.set_zoom(tab.id, original_zoom)
            await self._settle(self.settings.zoom_settle_ms)
        if previously_active is not None and previously_active.id != tab.id:
            await self.browser.activate_tab(previously_active.id)

    async def _set_overflow(self, tab_id: int, value: str) -> Optional[str]:
        original = await self.browser.execute_script(
            tab_id, SET_OVERFLOW_SCRIPT.format(value=value)
        )
        await self._settle(self.settings.overflow_settle_ms)
        return original

    async def _normalize_scale(self, tab_id: int, image: bytes, viewport: Size) -> bytes:
        """Scale device pixels down to CSS pixels on high density displays."""
        ratio = float(await self.browser.execute_script(tab_id, DEVICE_PIXEL_RATIO_SCRIPT) or 1.0)
        if ratio == 1.0:
            return image

        with Image.open(BytesIO(image)) as img:
            # Already in CSS pixels
            if img.width in (viewport.width, await self._page_width(tab_id)):
                return image

            scaled_size = (round(img.width / ratio), round(img.height / ratio))
            logger.debug(
                f"Scaling screenshot from {img.size} to {scaled_size}",
                extra={"tab_id": tab_id},
            )
            scaled = img.resize(scaled_size, Image.LANCZOS)
            buffer = BytesIO()
            scaled.save(buffer, format="PNG")
            return buffer.getvalue()

    async def _page_width(self, tab_id: int) -> int:
        width = await self.browser.execute_script(tab_id, PAGE_WIDTH_SCRIPT)
        return int(width or 0)

    @staticmethod
    async def _settle(milliseconds: int) -> None:
        if milliseconds:
            await asyncio.sleep(milliseconds / 1000)
