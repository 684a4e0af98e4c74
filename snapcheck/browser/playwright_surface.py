"""
Playwright implementation of the browser automation surface.
"""

import asyncio
import itertools
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from playwright.async_api import Browser, BrowserContext, Page, async_playwright

from snapcheck.config.settings import Settings, get_settings
from snapcheck.core.interfaces import BrowserAutomation, TabRemovedListener
from snapcheck.core.types import Size, Tab, Window
from snapcheck.error_handling.exceptions import BrowserError
from snapcheck.monitoring.logger import get_logger, log_performance_metric

ZOOM_SCRIPT = "document.documentElement.style.zoom = {zoom!r}"


@dataclass
class _LogicalWindow:
    """A window as seen by the orchestration: an outer size plus ordered tabs."""

    id: int
    width: int
    height: int
    tab_ids: List[int] = field(default_factory=list)
    active_tab_id: Optional[int] = None


class PlaywrightBrowserSurface(BrowserAutomation):
    """Browser surface backed by Playwright Chromium pages.

    Pages act as tabs. Playwright has no OS windows, so windows are kept as
    logical groups of pages; a window's outer size is its pages' viewport
    plus a fixed frame, which makes resizing exact.
    """

    def __init__(
        self,
        headless: Optional[bool] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize the surface.

        Args:
            headless: Run browser in headless mode
            settings: Source of browser and frame settings
        """
        self.settings = settings or get_settings()
        self.headless = headless if headless is not None else self.settings.browser_headless
        self.timeout = self.settings.browser_timeout
        self.frame = Size(
            width=self.settings.browser_frame_width,
            height=self.settings.browser_frame_height,
        )

        self.logger = get_logger("browser.surface")
        self._playwright = None
        self._browser: Optional[Browser] = None
        self._context: Optional[BrowserContext] = None

        self._ids = itertools.count(1)
        self._pages: Dict[int, Page] = {}
        self._zoom: Dict[int, float] = {}
        self._windows: Dict[int, _LogicalWindow] = {}
        self._focused_window_id: Optional[int] = None
        self._listeners: List[TabRemovedListener] = []

    async def start(self) -> None:
        """Start the browser and its context."""
        if self._playwright is None:
            self._playwright = await async_playwright().start()

        if self._browser is None:
            self.logger.info("Starting browser", extra={"headless": self.headless})
            self._browser = await self._playwright.chromium.launch(
                headless=self.headless,
                args=["--no-sandbox", "--disable-dev-shm-usage"],
                env=os.environ,
            )

        if self._context is None:
            self._context = await self._browser.new_context()
            self._context.set_default_timeout(self.timeout)

    async def stop(self) -> None:
        """Stop the browser and cleanup resources."""
        if self._context:
            await self._context.close()
            self._context = None

        if self._browser:
            await self._browser.close()
            self._browser = None

        if self._playwright:
            await self._playwright.stop()
            self._playwright = None

        self._pages.clear()
        self._windows.clear()
        self._focused_window_id = None
        self.logger.info("Browser stopped")

    async def open_window(self, url: str, size: Size) -> Tab:
        """Open a fresh window with one tab loading ``url``."""
        window = self._new_window(size)
        return await self.create_tab(url, window_id=window.id, active=True)

    # Helpers

    def _new_window(self, size: Size) -> _LogicalWindow:
        window = _LogicalWindow(id=next(self._ids), width=size.width, height=size.height)
        self._windows[window.id] = window
        self._focused_window_id = window.id
        return window

    def _page(self, tab_id: int) -> Page:
        page = self._pages.get(tab_id)
        if page is None or page.is_closed():
            raise BrowserError(f"Tab {tab_id} does not exist", tab_id=tab_id)
        return page

    def _window_of(self, tab_id: int) -> _LogicalWindow:
        for window in self._windows.values():
            if tab_id in window.tab_ids:
                return window
        raise BrowserError(f"Tab {tab_id} is not in any window", tab_id=tab_id)

    def _viewport_for(self, window: _LogicalWindow) -> Dict[str, int]:
        return {
            "width": max(1, window.width - self.frame.width),
            "height": max(1, window.height - self.frame.height),
        }

    async def _apply_viewport(self, window: _LogicalWindow) -> None:
        viewport = self._viewport_for(window)
        for tab_id in window.tab_ids:
            await self._page(tab_id).set_viewport_size(viewport)

    async def _tab_model(self, tab_id: int, window: _LogicalWindow) -> Tab:
        page = self._page(tab_id)
        viewport = page.viewport_size or self._viewport_for(window)
        return Tab(
            id=tab_id,
            window_id=window.id,
            index=window.tab_ids.index(tab_id),
            url=page.url,
            title=await page.title(),
            active=window.active_tab_id == tab_id,
            width=viewport["width"],
            height=viewport["height"],
        )

    def _detach(self, tab_id: int) -> None:
        for window in list(self._windows.values()):
            if tab_id not in window.tab_ids:
                continue
            window.tab_ids.remove(tab_id)
            if window.active_tab_id == tab_id:
                window.active_tab_id = window.tab_ids[-1] if window.tab_ids else None
            if not window.tab_ids:
                del self._windows[window.id]
                if self._focused_window_id == window.id:
                    self._focused_window_id = next(iter(self._windows), None)

    def _on_page_closed(self, tab_id: int) -> None:
        if tab_id not in self._pages:
            return
        self._pages.pop(tab_id, None)
        self._zoom.pop(tab_id, None)
        self._detach(tab_id)
        self.logger.debug("Tab closed", extra={"tab_id": tab_id})
        for listener in list(self._listeners):
            listener(tab_id)

    # BrowserAutomation

    async def get_active_tab(self) -> Tab:
        if self._focused_window_id is None:
            raise BrowserError("No window is open")
        window = self._windows[self._focused_window_id]
        if window.active_tab_id is None:
            raise BrowserError("Focused window has no active tab", window_id=window.id)
        return await self._tab_model(window.active_tab_id, window)

    async def get_tab(self, tab_id: int) -> Optional[Tab]:
        page = self._pages.get(tab_id)
        if page is None or page.is_closed():
            return None
        return await self._tab_model(tab_id, self._window_of(tab_id))

    async def get_window(self, window_id: int) -> Window:
        window = self._windows.get(window_id)
        if window is None:
            raise BrowserError(f"Window {window_id} does not exist", window_id=window_id)
        tabs = [await self._tab_model(tab_id, window) for tab_id in window.tab_ids]
        return Window(id=window.id, width=window.width, height=window.height, tabs=tabs)

    async def create_window(self, tab_id: int, size: Size) -> Window:
        self._page(tab_id)
        self._detach(tab_id)
        window = self._new_window(size)
        window.tab_ids.append(tab_id)
        window.active_tab_id = tab_id
        await self._apply_viewport(window)
        return await self.get_window(window.id)

    async def update_window(self, window_id: int, size: Size) -> None:
        window = self._windows.get(window_id)
        if window is None:
            raise BrowserError(f"Window {window_id} does not exist", window_id=window_id)
        window.width = size.width
        window.height = size.height
        await self._apply_viewport(window)

    async def move_tab(self, tab_id: int, window_id: int, index: int) -> Tab:
        target = self._windows.get(window_id)
        if target is None:
            raise BrowserError(f"Window {window_id} does not exist", window_id=window_id)
        self._page(tab_id)
        self._detach(tab_id)
        index = max(0, min(index, len(target.tab_ids)))
        target.tab_ids.insert(index, tab_id)
        if target.active_tab_id is None:
            target.active_tab_id = tab_id
        await self._apply_viewport(target)
        return await self._tab_model(tab_id, target)

    async def activate_tab(self, tab_id: int) -> None:
        page = self._page(tab_id)
        window = self._window_of(tab_id)
        window.active_tab_id = tab_id
        self._focused_window_id = window.id
        await page.bring_to_front()

    async def create_tab(
        self, url: str, window_id: Optional[int] = None, active: bool = False
    ) -> Tab:
        if self._context is None:
            await self.start()

        if window_id is None or window_id not in self._windows:
            if self._focused_window_id is None:
                viewport = Size.parse(self.settings.default_viewport_size)
                window = self._new_window(
                    Size(
                        width=viewport.width + self.frame.width,
                        height=viewport.height + self.frame.height,
                    )
                )
            else:
                window = self._windows[self._focused_window_id]
        else:
            window = self._windows[window_id]

        page = await self._context.new_page()
        tab_id = next(self._ids)
        self._pages[tab_id] = page
        page.on("close", lambda _page: self._on_page_closed(tab_id))

        window.tab_ids.append(tab_id)
        if active or window.active_tab_id is None:
            window.active_tab_id = tab_id
        await page.set_viewport_size(self._viewport_for(window))

        if url and url != "about:blank":
            await self._goto(page, url)
        return await self._tab_model(tab_id, window)

    async def update_tab_url(self, tab_id: int, url: str) -> Optional[Tab]:
        page = self._pages.get(tab_id)
        if page is None or page.is_closed():
            return None
        await self._goto(page, url)
        return await self.get_tab(tab_id)

    async def _goto(self, page: Page, url: str) -> None:
        self.logger.info("Navigating to URL", extra={"url": url})
        start_time = asyncio.get_event_loop().time()
        await page.goto(url, wait_until="load")
        elapsed_ms = (asyncio.get_event_loop().time() - start_time) * 1000
        log_performance_metric("page_navigation", elapsed_ms, context={"url": url})

    async def remove_tab(self, tab_id: int) -> None:
        page = self._pages.get(tab_id)
        if page is None:
            return
        if not page.is_closed():
            await page.close()
        self._on_page_closed(tab_id)

    async def execute_script(self, tab_id: int, script: str) -> Any:
        return await self._page(tab_id).evaluate(script)

    async def capture_visible_tab(self, window_id: int, full_page: bool = False) -> bytes:
        window = self._windows.get(window_id)
        if window is None or window.active_tab_id is None:
            raise BrowserError(f"Window {window_id} has no active tab", window_id=window_id)
        page = self._page(window.active_tab_id)
        return await page.screenshot(full_page=full_page, type="png")

    async def get_zoom(self, tab_id: int) -> float:
        self._page(tab_id)
        return self._zoom.get(tab_id, 1.0)

    async def set_zoom(self, tab_id: int, zoom: float) -> None:
        page = self._page(tab_id)
        await page.evaluate(ZOOM_SCRIPT.format(zoom=str(zoom)))
        self._zoom[tab_id] = zoom

    async def get_cookie(self, url: str, name: str) -> Optional[str]:
        if self._context is None:
            return None
        for cookie in await self._context.cookies(url):
            if cookie.get("name") == name:
                return cookie.get("value")
        return None

    def add_tab_removed_listener(self, listener: TabRemovedListener) -> None:
        self._listeners.append(listener)
