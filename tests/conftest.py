"""
Shared fixtures: an in-memory browser surface, a recording status indicator
and a fake visual check backend.
"""

import itertools
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from snapcheck.config.settings import Settings
from snapcheck.config.store import ConfigurationStore, MemoryStorage
from snapcheck.core.interfaces import (
    BrowserAutomation,
    StatusIndicator,
    TabRemovedListener,
    VisualCheckClient,
    VisualSession,
)
from snapcheck.core.types import CheckResult, RunKey, Size, Tab, TestParameters, Window

FRAME = Size(width=16, height=88)


class FakeBrowser(BrowserAutomation):
    """
    Browser surface kept entirely in memory.

    A tab's content area is its window size minus a fixed frame. Every call
    is recorded in ``calls``; ``resize_filter`` can distort what a resize
    request actually produces.
    """

    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.windows: Dict[int, Dict[str, Any]] = {}
        self.tabs: Dict[int, Dict[str, Any]] = {}
        self.focused_window_id: Optional[int] = None
        self.calls: List[Tuple[str, tuple]] = []
        self.listeners: List[TabRemovedListener] = []
        self.cookies: Dict[Tuple[str, str], str] = {}
        self.zoom: Dict[int, float] = {}
        self.overflow: Dict[int, str] = {}
        self.device_pixel_ratio = 1.0
        self.user_agent = "FakeAgent/1.0"
        self.capture_image = b"fake-png"
        self.captured_tab_ids: List[int] = []
        self.resize_filter: Optional[Callable[[Size], Size]] = None

    # Test helpers

    def open_window(self, url: str, width: int, height: int, extra_tabs: int = 0) -> Tab:
        """Create a window whose first tab shows ``url`` and is active."""
        window_id = next(self._ids)
        self.windows[window_id] = {"width": width, "height": height, "tab_ids": []}
        first = self._add_tab(url, window_id)
        for number in range(extra_tabs):
            self._add_tab(f"https://other.example/{number}", window_id)
        self.windows[window_id]["active"] = first
        self.focused_window_id = window_id
        return self._tab(first)

    def close_tab(self, tab_id: int) -> None:
        """Simulate the user closing a tab."""
        self._detach(tab_id)
        self.tabs.pop(tab_id, None)
        for listener in list(self.listeners):
            listener(tab_id)

    def count(self, name: str) -> int:
        return sum(1 for call, _ in self.calls if call == name)

    def args_of(self, name: str) -> List[tuple]:
        return [args for call, args in self.calls if call == name]

    def window_size(self, window_id: int) -> Size:
        window = self.windows[window_id]
        return Size(width=window["width"], height=window["height"])

    # Internals

    def _add_tab(self, url: str, window_id: int, index: Optional[int] = None) -> int:
        tab_id = next(self._ids)
        self.tabs[tab_id] = {"url": url, "title": f"Title of {url}", "window_id": window_id}
        tab_ids = self.windows[window_id]["tab_ids"]
        tab_ids.insert(len(tab_ids) if index is None else index, tab_id)
        return tab_id

    def _detach(self, tab_id: int) -> None:
        tab = self.tabs.get(tab_id)
        if tab is None:
            return
        window = self.windows.get(tab["window_id"])
        if window is None:
            return
        window["tab_ids"].remove(tab_id)
        if window.get("active") == tab_id:
            window["active"] = window["tab_ids"][0] if window["tab_ids"] else None
        if not window["tab_ids"]:
            del self.windows[tab["window_id"]]

    def _tab(self, tab_id: int) -> Tab:
        data = self.tabs[tab_id]
        window = self.windows[data["window_id"]]
        return Tab(
            id=tab_id,
            window_id=data["window_id"],
            index=window["tab_ids"].index(tab_id),
            url=data["url"],
            title=data["title"],
            active=window.get("active") == tab_id,
            width=window["width"] - FRAME.width,
            height=window["height"] - FRAME.height,
        )

    # BrowserAutomation

    async def get_active_tab(self) -> Tab:
        return self._tab(self.windows[self.focused_window_id]["active"])

    async def get_tab(self, tab_id: int) -> Optional[Tab]:
        self.calls.append(("get_tab", (tab_id,)))
        if tab_id not in self.tabs:
            return None
        return self._tab(tab_id)

    async def get_window(self, window_id: int) -> Window:
        self.calls.append(("get_window", (window_id,)))
        window = self.windows[window_id]
        return Window(
            id=window_id,
            width=window["width"],
            height=window["height"],
            tabs=[self._tab(tab_id) for tab_id in window["tab_ids"]],
        )

    async def create_window(self, tab_id: int, size: Size) -> Window:
        self.calls.append(("create_window", (tab_id, size)))
        self._detach(tab_id)
        window_id = next(self._ids)
        self.windows[window_id] = {
            "width": size.width,
            "height": size.height,
            "tab_ids": [tab_id],
            "active": tab_id,
        }
        self.tabs[tab_id]["window_id"] = window_id
        return await self.get_window(window_id)

    async def update_window(self, window_id: int, size: Size) -> None:
        self.calls.append(("update_window", (window_id, size)))
        actual = self.resize_filter(size) if self.resize_filter else size
        self.windows[window_id]["width"] = actual.width
        self.windows[window_id]["height"] = actual.height

    async def move_tab(self, tab_id: int, window_id: int, index: int) -> Tab:
        self.calls.append(("move_tab", (tab_id, window_id, index)))
        self._detach(tab_id)
        self.tabs[tab_id]["window_id"] = window_id
        self.windows[window_id]["tab_ids"].insert(index, tab_id)
        return self._tab(tab_id)

    async def activate_tab(self, tab_id: int) -> None:
        self.calls.append(("activate_tab", (tab_id,)))
        self.windows[self.tabs[tab_id]["window_id"]]["active"] = tab_id

    async def create_tab(
        self, url: str, window_id: Optional[int] = None, active: bool = False
    ) -> Tab:
        self.calls.append(("create_tab", (url, window_id, active)))
        target = window_id if window_id is not None else self.focused_window_id
        tab_id = self._add_tab(url, target)
        if active:
            self.windows[target]["active"] = tab_id
        return self._tab(tab_id)

    async def update_tab_url(self, tab_id: int, url: str) -> Optional[Tab]:
        self.calls.append(("update_tab_url", (tab_id, url)))
        if tab_id not in self.tabs:
            return None
        self.tabs[tab_id]["url"] = url
        self.tabs[tab_id]["title"] = f"Title of {url}"
        return self._tab(tab_id)

    async def remove_tab(self, tab_id: int) -> None:
        self.calls.append(("remove_tab", (tab_id,)))
        self.close_tab(tab_id)

    async def execute_script(self, tab_id: int, script: str) -> Any:
        self.calls.append(("execute_script", (tab_id, script)))
        if "devicePixelRatio" in script:
            return self.device_pixel_ratio
        if "navigator.userAgent" in script:
            return self.user_agent
        if "scrollWidth" in script:
            return self._tab(tab_id).width
        if "style.overflow" in script:
            previous = self.overflow.get(tab_id, "")
            self.overflow[tab_id] = "hidden" if "'hidden'" in script else script.split("= '")[-1].split("'")[0]
            return previous
        return None

    async def capture_visible_tab(self, window_id: int, full_page: bool = False) -> bytes:
        self.calls.append(("capture_visible_tab", (window_id, full_page)))
        self.captured_tab_ids.append(self.windows[window_id]["active"])
        return self.capture_image

    async def get_zoom(self, tab_id: int) -> float:
        return self.zoom.get(tab_id, 1.0)

    async def set_zoom(self, tab_id: int, zoom: float) -> None:
        self.calls.append(("set_zoom", (tab_id, zoom)))
        self.zoom[tab_id] = zoom

    async def get_cookie(self, url: str, name: str) -> Optional[str]:
        return self.cookies.get((url, name))

    def add_tab_removed_listener(self, listener: TabRemovedListener) -> None:
        self.listeners.append(listener)


class RecordingIndicator(StatusIndicator):
    """Status indicator remembering every value it was given."""

    def __init__(self) -> None:
        self.texts: List[str] = []
        self.colors: List[str] = []
        self.titles: List[str] = []

    def set_text(self, text: str) -> None:
        self.texts.append(text)

    def set_color(self, color: str) -> None:
        self.colors.append(color)

    def set_title(self, title: str) -> None:
        self.titles.append(title)


class FakeSession(VisualSession):
    def __init__(self, client: "FakeCheckClient", number: int) -> None:
        self.client = client
        self.number = number
        self.images: List[Tuple[bytes, str]] = []
        self.closed = False
        self.aborted = False

    async def check_image(self, image: bytes, tag: str) -> None:
        if self.client.fail_on_check:
            raise RuntimeError("backend unavailable")
        self.images.append((image, tag))

    async def close(self, raise_on_failure: bool = False) -> CheckResult:
        self.closed = True
        return CheckResult(
            url=f"https://results.example/app/sessions/{self.number}",
            status="Passed",
            matches=len(self.images),
            mismatches=0,
        )

    async def abort_if_not_closed(self) -> None:
        if not self.closed:
            self.aborted = True


class FakeCheckClient(VisualCheckClient):
    """Records every session opened against it."""

    def __init__(self) -> None:
        self.opened: List[Dict[str, Any]] = []
        self.sessions: List[FakeSession] = []
        self.fail_on_check = False

    async def open_session(
        self,
        params: TestParameters,
        credentials: RunKey,
        match_level: str,
        agent_id: str,
    ) -> FakeSession:
        self.opened.append(
            {
                "params": params,
                "credentials": credentials,
                "match_level": match_level,
                "agent_id": agent_id,
            }
        )
        session = FakeSession(self, len(self.sessions) + 1)
        self.sessions.append(session)
        return session


@pytest.fixture
def settings(tmp_path):
    """Settings with every settle time disabled and data under tmp_path."""
    return Settings(
        resize_settle_ms=0,
        pre_capture_delay_ms=0,
        zoom_settle_ms=0,
        overflow_settle_ms=0,
        crawl_page_settle_ms=0,
        data_dir=tmp_path / "data",
        screenshots_dir=tmp_path / "data" / "screenshots",
        config_store_path=tmp_path / "data" / "config_store.json",
    )


@pytest.fixture
def browser():
    return FakeBrowser()


@pytest.fixture
def indicator():
    return RecordingIndicator()


@pytest.fixture
def check_client():
    return FakeCheckClient()


@pytest.fixture
def store(browser, settings):
    return ConfigurationStore(storage=MemoryStorage(), browser=browser, settings=settings)
