"""
Core interfaces and abstract base classes for snapcheck.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

from snapcheck.core.types import (
    CheckResult,
    RunKey,
    Size,
    Tab,
    TestParameters,
    Window,
)


TabRemovedListener = Callable[[int], None]


class BrowserAutomation(ABC):
    """
    Abstract browser surface the orchestration runs against.

    Windows and tabs are addressed by integer ids. Every call may suspend;
    none of them are assumed to be atomic with respect to each other.
    """

    @abstractmethod
    async def get_active_tab(self) -> Tab:
        """Return the active tab of the focused window."""
        pass

    @abstractmethod
    async def get_tab(self, tab_id: int) -> Optional[Tab]:
        """Return a tab, or None when it no longer exists."""
        pass

    @abstractmethod
    async def get_window(self, window_id: int) -> Window:
        """Return a window populated with its tabs."""
        pass

    @abstractmethod
    async def create_window(self, tab_id: int, size: Size) -> Window:
        """
        Move a tab out into a brand-new window.

        Args:
            tab_id: Tab to move
            size: Initial outer size of the new window

        Returns:
            The new window, populated with the moved tab
        """
        pass

    @abstractmethod
    async def update_window(self, window_id: int, size: Size) -> None:
        """Request a new outer size for a window."""
        pass

    @abstractmethod
    async def move_tab(self, tab_id: int, window_id: int, index: int) -> Tab:
        """Move a tab into an existing window at the given index."""
        pass

    @abstractmethod
    async def activate_tab(self, tab_id: int) -> None:
        """Make a tab the active tab of its window."""
        pass

    @abstractmethod
    async def create_tab(
        self, url: str, window_id: Optional[int] = None, active: bool = False
    ) -> Tab:
        """Open a new tab."""
        pass

    @abstractmethod
    async def update_tab_url(self, tab_id: int, url: str) -> Optional[Tab]:
        """
        Navigate an existing tab.

        Returns:
            The updated tab, or None when the tab no longer exists
        """
        pass

    @abstractmethod
    async def remove_tab(self, tab_id: int) -> None:
        """Close a tab."""
        pass

    @abstractmethod
    async def execute_script(self, tab_id: int, script: str) -> Any:
        """Evaluate a script in the tab's page and return its result."""
        pass

    @abstractmethod
    async def capture_visible_tab(self, window_id: int, full_page: bool = False) -> bytes:
        """
        Capture the active tab of a window as PNG bytes.

        Only the active tab of a window can be captured, which is why
        captures have to be serialized across concurrently prepared tabs.
        """
        pass

    @abstractmethod
    async def get_zoom(self, tab_id: int) -> float:
        """Return the tab's zoom factor (1.0 is 100%)."""
        pass

    @abstractmethod
    async def set_zoom(self, tab_id: int, zoom: float) -> None:
        """Set the tab's zoom factor."""
        pass

    @abstractmethod
    async def get_cookie(self, url: str, name: str) -> Optional[str]:
        """Read a cookie value, or None when not set."""
        pass

    @abstractmethod
    def add_tab_removed_listener(self, listener: TabRemovedListener) -> None:
        """Register a callback invoked with the id of every closed tab."""
        pass


class KeyValueStorage(ABC):
    """Persistent key/value storage backing the configuration store."""

    @abstractmethod
    async def get(self, key: str) -> Any:
        """Return the stored value, or None when missing."""
        pass

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Store a value."""
        pass

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Remove a key; missing keys are ignored."""
        pass


class VisualSession(ABC):
    """An open comparison session for a single test."""

    @abstractmethod
    async def check_image(self, image: bytes, tag: str) -> None:
        """Submit one screenshot under the given tag."""
        pass

    @abstractmethod
    async def close(self, raise_on_failure: bool = False) -> CheckResult:
        """Close the session and return its results."""
        pass

    @abstractmethod
    async def abort_if_not_closed(self) -> None:
        """Abort the session unless it was already closed."""
        pass


class VisualCheckClient(ABC):
    """Entry point of the visual comparison backend."""

    @abstractmethod
    async def open_session(
        self,
        params: TestParameters,
        credentials: RunKey,
        match_level: str,
        agent_id: str,
    ) -> VisualSession:
        """
        Open a comparison session.

        Args:
            params: Parameters of the test being run
            credentials: Key the session is submitted with
            match_level: Backend match level name (may differ from params)
            agent_id: Identifies this tool to the backend

        Returns:
            Open session ready to accept images
        """
        pass


class StatusIndicator(ABC):
    """Small always-visible status display (count of running tests, errors)."""

    @abstractmethod
    def set_text(self, text: str) -> None:
        pass

    @abstractmethod
    def set_color(self, color: str) -> None:
        pass

    @abstractmethod
    def set_title(self, title: str) -> None:
        pass


class ConfigProvider(ABC):
    """Abstract interface for configuration management."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        pass

    @abstractmethod
    def get_required(self, key: str) -> Any:
        """Get required configuration value, raise if missing."""
        pass

    @abstractmethod
    def get_all(self) -> Dict[str, Any]:
        """Get all configuration values."""
        pass
