"""
User configuration store.

Typed async accessors over a key/value storage. Getters fall back to the
defaults from Settings; setters normalise invalid values to those defaults,
and setting None on an optional key removes it.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from snapcheck.config.settings import MATCH_LEVELS, VIEWPORT_SIZES, Settings, get_settings
from snapcheck.core.interfaces import BrowserAutomation, KeyValueStorage
from snapcheck.core.types import (
    BaselineSelection,
    DefaultSelection,
    StepUrlSelection,
    UserValuesSelection,
)

logger = logging.getLogger(__name__)

# Storage keys
MATCH_LEVEL_KEY = "matchLevel"
VIEWPORT_SIZE_KEY = "viewportSize"
BASELINE_APP_NAME_KEY = "baselineAppName"
BASELINE_TEST_NAME_KEY = "baselineTestName"
BASELINE_STEP_URL_KEY = "baselineStepUrl"
BASELINE_SELECTION_KEY = "baselineSelectionId"
BATCH_NAME_KEY = "batchName"
USE_BATCH_KEY = "useBatch"
NEW_TAB_FOR_RESULTS_KEY = "newTabForResults"
TAKE_FULL_PAGE_SCREENSHOT_KEY = "takeFullPageScreenshot"
REMOVE_SCROLL_BARS_KEY = "scrollBars"
INCLUDE_QUERY_PARAMS_KEY = "includeQueryParamsInTestName"
SERVER_URL_KEY = "eyesServer"
API_SERVER_URL_KEY = "eyesApiServer"
CURRENT_ACCOUNT_ID_KEY = "currentAccountId"
PAGE_PART_WAIT_TIME_KEY = "pagePartWaitTime"

API_KEY_COOKIE_NAME = "run-key"
ACCOUNT_ID_COOKIE_NAME = "account-id"

SELECTION_STEP_URL = "stepUrlSelection"
SELECTION_USER_VALUES = "userValuesSelection"
SELECTION_DEFAULT = "defaultSelection"


class MemoryStorage(KeyValueStorage):
    """In-process storage; nothing survives the process."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})

    async def get(self, key: str) -> Any:
        return self._data.get(key)

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    async def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage(KeyValueStorage):
    """Storage persisted as a single JSON object on disk."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = asyncio.Lock()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text())
        except json.JSONDecodeError:
            logger.warning(
                "Configuration store is not valid JSON; starting empty",
                extra={"path": str(self.path)},
            )
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2, sort_keys=True))

    async def get(self, key: str) -> Any:
        return self._load().get(key)

    async def set(self, key: str, value: Any) -> None:
        async with self._lock:
            data = self._load()
            data[key] = value
            self._save(data)

    async def remove(self, key: str) -> None:
        async with self._lock:
            data = self._load()
            if key in data:
                del data[key]
                self._save(data)


class ConfigurationStore:
    """Gateway for getting and setting the user's test configuration."""

    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        browser: Optional[BrowserAutomation] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        """
        Initialize the store.

        Args:
            storage: Backing storage (in-memory when omitted)
            browser: Browser surface used to read the legacy login cookies
            settings: Source of defaults
        """
        self.storage = storage or MemoryStorage()
        self.browser = browser
        self.settings = settings or get_settings()

    async def _get(self, key: str, default: Any = None) -> Any:
        value = await self.storage.get(key)
        return default if value is None else value

    async def _set_or_remove(self, key: str, value: Any) -> None:
        if value is None:
            await self.storage.remove(key)
        else:
            await self.storage.set(key, value)

    # Match level / viewport
    @staticmethod
    def get_all_match_levels() -> List[str]:
        return list(MATCH_LEVELS)

    @staticmethod
    def get_all_viewport_sizes() -> List[str]:
        return list(VIEWPORT_SIZES)

    async def get_match_level(self) -> str:
        return await self._get(MATCH_LEVEL_KEY, self.settings.default_match_level)

    async def set_match_level(self, match_level: Optional[str]) -> None:
        if not match_level or match_level not in MATCH_LEVELS:
            match_level = self.settings.default_match_level
        await self.storage.set(MATCH_LEVEL_KEY, match_level)

    async def get_viewport_size(self) -> str:
        return await self._get(VIEWPORT_SIZE_KEY, self.settings.default_viewport_size)

    async def set_viewport_size(self, viewport_size: Optional[str]) -> None:
        if not viewport_size or viewport_size not in VIEWPORT_SIZES:
            viewport_size = self.settings.default_viewport_size
        await self.storage.set(VIEWPORT_SIZE_KEY, viewport_size)

    # Baseline selection
    async def get_baseline_step_url(self) -> Optional[str]:
        return await self._get(BASELINE_STEP_URL_KEY)

    async def set_baseline_step_url(self, step_url: Optional[str]) -> None:
        await self._set_or_remove(BASELINE_STEP_URL_KEY, step_url)

    async def get_baseline_app_name(self) -> Optional[str]:
        return await self._get(BASELINE_APP_NAME_KEY)

    async def set_baseline_app_name(self, app_name: Optional[str]) -> None:
        await self._set_or_remove(BASELINE_APP_NAME_KEY, app_name)

    async def get_baseline_test_name(self) -> Optional[str]:
        return await self._get(BASELINE_TEST_NAME_KEY)

    async def set_baseline_test_name(self, test_name: Optional[str]) -> None:
        await self._set_or_remove(BASELINE_TEST_NAME_KEY, test_name)

    async def get_baseline_selection_id(self) -> Optional[str]:
        return await self._get(BASELINE_SELECTION_KEY)

    async def set_baseline_selection_id(self, selection_id: Optional[str]) -> None:
        await self._set_or_remove(BASELINE_SELECTION_KEY, selection_id)

    async def get_baseline_selection(self) -> BaselineSelection:
        """
        Build the baseline selection from the stored selection id and values.

        A selection whose values are missing degrades to DefaultSelection.
        """
        selection_id = await self.get_baseline_selection_id()
        if selection_id == SELECTION_STEP_URL:
            step_url = await self.get_baseline_step_url()
            if step_url:
                return StepUrlSelection(url=step_url)
        elif selection_id == SELECTION_USER_VALUES:
            app_name = await self.get_baseline_app_name()
            test_name = await self.get_baseline_test_name()
            if app_name and test_name:
                return UserValuesSelection(app_name=app_name, test_name=test_name)
        return DefaultSelection()

    async def set_baseline_selection(self, selection: Optional[BaselineSelection]) -> None:
        """Persist a selection together with the values it carries."""
        if selection is None:
            await self.set_baseline_selection_id(None)
        elif isinstance(selection, StepUrlSelection):
            await self.set_baseline_step_url(selection.url)
            await self.set_baseline_selection_id(SELECTION_STEP_URL)
        elif isinstance(selection, UserValuesSelection):
            await self.set_baseline_app_name(selection.app_name)
            await self.set_baseline_test_name(selection.test_name)
            await self.set_baseline_selection_id(SELECTION_USER_VALUES)
        else:
            await self.set_baseline_selection_id(SELECTION_DEFAULT)

    # Batch
    async def get_batch_name(self) -> Optional[str]:
        return await self._get(BATCH_NAME_KEY)

    async def set_batch_name(self, batch_name: Optional[str]) -> None:
        await self._set_or_remove(BATCH_NAME_KEY, batch_name)

    async def get_should_use_batch(self) -> bool:
        return bool(await self._get(USE_BATCH_KEY, False))

    async def set_should_use_batch(self, should_use: Optional[bool]) -> None:
        await self._set_or_remove(USE_BATCH_KEY, should_use)

    # Capture and results flags
    async def get_new_tab_for_results(self) -> bool:
        return bool(await self._get(NEW_TAB_FOR_RESULTS_KEY, self.settings.new_tab_for_results))

    async def set_new_tab_for_results(self, should_open: Optional[bool]) -> None:
        if should_open is None:
            should_open = self.settings.new_tab_for_results
        await self.storage.set(NEW_TAB_FOR_RESULTS_KEY, should_open)

    async def get_take_full_page_screenshot(self) -> bool:
        return bool(
            await self._get(TAKE_FULL_PAGE_SCREENSHOT_KEY, self.settings.take_full_page_screenshot)
        )

    async def set_take_full_page_screenshot(self, should_take: Optional[bool]) -> None:
        if should_take is None:
            should_take = self.settings.take_full_page_screenshot
        await self.storage.set(TAKE_FULL_PAGE_SCREENSHOT_KEY, should_take)

    async def get_remove_scroll_bars(self) -> bool:
        return bool(await self._get(REMOVE_SCROLL_BARS_KEY, self.settings.remove_scroll_bars))

    async def set_remove_scroll_bars(self, should_remove: Optional[bool]) -> None:
        if should_remove is None:
            should_remove = self.settings.remove_scroll_bars
        await self.storage.set(REMOVE_SCROLL_BARS_KEY, should_remove)

    async def get_include_query_params_in_test_name(self) -> bool:
        return bool(
            await self._get(
                INCLUDE_QUERY_PARAMS_KEY, self.settings.include_query_params_in_test_name
            )
        )

    async def set_include_query_params_in_test_name(self, include: Optional[bool]) -> None:
        if include is None:
            include = self.settings.include_query_params_in_test_name
        await self.storage.set(INCLUDE_QUERY_PARAMS_KEY, include)

    # Servers
    async def get_server_url(self) -> str:
        return await self._get(SERVER_URL_KEY, self.settings.server_url)

    async def set_server_url(self, server_url: Optional[str]) -> None:
        if server_url is None or not server_url.strip():
            server_url = self.settings.server_url
        await self.storage.set(SERVER_URL_KEY, server_url.strip())

    async def get_api_server_url(self) -> str:
        return await self._get(API_SERVER_URL_KEY, self.settings.api_server_url)

    async def set_api_server_url(self, api_server_url: Optional[str]) -> None:
        if api_server_url is None or not api_server_url.strip():
            api_server_url = self.settings.api_server_url
        await self.storage.set(API_SERVER_URL_KEY, api_server_url.strip())

    async def get_page_part_wait_time(self) -> int:
        return int(await self._get(PAGE_PART_WAIT_TIME_KEY, self.settings.page_part_wait_time_ms))

    async def set_page_part_wait_time(self, wait_time_ms: Optional[int]) -> None:
        if wait_time_ms is None or wait_time_ms <= 0:
            wait_time_ms = self.settings.page_part_wait_time_ms
        await self.storage.set(PAGE_PART_WAIT_TIME_KEY, wait_time_ms)

    # Accounts
    async def get_current_account_id(self) -> Optional[str]:
        """Account chosen under the new auth scheme (not the legacy cookie)."""
        return await self._get(CURRENT_ACCOUNT_ID_KEY)

    async def set_current_account_id(self, account_id: Optional[str]) -> None:
        await self._set_or_remove(CURRENT_ACCOUNT_ID_KEY, account_id)

    async def get_api_key(self) -> Optional[str]:
        """Legacy scheme: the run key left by the login page as a cookie."""
        return await self._get_cookie(API_KEY_COOKIE_NAME)

    async def get_account_id(self) -> Optional[str]:
        """Legacy scheme: the account id left by the login page as a cookie."""
        return await self._get_cookie(ACCOUNT_ID_COOKIE_NAME)

    async def _get_cookie(self, name: str) -> Optional[str]:
        if self.browser is None:
            return None
        return await self.browser.get_cookie(self.settings.legacy_cookie_url, name)
