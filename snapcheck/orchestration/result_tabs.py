"""
Reuse of background tabs showing check results.
"""

import logging
from typing import Dict, Optional

from snapcheck.config.store import ConfigurationStore
from snapcheck.core.interfaces import BrowserAutomation
from snapcheck.core.types import Tab, TestParameters

logger = logging.getLogger(__name__)

STEPS_MODE_KEY = "__steps__"


class ResultTabCache:
    """
    Maps a test fingerprint to the tab showing its latest results.

    In steps mode every result of the run shares a single tab. Otherwise
    identical test parameters share a tab and different ones get their own.
    Result tabs are always opened in the background.
    """

    def __init__(self, browser: BrowserAutomation, store: ConfigurationStore) -> None:
        self.browser = browser
        self.store = store
        self._tabs: Dict[str, int] = {}

    def reset(self) -> None:
        self._tabs.clear()

    async def show_results(
        self,
        result_url: str,
        params: TestParameters,
        target_window_id: Optional[int] = None,
        steps_mode: bool = False,
    ) -> Optional[Tab]:
        """
        Display results, reusing a cached tab when it is still open.

        Returns:
            The tab showing the results, or None when results tabs are
            disabled
        """
        if not await self.store.get_new_tab_for_results():
            return None

        key = STEPS_MODE_KEY if steps_mode else params.fingerprint()
        cached_id = self._tabs.get(key)

        if cached_id is not None:
            tab = await self.browser.update_tab_url(cached_id, result_url)
            if tab is not None:
                logger.debug("Reused results tab", extra={"tab_id": tab.id, "url": result_url})
                return tab
            logger.debug("Cached results tab is gone", extra={"tab_id": cached_id})

        tab = await self.browser.create_tab(result_url, window_id=target_window_id, active=False)
        self._tabs[key] = tab.id
        logger.debug("Opened results tab", extra={"tab_id": tab.id, "url": result_url})
        return tab
