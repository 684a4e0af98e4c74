"""
Tracking of tests in flight.
"""

import itertools
import logging
from typing import Dict, Optional

from snapcheck.core.interfaces import StatusIndicator
from snapcheck.core.types import LogLevel, RunningTestRecord
from snapcheck.monitoring.indicator import ERROR_COLOR, RUNNING_COLOR
from snapcheck.monitoring.logger import log_test_event
from snapcheck.orchestration.run_state import RunState

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "An error occurred while running a test. See the run log for details."


class TestLifecycleTracker:
    """
    Associates tabs with running tests and keeps the counters honest.

    Every started test gets its own token, so several tests on the same tab
    are counted separately. A test normally ends through ``test_ended``.
    When its tab is closed first, ``on_tab_closed`` does the cleanup and the
    later ``test_ended`` for that token becomes a no-op.
    """

    __test__ = False

    def __init__(self, state: RunState, indicator: StatusIndicator) -> None:
        self.state = state
        self.indicator = indicator
        self.running: Dict[int, RunningTestRecord] = {}
        self._tokens = itertools.count(1)

    def _refresh_indicator(self) -> None:
        count = self.state.running_tests_count
        self.indicator.set_text(str(count) if count > 0 else "")

    def _decrement(self) -> None:
        self.state.running_tests_count = max(0, self.state.running_tests_count - 1)

    def test_started(self, tab_id: int, app_name: str, test_name: str) -> int:
        """
        Record a test starting on ``tab_id``.

        Returns:
            Token identifying this test in ``test_ended`` and ``is_running``
        """
        token = next(self._tokens)
        self.running[token] = RunningTestRecord(
            tab_id=tab_id, app_name=app_name, test_name=test_name
        )
        self.state.running_tests_count += 1
        self.indicator.set_color(RUNNING_COLOR)
        self._refresh_indicator()
        self.state.add_log(f"Test started: {app_name} / {test_name}")
        log_test_event("test_started", app_name, test_name, {"tab_id": tab_id})
        return token

    def is_running(self, token: int) -> bool:
        return token in self.running

    def test_ended(
        self,
        app_name: Optional[str] = None,
        test_name: Optional[str] = None,
        token: Optional[int] = None,
    ) -> None:
        """
        Mark a test as finished. The counter never drops below zero.

        When ``token`` is given and its record was already removed by
        ``on_tab_closed``, nothing is decremented a second time.
        """
        if token is not None:
            record = self.running.pop(token, None)
            if record is None:
                logger.debug("Test already cleaned up", extra={"token": token})
                return
            app_name = app_name or record.app_name
            test_name = test_name or record.test_name

        self._decrement()
        self._refresh_indicator()
        label = " / ".join(part for part in (app_name, test_name) if part)
        self.state.add_log(f"Test ended: {label}" if label else "Test ended")
        log_test_event("test_ended", app_name, test_name)

    def on_tab_closed(self, tab_id: int) -> None:
        """Clean up after a tab that disappeared while its tests were running."""
        tokens = [token for token, record in self.running.items() if record.tab_id == tab_id]
        for token in tokens:
            record = self.running.pop(token)
            self._decrement()
            message = (
                f"Tab closed before test finished: {record.app_name} / {record.test_name}"
            )
            self.state.add_log(message, LogLevel.WARNING)
            logger.warning(message, extra={"tab_id": tab_id})
        if tokens:
            self._refresh_indicator()

    def report_error(self, message: Optional[str] = None) -> None:
        """Switch to the error state and record the failure in the run log."""
        text = message or DEFAULT_ERROR_MESSAGE
        self.state.mark_error()
        self.indicator.set_color(ERROR_COLOR)
        self.indicator.set_title(text)
        self.state.add_log(text, LogLevel.ERROR)
        logger.error(text)

    def popup_opened(self) -> None:
        """The main UI was opened: new errors were seen."""
        self.state.clear_new_errors()

    def options_opened(self) -> None:
        """The secondary UI was opened: the error log was read."""
        self.state.clear_unread_errors()
