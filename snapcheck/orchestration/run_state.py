"""
Process-wide run state shared by every test and crawl.
"""

import uuid
from collections import deque
from typing import Deque, List

from snapcheck.core.types import LogEntry, LogLevel
from snapcheck.security.sanitizer import DataSanitizer


class RunState:
    """
    Counters, run log and batch id for the lifetime of the process.

    One instance is created by the coordinator and handed to every component
    that reads or writes it. Each mutation is a single step, so interleaved
    coroutines cannot corrupt it.
    """

    def __init__(self, log_limit: int = 100) -> None:
        self.running_tests_count = 0
        self.batch_id = str(uuid.uuid4())
        self.new_errors_exist = False
        self.unread_errors_exist = False
        self._logs: Deque[LogEntry] = deque(maxlen=log_limit)
        self._sanitizer = DataSanitizer()

    @property
    def logs(self) -> List[LogEntry]:
        return list(self._logs)

    def add_log(self, message: str, level: LogLevel = LogLevel.INFO) -> LogEntry:
        """Append to the run log, evicting the oldest entry when full."""
        entry = LogEntry(message=self._sanitizer.sanitize_string(message), level=level)
        self._logs.append(entry)
        return entry

    def reset_batch_id(self) -> str:
        self.batch_id = str(uuid.uuid4())
        return self.batch_id

    def mark_error(self) -> None:
        self.new_errors_exist = True
        self.unread_errors_exist = True

    def clear_new_errors(self) -> None:
        self.new_errors_exist = False

    def clear_unread_errors(self) -> None:
        self.unread_errors_exist = False
