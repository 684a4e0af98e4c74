"""
Core module exports.
"""

from snapcheck.core.baseline import BaselineImage
from snapcheck.core.interfaces import (
    BrowserAutomation,
    ConfigProvider,
    KeyValueStorage,
    StatusIndicator,
    VisualCheckClient,
    VisualSession,
)
from snapcheck.core.steps import StepCursor
from snapcheck.core.tasks import ScheduledTask, SequentialTaskRunner
from snapcheck.core.types import (
    Account,
    BaselineSelection,
    BatchInfo,
    CheckResult,
    CrawlPageResult,
    CrawlSummary,
    DefaultSelection,
    LegacyCredentials,
    LogEntry,
    LogLevel,
    MatchLevel,
    OriginalWindowState,
    QueryParam,
    RunKey,
    RunningTestRecord,
    SessionInfo,
    Size,
    StepUrlSelection,
    Tab,
    TestParameters,
    UpdatedWindowState,
    UserValuesSelection,
    Window,
    WindowPreparationResult,
)

__all__ = [
    # Interfaces
    "BrowserAutomation",
    "ConfigProvider",
    "KeyValueStorage",
    "StatusIndicator",
    "VisualCheckClient",
    "VisualSession",
    # Scheduling
    "ScheduledTask",
    "SequentialTaskRunner",
    "StepCursor",
    "BaselineImage",
    # Types
    "Account",
    "BaselineSelection",
    "BatchInfo",
    "CheckResult",
    "CrawlPageResult",
    "CrawlSummary",
    "DefaultSelection",
    "LegacyCredentials",
    "LogEntry",
    "LogLevel",
    "MatchLevel",
    "OriginalWindowState",
    "QueryParam",
    "RunKey",
    "RunningTestRecord",
    "SessionInfo",
    "Size",
    "StepUrlSelection",
    "Tab",
    "TestParameters",
    "UpdatedWindowState",
    "UserValuesSelection",
    "Window",
    "WindowPreparationResult",
]
