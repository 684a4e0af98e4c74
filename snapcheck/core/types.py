"""
Core data models and types for snapcheck.
"""

import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class MatchLevel(str, Enum):
    """Comparison strictness understood by the visual check backend."""

    LAYOUT = "Layout"
    CONTENT = "Content"
    STRICT = "Strict"
    EXACT = "Exact"


class Size(BaseModel):
    """Width/height pair in CSS pixels."""

    width: int = Field(..., ge=0)
    height: int = Field(..., ge=0)

    @classmethod
    def parse(cls, value: str) -> "Size":
        """Parse a ``"WIDTHxHEIGHT"`` string such as ``"800x600"``."""
        parts = value.lower().split("x")
        if len(parts) != 2:
            raise ValueError(f"Invalid size: {value!r}")
        return cls(width=int(parts[0].strip()), height=int(parts[1].strip()))

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


class Tab(BaseModel):
    """Snapshot of a browser tab as reported by the automation surface."""

    id: int
    window_id: int
    index: int = 0
    url: str = ""
    title: str = ""
    active: bool = False
    width: int = Field(0, description="Content area width")
    height: int = Field(0, description="Content area height")

    @property
    def size(self) -> Size:
        return Size(width=self.width, height=self.height)


class Window(BaseModel):
    """Snapshot of a browser window, optionally with its tabs."""

    id: int
    width: int
    height: int
    tabs: List[Tab] = Field(default_factory=list)

    @property
    def size(self) -> Size:
        return Size(width=self.width, height=self.height)


class BatchInfo(BaseModel):
    """Groups several checks under one batch in the results view."""

    name: str
    id: str


class TestParameters(BaseModel):
    """Everything the visual check needs to know about one test execution."""

    __test__ = False

    app_name: str
    test_name: str
    branch_name: Optional[str] = None
    parent_branch_name: Optional[str] = None
    os: Optional[str] = None
    hosting_app: Optional[str] = None
    inferred_environment: Optional[str] = None
    match_level: MatchLevel = MatchLevel.STRICT
    viewport_size: Size
    batch: Optional[BatchInfo] = None

    def clone(self, **updates: Any) -> "TestParameters":
        """Deep copy, so nested viewport and batch objects are never shared."""
        return self.model_copy(update=updates, deep=True)

    def fingerprint(self) -> str:
        """Stable key that is equal exactly when the parameters are equal."""
        return json.dumps(self.model_dump(mode="json"), sort_keys=True)


class StepUrlSelection(BaseModel):
    """Take app and test names from an existing session's step URL."""

    kind: Literal["step_url"] = "step_url"
    url: str


class UserValuesSelection(BaseModel):
    """App and test names typed by the user."""

    kind: Literal["user_values"] = "user_values"
    app_name: str
    test_name: str


class DefaultSelection(BaseModel):
    """Derive app and test names from the page URL."""

    kind: Literal["default"] = "default"


BaselineSelection = Union[StepUrlSelection, UserValuesSelection, DefaultSelection]


class UpdatedWindowState(BaseModel):
    """Where the tab lives while the test runs."""

    tab: Tab
    window: Window
    is_new_window_created: bool


class OriginalWindowState(BaseModel):
    """What must be put back once the test is done."""

    window: Window
    tab_index: int
    window_size: Size


class WindowPreparationResult(BaseModel):
    """Outcome of preparing a tab for capture; owns the restore information."""

    updated: UpdatedWindowState
    original: OriginalWindowState


class RunningTestRecord(BaseModel):
    """A test currently executing in a tab."""

    tab_id: int
    app_name: str
    test_name: str
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class Account(BaseModel):
    """An account the user may run tests under (new auth scheme)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    account_id: str = Field(..., alias="accountId")
    account_name: Optional[str] = Field(None, alias="accountName")
    is_current: bool = Field(False, alias="isCurrent")
    is_viewer: bool = Field(False, alias="isViewer")
    runner_key: Optional[str] = Field(None, alias="runnerKey")
    access_key: Optional[str] = Field(None, alias="accessKey")


class LegacyCredentials(BaseModel):
    """API key and account id read from the legacy login cookies."""

    api_key: str
    account_id: str


class RunKey(BaseModel):
    """Key used to submit checks, tagged with the scheme it came from."""

    run_key: str
    is_new_auth_scheme: bool


class QueryParam(BaseModel):
    """Single query string parameter appended to a results URL."""

    name: str
    value: str


class CheckResult(BaseModel):
    """Result reported by the visual check backend."""

    model_config = ConfigDict(extra="allow")

    url: Optional[str] = Field(None, description="Where the result can be viewed")
    status: str = "Unresolved"
    is_new: bool = False
    matches: Optional[int] = None
    mismatches: Optional[int] = None
    missing: Optional[int] = None


class LogLevel(str, Enum):
    """Severity of a run log entry."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class LogEntry(BaseModel):
    """One line of the process-wide run log."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    message: str
    level: LogLevel = LogLevel.INFO


class CrawlPageResult(BaseModel):
    """Outcome of testing one crawled URL."""

    url: str
    success: bool
    result_url: Optional[str] = None
    error: Optional[str] = None


class CrawlSummary(BaseModel):
    """Outcome of a whole crawl."""

    start_url: str
    total_urls: int = 0
    tabs_used: int = 0
    pages: List[CrawlPageResult] = Field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for page in self.pages if page.success)

    @property
    def failed(self) -> int:
        return sum(1 for page in self.pages if not page.success)

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(mode="json")
        data["succeeded"] = self.succeeded
        data["failed"] = self.failed
        return data


class SessionEnvironment(BaseModel):
    """Environment an existing session was recorded in."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    os: Optional[str] = None
    hosting_app: Optional[str] = Field(None, alias="hostingApp")
    display_size: Size = Field(..., alias="displaySize")

    @field_validator("display_size", mode="before")
    @classmethod
    def parse_display_size(cls, value: Any) -> Any:
        if isinstance(value, str):
            return Size.parse(value)
        return value


class SessionStartInfo(BaseModel):
    """Start info of an existing session, used to rerun one of its steps."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    app_name: str = Field(..., alias="appIdOrName")
    test_name: str = Field(..., alias="scenarioIdOrName")
    branch_name: Optional[str] = Field(None, alias="branchName")
    parent_branch_name: Optional[str] = Field(None, alias="parentBranchName")
    environment: SessionEnvironment


class SessionInfo(BaseModel):
    """Session document returned by ``/api/sessions/{id}.json``."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    start_info: SessionStartInfo = Field(..., alias="startInfo")
