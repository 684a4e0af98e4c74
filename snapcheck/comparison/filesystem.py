"""
File-backed visual check client.

Each check is stored as a PNG under ``screenshots_dir/<app>/<test>/`` and
compared byte-for-byte with the previous capture of the same test. Results
are reported as ``file://`` URLs of an HTML page showing both images.
"""

import hashlib
import html
import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from snapcheck.config.settings import Settings, get_settings
from snapcheck.core.interfaces import VisualCheckClient, VisualSession
from snapcheck.core.types import CheckResult, RunKey, TestParameters
from snapcheck.error_handling.exceptions import ComparisonError

logger = logging.getLogger(__name__)

STATUS_NEW = "New"
STATUS_PASSED = "Passed"
STATUS_UNRESOLVED = "Unresolved"
STATUS_ABORTED = "Aborted"


def _safe_name(value: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", value).strip("._")
    return cleaned or "root"


class FileSystemSession(VisualSession):
    """One test's captures written to disk."""

    def __init__(self, directory: Path, params: TestParameters, match_level: str) -> None:
        self.directory = directory
        self.params = params
        self.match_level = match_level
        self.checkpoints: List[Path] = []
        self.statuses: List[str] = []
        self.closed = False
        self.aborted = False

    def _previous_capture(self) -> Optional[Path]:
        existing = sorted(self.directory.glob("*.png"))
        existing = [path for path in existing if path not in self.checkpoints]
        return existing[-1] if existing else None

    async def check_image(self, image: bytes, tag: str) -> None:
        if self.closed:
            raise ComparisonError("Session is already closed")

        previous = self._previous_capture()
        stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S%f")
        path = self.directory / f"{stamp}_{_safe_name(tag)}.png"
        path.write_bytes(image)
        self.checkpoints.append(path)

        if previous is None:
            self.statuses.append(STATUS_NEW)
        elif hashlib.sha256(previous.read_bytes()).digest() == hashlib.sha256(image).digest():
            self.statuses.append(STATUS_PASSED)
        else:
            self.statuses.append(STATUS_UNRESOLVED)

    def _write_report(self) -> Path:
        report = self.directory / "index.html"
        rows = "\n".join(
            f'<li>{html.escape(path.name)}: {status}<br><img src="{html.escape(path.name)}"></li>'
            for path, status in zip(self.checkpoints, self.statuses)
        )
        report.write_text(
            "<html><body>"
            f"<h1>{html.escape(self.params.app_name)} / {html.escape(self.params.test_name)}</h1>"
            f"<p>Viewport {self.params.viewport_size}, match level {html.escape(self.match_level)}</p>"
            f"<ul>{rows}</ul></body></html>"
        )
        return report

    async def close(self, raise_on_failure: bool = False) -> CheckResult:
        self.closed = True
        if STATUS_UNRESOLVED in self.statuses:
            status = STATUS_UNRESOLVED
        elif self.statuses and all(s == STATUS_NEW for s in self.statuses):
            status = STATUS_NEW
        else:
            status = STATUS_PASSED

        mismatches = self.statuses.count(STATUS_UNRESOLVED)
        if raise_on_failure and mismatches:
            raise ComparisonError(
                f"{mismatches} checkpoint(s) differ from the previous capture",
                app_name=self.params.app_name,
                test_name=self.params.test_name,
            )

        return CheckResult(
            url=self._write_report().resolve().as_uri(),
            status=status,
            is_new=status == STATUS_NEW,
            matches=self.statuses.count(STATUS_PASSED),
            mismatches=mismatches,
            missing=0,
        )

    async def abort_if_not_closed(self) -> None:
        if self.closed:
            return
        self.closed = True
        self.aborted = True
        logger.info(
            "Session aborted",
            extra={"app_name": self.params.app_name, "test_name": self.params.test_name},
        )


class FileSystemCheckClient(VisualCheckClient):
    """Visual check client recording captures under the screenshots directory."""

    def __init__(
        self,
        root: Optional[Path] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        settings = settings or get_settings()
        self.root = Path(root) if root is not None else settings.screenshots_dir

    async def open_session(
        self,
        params: TestParameters,
        credentials: RunKey,
        match_level: str,
        agent_id: str,
    ) -> FileSystemSession:
        directory = self.root / _safe_name(params.app_name) / _safe_name(params.test_name)
        directory.mkdir(parents=True, exist_ok=True)
        logger.debug(
            f"Opened session ({agent_id})",
            extra={"app_name": params.app_name, "test_name": params.test_name},
        )
        return FileSystemSession(directory, params, match_level)
