"""
Runs one visual check: open a session, submit the image, close.
"""

import logging
from typing import Optional

from snapcheck.config.settings import Settings, get_settings
from snapcheck.core.interfaces import VisualCheckClient, VisualSession
from snapcheck.core.types import CheckResult, MatchLevel, RunKey, TestParameters
from snapcheck.error_handling.exceptions import ComparisonError

logger = logging.getLogger(__name__)

# The backend's newer layout algorithm is used whenever Layout is requested.
LAYOUT_BACKEND_LEVEL = "Layout2"


def backend_match_level(match_level: MatchLevel) -> str:
    if match_level == MatchLevel.LAYOUT:
        return LAYOUT_BACKEND_LEVEL
    return match_level.value


class VisualCheckRunner:
    """Drives a VisualCheckClient through a single check."""

    def __init__(
        self,
        client: VisualCheckClient,
        settings: Optional[Settings] = None,
    ) -> None:
        self.client = client
        self.settings = settings or get_settings()

    async def run_check(
        self,
        params: TestParameters,
        image: bytes,
        tag: str,
        credentials: RunKey,
        user_agent: Optional[str] = None,
    ) -> CheckResult:
        """
        Submit one screenshot for comparison.

        Closing never raises on a failed comparison, so the result URL is
        always available once the image went through. If opening or
        checking fails, the session is aborted best-effort and the failure
        is raised.

        Args:
            params: Test parameters
            image: PNG bytes
            tag: Name of the checkpoint (usually the page title)
            credentials: Run key to submit with
            user_agent: Browser user agent, used when no environment is set

        Returns:
            The check result

        Raises:
            ComparisonError: If the check could not be performed
        """
        if not params.inferred_environment and user_agent:
            params = params.clone(inferred_environment=f"useragent:{user_agent}")

        session: Optional[VisualSession] = None
        try:
            session = await self.client.open_session(
                params,
                credentials,
                match_level=backend_match_level(params.match_level),
                agent_id=self.settings.agent_id,
            )
            await session.check_image(image, tag)
            result = await session.close(raise_on_failure=False)
        except Exception as exc:
            logger.error(
                f"Visual check failed: {exc}",
                extra={"app_name": params.app_name, "test_name": params.test_name},
            )
            if session is not None:
                await self._abort(session)
            raise ComparisonError(
                f"Visual check failed for {params.app_name}/{params.test_name}: {exc}",
                app_name=params.app_name,
                test_name=params.test_name,
                cause=exc,
            ) from exc

        logger.info(
            f"Visual check finished with status {result.status}",
            extra={"app_name": params.app_name, "test_name": params.test_name, "url": result.url},
        )
        return result

    @staticmethod
    async def _abort(session: VisualSession) -> None:
        try:
            await session.abort_if_not_closed()
        except Exception as exc:
            logger.warning(f"Failed to abort visual session: {exc}")
