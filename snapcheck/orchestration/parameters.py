"""
Derivation of test parameters from the page URL and the baseline selection.
"""

import logging
import re
from typing import Optional, Tuple
from urllib.parse import urlsplit

from snapcheck.auth.client import AccountsClient
from snapcheck.config.store import ConfigurationStore
from snapcheck.core.types import (
    BaselineSelection,
    MatchLevel,
    Size,
    StepUrlSelection,
    TestParameters,
    UserValuesSelection,
)
from snapcheck.error_handling.exceptions import InvalidStepUrlError

logger = logging.getLogger(__name__)

SESSION_ID_PATTERN = re.compile(r"sessions/(\d+)(?:/|$)")


def default_names(url: str, include_query: bool = False) -> Tuple[str, str]:
    """App name from the host, test name from the path."""
    parts = urlsplit(url)
    app_name = parts.netloc or url
    test_name = parts.path or "/"
    if include_query and parts.query:
        test_name = f"{test_name}?{parts.query}"
    return app_name, test_name


class TestParametersResolver:
    """Builds the TestParameters for a page according to the baseline selection."""

    __test__ = False

    def __init__(self, store: ConfigurationStore, client: AccountsClient) -> None:
        self.store = store
        self.client = client

    async def resolve(
        self, url: str, selection: Optional[BaselineSelection] = None
    ) -> TestParameters:
        """
        Resolve parameters for testing ``url``.

        Args:
            url: URL of the page under test
            selection: Baseline selection; read from the store when omitted

        Returns:
            Parameters without batch information

        Raises:
            InvalidStepUrlError: If a step URL does not reference a session
            SessionInfoError: If the referenced session cannot be fetched
        """
        if selection is None:
            selection = await self.store.get_baseline_selection()

        match_level = MatchLevel(await self.store.get_match_level())

        if isinstance(selection, StepUrlSelection):
            return await self._from_step_url(selection.url, match_level)

        if isinstance(selection, UserValuesSelection):
            app_name, test_name = selection.app_name, selection.test_name
        else:
            include_query = await self.store.get_include_query_params_in_test_name()
            app_name, test_name = default_names(url, include_query)

        viewport = Size.parse(await self.store.get_viewport_size())
        return TestParameters(
            app_name=app_name,
            test_name=test_name,
            match_level=match_level,
            viewport_size=viewport,
        )

    async def _from_step_url(self, step_url: str, match_level: MatchLevel) -> TestParameters:
        found = SESSION_ID_PATTERN.search(step_url)
        if not found:
            raise InvalidStepUrlError(f"Invalid step URL: {step_url}", step_url=step_url)

        session_id = found.group(1)
        server_url = await self.store.get_server_url()
        info = await self.client.fetch_session_info(server_url, session_id)
        start = info.start_info
        logger.debug(
            f"Using baseline of session {session_id}",
            extra={"app_name": start.app_name, "test_name": start.test_name},
        )
        return TestParameters(
            app_name=start.app_name,
            test_name=start.test_name,
            branch_name=start.branch_name,
            parent_branch_name=start.parent_branch_name,
            os=start.environment.os,
            hosting_app=start.environment.hosting_app,
            match_level=match_level,
            viewport_size=start.environment.display_size,
        )
