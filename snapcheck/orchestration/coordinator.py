"""
Test run coordinator: the single entry point driving tests, crawls and steps.
"""

import asyncio
from typing import List, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from snapcheck.auth.client import AccountsClient
from snapcheck.auth.session import AccountSession, AuthState
from snapcheck.browser.screenshot import ScreenshotTaker
from snapcheck.browser.window_preparer import WindowPreparer
from snapcheck.comparison.runner import VisualCheckRunner
from snapcheck.config.settings import Settings, get_settings
from snapcheck.config.store import ConfigurationStore
from snapcheck.core.baseline import BaselineImage
from snapcheck.core.interfaces import BrowserAutomation, StatusIndicator, VisualCheckClient
from snapcheck.core.steps import StepCursor
from snapcheck.core.tasks import SequentialTaskRunner
from snapcheck.core.types import (
    Account,
    BaselineSelection,
    BatchInfo,
    CheckResult,
    CrawlSummary,
    DefaultSelection,
    LogEntry,
    QueryParam,
    RunKey,
    Tab,
    TestParameters,
)
from snapcheck.error_handling.exceptions import (
    AuthenticationError,
    SnapcheckError,
    TabClosedError,
)
from snapcheck.monitoring.indicator import ConsoleStatusIndicator
from snapcheck.monitoring.logger import get_logger, log_performance_metric
from snapcheck.orchestration.crawler import CrawlOrchestrator, SitemapDiscovery
from snapcheck.orchestration.lifecycle import TestLifecycleTracker
from snapcheck.orchestration.parameters import TestParametersResolver
from snapcheck.orchestration.result_tabs import ResultTabCache
from snapcheck.orchestration.run_state import RunState

logger = get_logger(__name__)

USER_AGENT_SCRIPT = "navigator.userAgent"


def append_query_param(url: str, param: Optional[QueryParam]) -> str:
    """Add ``param`` to the query string of ``url``, replacing an existing value."""
    if param is None:
        return url
    parts = urlsplit(url)
    query = [(name, value) for name, value in parse_qsl(parts.query) if name != param.name]
    query.append((param.name, param.value))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


class TestRunCoordinator:
    """
    Composes the run engine.

    Owns the process-wide run state, the shared sequential capture runner,
    the result tab cache and the step cursor. Every test, whether started
    directly, by a crawl or in steps mode, goes through ``_run_test``.
    """

    __test__ = False

    def __init__(
        self,
        browser: BrowserAutomation,
        check_client: VisualCheckClient,
        store: Optional[ConfigurationStore] = None,
        settings: Optional[Settings] = None,
        indicator: Optional[StatusIndicator] = None,
        accounts_client: Optional[AccountsClient] = None,
        discovery: Optional[SitemapDiscovery] = None,
        offline: bool = False,
    ):
        """
        Initialize the coordinator.

        Args:
            browser: Browser automation surface
            check_client: Visual check backend
            store: Configuration store; an in-memory one is used when omitted
            settings: Application settings
            indicator: Status indicator; a console one is used when omitted
            accounts_client: Client for the accounts and sessions endpoints
            discovery: Sitemap discovery used by crawls
            offline: Run checks without account credentials (local backends)
        """
        self.settings = settings or get_settings()
        self.browser = browser
        self.store = store or ConfigurationStore(browser=browser, settings=self.settings)
        self.indicator = indicator or ConsoleStatusIndicator()

        self.state = RunState(log_limit=self.settings.run_log_limit)
        self.lifecycle = TestLifecycleTracker(self.state, self.indicator)
        self.steps = StepCursor()
        self.task_runner = SequentialTaskRunner()
        self.result_tabs = ResultTabCache(browser, self.store)

        self.window_preparer = WindowPreparer(browser, self.settings)
        self.screenshot_taker = ScreenshotTaker(browser, self.settings)
        self.check_runner = VisualCheckRunner(check_client, self.settings)

        self.accounts_client = accounts_client or AccountsClient(
            timeout=self.settings.http_timeout_seconds
        )
        self.account_session = AccountSession(self.store, self.accounts_client)
        self.parameters = TestParametersResolver(self.store, self.accounts_client)
        self.crawler = CrawlOrchestrator(
            browser, discovery or SitemapDiscovery(settings=self.settings), self.settings
        )

        self.baseline_image: Optional[BaselineImage] = None
        self._baseline_image_loading_enabled = True
        self.offline = offline

        browser.add_tab_removed_listener(self.lifecycle.on_tab_closed)
        logger.info("Test run coordinator initialized")

    # Observables

    @property
    def running_tests_count(self) -> int:
        return self.state.running_tests_count

    @property
    def logs(self) -> List[LogEntry]:
        return self.state.logs

    @property
    def new_errors_exist(self) -> bool:
        return self.state.new_errors_exist

    @property
    def unread_errors_exist(self) -> bool:
        return self.state.unread_errors_exist

    def popup_opened(self) -> None:
        self.lifecycle.popup_opened()

    def options_opened(self) -> None:
        self.lifecycle.options_opened()

    # Running tests

    async def run_single_test(
        self,
        tab: Optional[Tab] = None,
        selection: Optional[BaselineSelection] = None,
    ) -> CheckResult:
        """
        Test the page shown in ``tab`` (the active tab by default).

        In steps mode the current step names the test, results go to the
        single shared results tab and the cursor advances afterwards.

        Returns:
            The check result, with the result URL ready to be opened

        Raises:
            SnapcheckError: If any stage of the test failed; the failure has
                already been reported through the status indicator and run log
        """
        if tab is None:
            tab = await self.browser.get_active_tab()
        return await self._run_test(tab, selection, steps_mode=self.steps.are_steps_available())

    async def crawl(self, tab: Optional[Tab] = None) -> CrawlSummary:
        """
        Test every page in the sitemap of the site shown in ``tab``.

        Crawled pages always use the default baseline selection.

        Raises:
            CrawlDiscoveryError: If the sitemap is unavailable or empty
        """
        if tab is None:
            tab = await self.browser.get_active_tab()

        self.state.add_log(f"Crawl started: {tab.url}")

        async def _run(page_tab: Tab, url: str) -> CheckResult:
            return await self._run_test(page_tab, DefaultSelection(), steps_mode=False)

        try:
            summary = await self.crawler.crawl(tab, _run)
        except SnapcheckError as exc:
            self.lifecycle.report_error(f"Crawl failed: {exc.message}")
            raise

        self.state.add_log(
            f"Crawl finished: {summary.succeeded} succeeded, {summary.failed} failed"
        )
        return summary

    async def _run_test(
        self,
        tab: Tab,
        selection: Optional[BaselineSelection],
        steps_mode: bool,
    ) -> CheckResult:
        loop = asyncio.get_event_loop()
        start_time = loop.time()
        token: Optional[int] = None
        try:
            params = await self.parameters.resolve(tab.url, selection)
            if steps_mode:
                params = await self._apply_steps_mode(params)
            elif await self.store.get_should_use_batch():
                params = await self._with_batch(params)

            token = self.lifecycle.test_started(tab.id, params.app_name, params.test_name)

            credentials = await self._get_run_key()
            await self._submit_baseline_image(params, credentials)

            image, original_window_id = await self._capture(tab, params)

            user_agent = await self.browser.execute_script(tab.id, USER_AGENT_SCRIPT)
            result = await self.check_runner.run_check(
                params, image, tab.title or tab.url, credentials, user_agent=user_agent
            )
            if result.url:
                if not self.offline:
                    result.url = append_query_param(
                        result.url, self.account_session.get_results_view_key()
                    )
                await self.result_tabs.show_results(
                    result.url, params, target_window_id=original_window_id, steps_mode=steps_mode
                )
            if steps_mode:
                self.steps.move_next()

            self.state.add_log(f"Test result: {result.status} {result.url}")
            return result
        except Exception as exc:
            if token is not None and await self._tab_closed(tab, token):
                self.state.add_log(f"Test stopped, its tab was closed: {tab.url}")
                raise TabClosedError(
                    f"Tab {tab.id} was closed before the test finished",
                    tab_id=tab.id,
                    cause=exc,
                ) from exc
            message = exc.message if isinstance(exc, SnapcheckError) else str(exc)
            self.lifecycle.report_error(message)
            raise
        finally:
            if token is not None:
                self.lifecycle.test_ended(token=token)
            log_performance_metric(
                "single_test", (loop.time() - start_time) * 1000, context={"tab_id": tab.id}
            )

    async def _tab_closed(self, tab: Tab, token: int) -> bool:
        """True when the test's tab disappeared, whether or not the removal was seen yet."""
        if not self.lifecycle.is_running(token):
            return True
        return await self.browser.get_tab(tab.id) is None

    async def _capture(self, tab: Tab, params: TestParameters) -> Tuple[bytes, int]:
        """Prepare the window, capture through the shared runner, restore."""
        preparation = await self.window_preparer.prepare(tab, params.viewport_size)
        try:
            if self.settings.pre_capture_delay_ms:
                await asyncio.sleep(self.settings.pre_capture_delay_ms / 1000)

            full_page = await self.store.get_take_full_page_screenshot()
            remove_scroll_bars = await self.store.get_remove_scroll_bars()
            image = await self.task_runner.run(
                self.screenshot_taker.capture,
                preparation.updated.tab,
                params.viewport_size,
                full_page=full_page,
                remove_scroll_bars=remove_scroll_bars,
            )
        finally:
            await self.window_preparer.restore(preparation)
        return image, preparation.original.window.id

    async def _apply_steps_mode(self, params: TestParameters) -> TestParameters:
        step = self.steps.current()
        if step is None:
            return params
        return await self._with_batch(params.clone(test_name=step))

    async def _with_batch(self, params: TestParameters) -> TestParameters:
        batch_name = await self.store.get_batch_name() or params.app_name
        return params.clone(batch=BatchInfo(name=batch_name, id=self.state.batch_id))

    async def _get_run_key(self) -> RunKey:
        if self.offline:
            return RunKey(run_key="", is_new_auth_scheme=False)
        if self.account_session.state == AuthState.UNAUTHENTICATED:
            await self.account_session.load_credentials()
        if self.account_session.state == AuthState.UNAUTHENTICATED:
            raise AuthenticationError(
                "Not logged in", redirect_url=self.account_session.redirect_url
            )
        return self.account_session.get_run_key()

    async def _submit_baseline_image(self, params: TestParameters, credentials: RunKey) -> None:
        image = self.baseline_image
        if not (self._baseline_image_loading_enabled and image and image.should_use):
            return
        if image.is_baseline():
            return

        logger.info(
            f"Submitting {image.filename} as baseline",
            extra={"app_name": params.app_name, "test_name": params.test_name},
        )
        result = await self.check_runner.run_check(params, image.image, image.filename, credentials)
        image.step_url = result.url
        self.state.add_log(f"Baseline image submitted: {image.filename}")

    # Steps

    def load_steps(self, raw_steps: List[str]) -> int:
        """Replace the steps; a new run gets a new batch and fresh result tabs."""
        self.steps.set_steps(raw_steps)
        self.state.reset_batch_id()
        self.result_tabs.reset()
        return self.steps.count()

    def remove_steps(self) -> None:
        self.steps.reset()
        self.result_tabs.reset()

    def get_steps_count(self) -> int:
        return self.steps.count()

    def get_current_step(self) -> Optional[str]:
        return self.steps.current()

    def get_current_step_index(self) -> int:
        return self.steps.current_index()

    def move_to_next_step(self) -> Optional[str]:
        return self.steps.move_next()

    def move_to_prev_step(self) -> Optional[str]:
        return self.steps.move_prev()

    def move_to_step(self, index: int) -> Optional[str]:
        return self.steps.move_to(index)

    # Batch

    def reset_batch_id(self) -> str:
        return self.state.reset_batch_id()

    @property
    def current_batch_id(self) -> str:
        return self.state.batch_id

    # Baseline image

    def prepare_image_for_baseline(self, image: bytes, filename: str) -> BaselineImage:
        """Load an image to be submitted as the baseline of the next test."""
        self.baseline_image = BaselineImage(image, filename)
        logger.info(f"Loaded baseline image {filename}")
        return self.baseline_image

    def set_baseline_image_loading_enabled(self, enabled: bool) -> None:
        self._baseline_image_loading_enabled = enabled

    def is_baseline_image_loading_enabled(self) -> bool:
        return self._baseline_image_loading_enabled

    def get_baseline_image_name(self) -> Optional[str]:
        return self.baseline_image.filename if self.baseline_image else None

    def set_should_use_image_as_baseline(self, should_use: bool) -> bool:
        """Returns whether the loaded image will be used; False when none is loaded."""
        if self.baseline_image is None:
            return False
        self.baseline_image.should_use = should_use
        return should_use

    def get_should_use_image_as_baseline(self) -> bool:
        return bool(self.baseline_image and self.baseline_image.should_use)

    def is_image_as_baseline_loaded(self) -> bool:
        return self.baseline_image is not None

    # Accounts

    async def load_credentials(self) -> AuthState:
        return await self.account_session.load_credentials()

    def get_user_accounts(self) -> List[Account]:
        return list(self.account_session.accounts or [])

    async def get_current_account_id(self) -> Optional[str]:
        return await self.account_session.get_current_account_id()

    async def set_current_account(self, account_id: str) -> int:
        return await self.account_session.set_current_account(account_id)

    @property
    def redirect_url(self) -> Optional[str]:
        return self.account_session.redirect_url

    async def aclose(self) -> None:
        await self.accounts_client.aclose()
        await self.crawler.discovery.aclose()
