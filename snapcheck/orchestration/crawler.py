"""
Crawl mode: test every page listed in a site's sitemap.

URLs are drained from one shared queue by a small pool of workers, each
owning one tab. A worker handles its URLs strictly one after another; the
workers run concurrently. Captures still go through the shared sequential
runner inside ``run_test``, so screenshots stay globally ordered.
"""

import asyncio
import logging
import xml.etree.ElementTree as ET
from typing import Awaitable, Callable, List, Optional
from urllib.parse import urlsplit, urlunsplit

import httpx

from snapcheck.config.settings import Settings, get_settings
from snapcheck.core.interfaces import BrowserAutomation
from snapcheck.core.types import CheckResult, CrawlPageResult, CrawlSummary, Tab
from snapcheck.error_handling.exceptions import CrawlDiscoveryError, TabClosedError
from snapcheck.monitoring.logger import log_performance_metric

logger = logging.getLogger(__name__)

RunTest = Callable[[Tab, str], Awaitable[CheckResult]]


def sitemap_url_for(start_url: str) -> str:
    parts = urlsplit(start_url)
    return urlunsplit((parts.scheme, parts.netloc, "/sitemap.xml", "", ""))


def dedupe_urls(urls: List[str], start_url: str) -> List[str]:
    """Sort, drop consecutive duplicates, and drop the start page itself."""
    result: List[str] = []
    for url in sorted(urls):
        if url == start_url:
            continue
        if result and result[-1] == url:
            continue
        result.append(url)
    return result


class SitemapDiscovery:
    """Reads page URLs from ``/sitemap.xml`` of the start page's site."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        settings: Optional[Settings] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.timeout = self.settings.sitemap_timeout_seconds
        self.max_urls = self.settings.crawl_max_urls
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self.timeout, follow_redirects=True)

    async def discover(self, start_url: str) -> List[str]:
        """
        Fetch and parse the sitemap.

        Returns:
            Up to ``crawl_max_urls`` page URLs, in sitemap order

        Raises:
            CrawlDiscoveryError: If the sitemap cannot be fetched or parsed,
                or lists no locations
        """
        sitemap_url = sitemap_url_for(start_url)
        try:
            response = await self.client.get(sitemap_url, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise CrawlDiscoveryError(
                f"Failed to fetch sitemap: {exc}",
                start_url=start_url,
                sitemap_url=sitemap_url,
                cause=exc,
            ) from exc

        try:
            root = ET.fromstring(response.content)
        except ET.ParseError as exc:
            raise CrawlDiscoveryError(
                f"Sitemap is not valid XML: {exc}",
                start_url=start_url,
                sitemap_url=sitemap_url,
                cause=exc,
            ) from exc

        # Tags carry the sitemap namespace, e.g. "{http://...}loc".
        urls = [
            element.text.strip()
            for element in root.iter()
            if element.tag.rsplit("}", 1)[-1] == "loc" and element.text and element.text.strip()
        ]
        if not urls:
            raise CrawlDiscoveryError(
                "Sitemap contains no locations",
                start_url=start_url,
                sitemap_url=sitemap_url,
            )

        logger.info(f"Sitemap lists {len(urls)} URL(s)", extra={"url": sitemap_url})
        return urls[: self.max_urls]

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()


class CrawlOrchestrator:
    """Runs one test per discovered URL across a bounded pool of tabs."""

    def __init__(
        self,
        browser: BrowserAutomation,
        discovery: SitemapDiscovery,
        settings: Optional[Settings] = None,
    ) -> None:
        self.browser = browser
        self.discovery = discovery
        self.settings = settings or get_settings()
        self.max_tabs = self.settings.crawl_max_tabs
        self.settle_ms = self.settings.crawl_page_settle_ms

    async def crawl(self, start_tab: Tab, run_test: RunTest) -> CrawlSummary:
        """
        Crawl from the page shown in ``start_tab``.

        Args:
            start_tab: Tab showing the start page; crawl tabs open in its window
            run_test: Runs one test in a tab; the page is already loaded

        Returns:
            Per-URL outcome of the crawl

        Raises:
            CrawlDiscoveryError: If no URLs could be discovered
        """
        start_url = start_tab.url
        urls = dedupe_urls(await self.discovery.discover(start_url), start_url)
        summary = CrawlSummary(start_url=start_url, total_urls=len(urls))
        if not urls:
            logger.info("Nothing to crawl besides the start page")
            return summary

        queue: asyncio.Queue = asyncio.Queue()
        for url in urls:
            queue.put_nowait(url)

        pool_size = min(self.max_tabs, len(urls))
        summary.tabs_used = pool_size
        logger.info(f"Crawling {len(urls)} URL(s) with {pool_size} tab(s)")

        start_time = asyncio.get_event_loop().time()
        outcomes = await asyncio.gather(
            *(
                self._worker(slot, start_tab.window_id, queue, run_test, summary)
                for slot in range(pool_size)
            ),
            return_exceptions=True,
        )
        for slot, outcome in enumerate(outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"Crawl worker {slot} stopped: {outcome}")

        while not queue.empty():
            url = queue.get_nowait()
            summary.pages.append(
                CrawlPageResult(url=url, success=False, error="Not processed: every crawl tab was closed")
            )

        elapsed_ms = (asyncio.get_event_loop().time() - start_time) * 1000
        log_performance_metric("crawl", elapsed_ms, context={"url": start_url})
        return summary

    async def _worker(
        self,
        slot: int,
        window_id: int,
        queue: asyncio.Queue,
        run_test: RunTest,
        summary: CrawlSummary,
    ) -> None:
        tab = await self.browser.create_tab("about:blank", window_id=window_id, active=False)
        logger.debug(f"Crawl worker {slot} started", extra={"tab_id": tab.id})
        try:
            while True:
                try:
                    url = queue.get_nowait()
                except asyncio.QueueEmpty:
                    break

                try:
                    loaded = await self.browser.update_tab_url(tab.id, url)
                    if loaded is None:
                        queue.put_nowait(url)
                        logger.warning(
                            f"Crawl worker {slot} lost its tab", extra={"tab_id": tab.id}
                        )
                        return

                    if self.settle_ms:
                        await asyncio.sleep(self.settle_ms / 1000)

                    result = await run_test(loaded, url)
                except TabClosedError as exc:
                    summary.pages.append(CrawlPageResult(url=url, success=False, error=exc.message))
                    logger.warning(f"Crawl tab closed while testing {url}", extra={"tab_id": tab.id})
                    return
                except Exception as exc:
                    summary.pages.append(CrawlPageResult(url=url, success=False, error=str(exc)))
                    logger.error(f"Crawl test failed for {url}: {exc}", extra={"tab_id": tab.id})
                else:
                    summary.pages.append(
                        CrawlPageResult(url=url, success=True, result_url=result.url)
                    )

                if await self.browser.get_tab(tab.id) is None:
                    logger.warning(
                        f"Crawl worker {slot} lost its tab", extra={"tab_id": tab.id}
                    )
                    return
        finally:
            if await self.browser.get_tab(tab.id) is not None:
                await self.browser.remove_tab(tab.id)
            logger.debug(f"Crawl worker {slot} finished", extra={"tab_id": tab.id})
