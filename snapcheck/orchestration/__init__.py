"""
Orchestration module exports.
"""

from snapcheck.orchestration.coordinator import TestRunCoordinator, append_query_param
from snapcheck.orchestration.crawler import CrawlOrchestrator, SitemapDiscovery, dedupe_urls
from snapcheck.orchestration.lifecycle import TestLifecycleTracker
from snapcheck.orchestration.parameters import TestParametersResolver, default_names
from snapcheck.orchestration.result_tabs import ResultTabCache
from snapcheck.orchestration.run_state import RunState

__all__ = [
    "CrawlOrchestrator",
    "ResultTabCache",
    "RunState",
    "SitemapDiscovery",
    "TestLifecycleTracker",
    "TestParametersResolver",
    "TestRunCoordinator",
    "append_query_param",
    "dedupe_urls",
    "default_names",
]
