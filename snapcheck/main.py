"""
snapcheck - visual regression test runner
Main entry point for the application.
"""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from snapcheck import __version__
from snapcheck.browser.playwright_surface import PlaywrightBrowserSurface
from snapcheck.comparison.filesystem import FileSystemCheckClient
from snapcheck.config.settings import MATCH_LEVELS, VIEWPORT_SIZES, Settings, get_settings
from snapcheck.config.store import ConfigurationStore, JsonFileStorage
from snapcheck.core.types import CheckResult, CrawlSummary, Size, UserValuesSelection
from snapcheck.error_handling import SnapcheckError
from snapcheck.monitoring.indicator import ConsoleStatusIndicator
from snapcheck.monitoring.logger import get_logger, setup_logging
from snapcheck.orchestration.coordinator import TestRunCoordinator

console = Console()
logger = get_logger("main")


def create_parser() -> argparse.ArgumentParser:
    """Create command line argument parser."""
    parser = argparse.ArgumentParser(
        description=f"snapcheck - visual regression test runner v{__version__}",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Check a single page at the default viewport
  python -m snapcheck.main --run https://example.com/

  # Check every page listed in the site's sitemap
  python -m snapcheck.main --crawl https://example.com/ --headless

  # Walk through named steps, one check per step
  python -m snapcheck.main --run https://example.com/ --steps steps.txt
        """,
    )

    mode_group = parser.add_mutually_exclusive_group()
    mode_group.add_argument(
        "--run",
        metavar="URL",
        help="Open URL and run a single visual test",
    )
    mode_group.add_argument(
        "--crawl",
        metavar="URL",
        help="Test every page in the sitemap of URL's site",
    )
    mode_group.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )

    parser.add_argument(
        "--viewport",
        choices=VIEWPORT_SIZES,
        metavar="WIDTHxHEIGHT",
        help="Viewport size, one of: %(choices)s",
    )
    parser.add_argument(
        "--match-level",
        choices=MATCH_LEVELS,
        help="Match level used for the comparison",
    )
    parser.add_argument(
        "--app-name",
        help="Application name (requires --test-name)",
    )
    parser.add_argument(
        "--test-name",
        help="Test name (requires --app-name)",
    )
    parser.add_argument(
        "--steps",
        type=Path,
        help="File with one step name per line; runs one test per step",
    )
    parser.add_argument(
        "--headless",
        action="store_true",
        default=None,
        help="Run browser in headless mode",
    )
    parser.add_argument(
        "--no-full-page",
        action="store_true",
        help="Capture only the visible part of the page",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug mode with verbose logging",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose structured logging output (JSON)",
    )

    return parser


def show_version() -> int:
    console.print(f"snapcheck v{__version__}")
    return 0


def _print_result(result: CheckResult, label: str) -> None:
    table = Table(title=label, show_lines=True)
    table.add_column("Status", style="cyan")
    table.add_column("Matches", style="green", justify="right")
    table.add_column("Mismatches", style="red", justify="right")
    table.add_column("Results", style="white")
    status = f"{result.status} (new)" if result.is_new else result.status
    table.add_row(
        status, str(result.matches or 0), str(result.mismatches or 0), result.url or ""
    )
    console.print(table)


def _print_crawl_summary(summary: CrawlSummary) -> None:
    table = Table(title=f"Crawl of {summary.start_url}", show_lines=True)
    table.add_column("URL", style="cyan")
    table.add_column("Outcome", style="green")
    table.add_column("Results / Error", style="white")
    for page in summary.pages:
        if page.success:
            table.add_row(page.url, "[green]checked[/green]", page.result_url or "")
        else:
            table.add_row(page.url, "[red]failed[/red]", page.error or "")
    console.print(table)
    console.print(
        f"{summary.succeeded} of {summary.total_urls} page(s) checked "
        f"using {summary.tabs_used} tab(s)"
    )


async def _configure_store(store: ConfigurationStore, parsed_args: argparse.Namespace) -> None:
    if parsed_args.viewport:
        await store.set_viewport_size(parsed_args.viewport)
    if parsed_args.match_level:
        await store.set_match_level(parsed_args.match_level)
    if parsed_args.no_full_page:
        await store.set_take_full_page_screenshot(False)
    # Results are printed, never opened in extra tabs.
    await store.set_new_tab_for_results(False)


async def run(parsed_args: argparse.Namespace, settings: Settings) -> int:
    """Start a browser, run the requested mode and print the outcome."""
    selection = None
    if parsed_args.app_name or parsed_args.test_name:
        if not (parsed_args.app_name and parsed_args.test_name):
            console.print("[red]Error: --app-name and --test-name must be used together[/red]")
            return 1
        selection = UserValuesSelection(
            app_name=parsed_args.app_name, test_name=parsed_args.test_name
        )

    browser = PlaywrightBrowserSurface(headless=settings.browser_headless, settings=settings)
    store = ConfigurationStore(
        storage=JsonFileStorage(settings.config_store_path),
        browser=browser,
        settings=settings,
    )
    await _configure_store(store, parsed_args)

    coordinator = TestRunCoordinator(
        browser,
        FileSystemCheckClient(settings=settings),
        store=store,
        settings=settings,
        indicator=ConsoleStatusIndicator(console=console),
        offline=True,
    )

    url = parsed_args.run or parsed_args.crawl
    viewport = Size.parse(await store.get_viewport_size())

    await browser.start()
    try:
        tab = await browser.open_window(url, viewport)

        if parsed_args.crawl:
            summary = await coordinator.crawl(tab)
            _print_crawl_summary(summary)
            return 0 if summary.failed == 0 else 1

        if parsed_args.steps:
            steps = parsed_args.steps.read_text(encoding="utf-8").splitlines()
            count = coordinator.load_steps(steps)
            console.print(f"[cyan]Running {count} step(s)[/cyan]")
            for index in range(count):
                step = coordinator.get_current_step()
                result = await coordinator.run_single_test(tab, selection)
                _print_result(result, f"Step {index + 1}: {step}")
            return 0

        result = await coordinator.run_single_test(tab, selection)
        _print_result(result, url)
        return 0
    except SnapcheckError as exc:
        console.print(f"[red]Error: {exc.message}[/red]")
        logger.debug("Run failed", extra={"error": exc.to_dict()})
        return 1
    finally:
        await coordinator.aclose()
        await browser.stop()


async def async_main(args: Optional[List[str]] = None) -> int:
    """Async main function."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if parsed_args.version:
        return show_version()

    if not (parsed_args.run or parsed_args.crawl):
        parser.print_help()
        return 1

    settings = get_settings()

    if parsed_args.debug:
        settings.log_level = "DEBUG"

    settings.log_format = "json" if parsed_args.verbose else "text"

    if parsed_args.headless is not None:
        settings.browser_headless = parsed_args.headless

    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format,
        log_file=settings.log_file,
    )

    console.print(Panel.fit(
        f"[bold]snapcheck[/bold] v{__version__}\n"
        f"{'Crawling' if parsed_args.crawl else 'Testing'} "
        f"{parsed_args.run or parsed_args.crawl}",
        border_style="blue",
    ))

    return await run(parsed_args, settings)


def main(args: Optional[List[str]] = None) -> int:
    """
    Main entry point for snapcheck.

    Args:
        args: Command line arguments

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    try:
        return asyncio.run(async_main(args))
    except Exception as e:
        console.print(f"[red]Fatal error: {e}[/red]")
        return 1


if __name__ == "__main__":
    sys.exit(main())
