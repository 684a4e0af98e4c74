"""
Browser module exports.
"""

from snapcheck.browser.playwright_surface import PlaywrightBrowserSurface
from snapcheck.browser.screenshot import ScreenshotTaker
from snapcheck.browser.window_preparer import WindowPreparer

__all__ = [
    "PlaywrightBrowserSurface",
    "ScreenshotTaker",
    "WindowPreparer",
]
