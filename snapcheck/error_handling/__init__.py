"""
Error handling and retry helpers for snapcheck.
"""

from .exceptions import (
    SnapcheckError,
    RetryableError,
    NonRetryableError,
    BrowserError,
    TabClosedError,
    WindowPreparationError,
    CaptureError,
    ComparisonError,
    AuthenticationError,
    AccountSelectionError,
    AccountsFetchError,
    SessionInfoError,
    InvalidStepUrlError,
    CrawlDiscoveryError,
    RetryExhaustedError,
)

from .recovery import (
    RetryStrategy,
    FixedDelayStrategy,
    LinearBackoffStrategy,
    retry_until,
)

__all__ = [
    # Exceptions
    "SnapcheckError",
    "RetryableError",
    "NonRetryableError",
    "BrowserError",
    "TabClosedError",
    "WindowPreparationError",
    "CaptureError",
    "ComparisonError",
    "AuthenticationError",
    "AccountSelectionError",
    "AccountsFetchError",
    "SessionInfoError",
    "InvalidStepUrlError",
    "CrawlDiscoveryError",
    "RetryExhaustedError",

    # Recovery
    "RetryStrategy",
    "FixedDelayStrategy",
    "LinearBackoffStrategy",
    "retry_until",
]
