"""
Custom exception hierarchy for snapcheck error handling.

Errors are grouped the way a test run fails: window preparation, capture and
comparison, authentication, tabs disappearing mid-test, and crawl discovery.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


class SnapcheckError(Exception):
    """Base exception for all snapcheck errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.__class__.__name__
        self.details = details or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None
        }


class RetryableError(SnapcheckError):
    """Base class for errors that can be retried."""

    def __init__(
        self,
        message: str,
        max_retries: int = 3,
        retry_delay_ms: int = 1000,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.max_retries = max_retries
        self.retry_delay_ms = retry_delay_ms
        self.retry_count = 0

    def increment_retry(self) -> None:
        """Increment retry counter."""
        self.retry_count += 1

    def can_retry(self) -> bool:
        """Check if error can be retried."""
        return self.retry_count < self.max_retries


class NonRetryableError(SnapcheckError):
    """Base class for errors that should not be retried."""
    pass


class BrowserError(RetryableError):
    """Error raised by the browser automation surface."""

    def __init__(
        self,
        message: str,
        tab_id: Optional[int] = None,
        window_id: Optional[int] = None,
        action: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.tab_id = tab_id
        self.window_id = window_id
        self.action = action
        self.details.update({
            "tab_id": tab_id,
            "window_id": window_id,
            "action": action
        })


class TabClosedError(NonRetryableError):
    """Raised when a tab disappears while a test is still using it."""

    def __init__(self, message: str, tab_id: int, **kwargs):
        super().__init__(message, **kwargs)
        self.tab_id = tab_id
        self.details.update({"tab_id": tab_id})


class WindowPreparationError(NonRetryableError):
    """Raised when a window could not reach the required viewport size."""

    def __init__(
        self,
        message: str,
        required_size: Optional[Dict[str, int]] = None,
        actual_size: Optional[Dict[str, int]] = None,
        attempts: int = 0,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.required_size = required_size
        self.actual_size = actual_size
        self.attempts = attempts
        self.details.update({
            "required_size": required_size,
            "actual_size": actual_size,
            "attempts": attempts
        })


class CaptureError(NonRetryableError):
    """Raised when a screenshot could not be captured."""

    def __init__(self, message: str, tab_id: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.tab_id = tab_id
        self.details.update({"tab_id": tab_id})


class ComparisonError(SnapcheckError):
    """Raised when the visual check itself failed."""

    def __init__(
        self,
        message: str,
        app_name: Optional[str] = None,
        test_name: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.app_name = app_name
        self.test_name = test_name
        self.details.update({
            "app_name": app_name,
            "test_name": test_name
        })


class AuthenticationError(NonRetryableError):
    """Raised when no credentials are available; carries where to send the user."""

    def __init__(self, message: str, redirect_url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.redirect_url = redirect_url
        self.details.update({"redirect_url": redirect_url})


class AccountSelectionError(NonRetryableError):
    """Raised when the current account cannot be changed."""

    WRONG_SCHEME = "wrong_scheme"
    NOT_FOUND = "not_found"

    def __init__(
        self,
        message: str,
        reason: str,
        account_id: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.reason = reason
        self.account_id = account_id
        self.details.update({
            "reason": reason,
            "account_id": account_id
        })


class AccountsFetchError(RetryableError):
    """Raised when the account list could not be fetched from the server."""

    def __init__(self, message: str, url: Optional[str] = None, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.url = url
        self.status_code = status_code
        self.details.update({
            "url": url,
            "status_code": status_code
        })


class SessionInfoError(RetryableError):
    """Raised when the info of an existing session could not be fetched."""

    def __init__(self, message: str, session_id: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.session_id = session_id
        self.details.update({"session_id": session_id})


class InvalidStepUrlError(NonRetryableError):
    """Raised when a baseline step URL does not reference a session."""

    def __init__(self, message: str, step_url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.step_url = step_url
        self.details.update({"step_url": step_url})


class CrawlDiscoveryError(NonRetryableError):
    """Raised when no URLs could be discovered for a crawl."""

    def __init__(
        self,
        message: str,
        start_url: Optional[str] = None,
        sitemap_url: Optional[str] = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.start_url = start_url
        self.sitemap_url = sitemap_url
        self.details.update({
            "start_url": start_url,
            "sitemap_url": sitemap_url
        })


class RetryExhaustedError(SnapcheckError):
    """Raised when an operation never produced an acceptable result."""

    def __init__(
        self,
        message: str,
        operation: str,
        attempts: int,
        last_result: Any = None,
        **kwargs
    ):
        super().__init__(message, **kwargs)
        self.operation = operation
        self.attempts = attempts
        self.last_result = last_result
        self.details.update({
            "operation": operation,
            "attempts": attempts
        })
