"""
Unit tests for the exception hierarchy.
"""

from snapcheck.error_handling.exceptions import (
    AccountSelectionError,
    AccountsFetchError,
    AuthenticationError,
    BrowserError,
    CaptureError,
    ComparisonError,
    CrawlDiscoveryError,
    NonRetryableError,
    RetryableError,
    SnapcheckError,
    TabClosedError,
    WindowPreparationError,
)


class TestSnapcheckError:
    """Test base exception class."""

    def test_basic_error(self):
        error = SnapcheckError("Test error")

        assert str(error) == "Test error"
        assert error.message == "Test error"
        assert error.error_code == "SnapcheckError"
        assert error.details == {}
        assert error.cause is None

    def test_to_dict(self):
        cause = ValueError("Original")
        error = SnapcheckError("Test", error_code="TEST", details={"k": 1}, cause=cause)

        data = error.to_dict()

        assert data["error_type"] == "SnapcheckError"
        assert data["error_code"] == "TEST"
        assert data["message"] == "Test"
        assert data["details"] == {"k": 1}
        assert data["cause"] == "Original"
        assert "timestamp" in data


class TestRetryableError:
    """Test retry bookkeeping."""

    def test_retry_counting(self):
        error = RetryableError("Flaky", max_retries=2)

        assert error.can_retry() is True
        error.increment_retry()
        error.increment_retry()
        assert error.can_retry() is False


class TestTaxonomy:
    """Test the concrete error types."""

    def test_window_preparation_error(self):
        error = WindowPreparationError(
            "stuck",
            required_size={"width": 816, "height": 688},
            actual_size={"width": 800, "height": 600},
            attempts=4,
        )

        assert isinstance(error, NonRetryableError)
        assert error.details["attempts"] == 4
        assert error.details["actual_size"] == {"width": 800, "height": 600}

    def test_authentication_error_carries_redirect(self):
        error = AuthenticationError("login", redirect_url="https://server/login")

        assert error.redirect_url == "https://server/login"
        assert error.to_dict()["details"]["redirect_url"] == "https://server/login"

    def test_account_selection_reasons(self):
        wrong = AccountSelectionError("x", reason=AccountSelectionError.WRONG_SCHEME)
        missing = AccountSelectionError("x", reason=AccountSelectionError.NOT_FOUND, account_id="a")

        assert wrong.reason == "wrong_scheme"
        assert missing.details == {"reason": "not_found", "account_id": "a"}

    def test_fetch_and_browser_errors_are_retryable(self):
        assert isinstance(AccountsFetchError("x", status_code=500), RetryableError)
        assert isinstance(BrowserError("x", tab_id=1, action="resize"), RetryableError)

    def test_other_errors(self):
        assert TabClosedError("gone", tab_id=5).details["tab_id"] == 5
        assert CaptureError("fail", tab_id=3).tab_id == 3
        assert ComparisonError("fail", app_name="a", test_name="t").details["test_name"] == "t"
        crawl = CrawlDiscoveryError("none", start_url="https://a/", sitemap_url="https://a/sitemap.xml")
        assert crawl.details["sitemap_url"] == "https://a/sitemap.xml"
