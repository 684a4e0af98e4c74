"""
Monitoring module exports.
"""

from snapcheck.monitoring.indicator import (
    ERROR_COLOR,
    RUNNING_COLOR,
    ConsoleStatusIndicator,
)
from snapcheck.monitoring.logger import (
    JSONFormatter,
    SanitizingHandler,
    get_logger,
    log_performance_metric,
    log_test_event,
    setup_logging,
)

__all__ = [
    # Logger
    "setup_logging",
    "get_logger",
    "log_test_event",
    "log_performance_metric",
    "JSONFormatter",
    "SanitizingHandler",

    # Indicator
    "ConsoleStatusIndicator",
    "RUNNING_COLOR",
    "ERROR_COLOR",
]
