"""
Data sanitization for credential protection.

Run keys, API keys and access keys travel through log messages and the run
log; they are masked before any of that output leaves the process.
"""

import hashlib
import logging
import re
from copy import deepcopy
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Dict, List, Optional, Pattern

logger = logging.getLogger(__name__)


class RedactionMethod(Enum):
    """Methods for redacting sensitive data."""
    MASK = auto()          # Replace with asterisks
    HASH = auto()          # Replace with hash
    PARTIAL = auto()       # Show first/last few chars
    PLACEHOLDER = auto()   # Replace with placeholder text


@dataclass
class SensitiveDataPattern:
    """Pattern for identifying sensitive data."""

    name: str
    pattern: Pattern[str]
    redaction_method: RedactionMethod = RedactionMethod.PLACEHOLDER
    placeholder: str = "[REDACTED]"
    partial_chars: int = 4
    value_group: int = 0
    enabled: bool = True

    def matches(self, text: str) -> List[re.Match]:
        if not self.enabled:
            return []
        return list(self.pattern.finditer(text))


SENSITIVE_KEYS = [
    "api_key", "apikey", "run_key", "runkey", "runner_key", "runnerkey",
    "access_key", "accesskey", "password", "token", "secret", "authorization",
]


@dataclass
class DataSanitizer:
    """Masks credentials in strings, dictionaries and log records."""

    patterns: List[SensitiveDataPattern] = field(default_factory=list)
    sensitive_keys: List[str] = field(default_factory=lambda: list(SENSITIVE_KEYS))

    def __post_init__(self) -> None:
        if not self.patterns:
            self._setup_default_patterns()

    def _setup_default_patterns(self) -> None:
        """Set up default sensitive data patterns."""
        self.patterns.extend([
            SensitiveDataPattern(
                name="key_assignment",
                pattern=re.compile(
                    r'(?:api[_-]?key|run[_-]?key|runner[_-]?key|access[_-]?key|apikey|runnerKey|accessKey)'
                    r'["\']?\s*[:=]\s*["\']?([^"\'\s&,}]+)',
                    re.IGNORECASE,
                ),
                value_group=1,
            ),
            SensitiveDataPattern(
                name="key_query_param",
                pattern=re.compile(r'[?&](?:apiKey|accessKey|runKey)=([^&#\s]+)', re.IGNORECASE),
                value_group=1,
            ),
            SensitiveDataPattern(
                name="bearer_token",
                pattern=re.compile(r'Bearer\s+([A-Za-z0-9\-._~+/]+=*)', re.IGNORECASE),
                value_group=1,
            ),
            SensitiveDataPattern(
                name="jwt_token",
                pattern=re.compile(r'eyJ[A-Za-z0-9_-]+\.eyJ[A-Za-z0-9_-]+\.[A-Za-z0-9_-]+'),
                redaction_method=RedactionMethod.HASH,
            ),
        ])

    def _redact(self, value: str, pattern: SensitiveDataPattern) -> str:
        if pattern.redaction_method == RedactionMethod.MASK:
            return "*" * len(value)
        if pattern.redaction_method == RedactionMethod.HASH:
            digest = hashlib.sha256(value.encode()).hexdigest()[:8]
            return f"[HASH:{digest}]"
        if pattern.redaction_method == RedactionMethod.PARTIAL:
            keep = pattern.partial_chars
            if len(value) > keep * 2:
                return value[:keep] + "*" * (len(value) - keep * 2) + value[-keep:]
            return "*" * len(value)
        return pattern.placeholder

    def sanitize_string(self, text: str) -> str:
        """
        Sanitize a string using the enabled patterns.

        Args:
            text: Text to sanitize

        Returns:
            Sanitized text
        """
        if not text:
            return text

        result = text
        for pattern in self.patterns:
            # Work from the end so earlier spans stay valid.
            for match in reversed(pattern.matches(result)):
                start, end = match.span(pattern.value_group)
                result = result[:start] + self._redact(match.group(pattern.value_group), pattern) + result[end:]
        return result

    def _is_sensitive_key(self, key: str) -> bool:
        normalized = key.lower().replace("-", "_")
        return any(name in normalized for name in self.sensitive_keys)

    def sanitize_dict(self, data: Dict[str, Any], max_depth: int = 10) -> Dict[str, Any]:
        """
        Sanitize a dictionary recursively.

        Values under credential-like keys are replaced outright; other
        string values are pattern-sanitized.

        Returns:
            Sanitized copy of the dictionary
        """
        if max_depth <= 0:
            logger.warning("Max recursion depth reached in sanitize_dict")
            return data

        result = deepcopy(data)
        for key, value in result.items():
            result[key] = self._sanitize_value(value, str(key), max_depth)
        return result

    def _sanitize_value(self, value: Any, key: Optional[str], max_depth: int) -> Any:
        if key and isinstance(value, str) and value and self._is_sensitive_key(key):
            return "[REDACTED]"
        if isinstance(value, str):
            return self.sanitize_string(value)
        if isinstance(value, dict):
            return self.sanitize_dict(value, max_depth - 1)
        if isinstance(value, list):
            return [self._sanitize_value(item, None, max_depth) for item in value]
        return value

    def sanitize_log_record(self, record: logging.LogRecord) -> logging.LogRecord:
        """Sanitize a log record's message and arguments in place."""
        if hasattr(record, "msg"):
            record.msg = self.sanitize_string(str(record.msg))

        if getattr(record, "args", None):
            if isinstance(record.args, dict):
                record.args = self.sanitize_dict(record.args)
            else:
                record.args = tuple(
                    self.sanitize_string(arg) if isinstance(arg, str) else arg
                    for arg in record.args
                )

        return record


_default_sanitizer = DataSanitizer()


def sanitize_string(text: str) -> str:
    """Sanitize a string using default patterns."""
    return _default_sanitizer.sanitize_string(text)


def sanitize_dict(data: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize a dictionary using default rules."""
    return _default_sanitizer.sanitize_dict(data)
