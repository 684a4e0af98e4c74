"""
Security module exports.
"""

from snapcheck.security.sanitizer import (
    DataSanitizer,
    RedactionMethod,
    SensitiveDataPattern,
    sanitize_dict,
    sanitize_string,
)

__all__ = [
    "DataSanitizer",
    "RedactionMethod",
    "SensitiveDataPattern",
    "sanitize_string",
    "sanitize_dict",
]
