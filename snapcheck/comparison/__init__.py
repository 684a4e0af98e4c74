"""
Comparison module exports.
"""

from snapcheck.comparison.filesystem import FileSystemCheckClient, FileSystemSession
from snapcheck.comparison.runner import VisualCheckRunner, backend_match_level

__all__ = [
    "VisualCheckRunner",
    "backend_match_level",
    "FileSystemCheckClient",
    "FileSystemSession",
]
