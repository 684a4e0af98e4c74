"""
snapcheck - visual regression run orchestration for live browser tabs.
"""

__version__ = "0.1.0"
