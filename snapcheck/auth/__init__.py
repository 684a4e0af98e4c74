"""
Authentication module exports.
"""

from snapcheck.auth.client import AccountsClient, url_concat
from snapcheck.auth.session import AccountSession, AuthState

__all__ = [
    "AccountsClient",
    "AccountSession",
    "AuthState",
    "url_concat",
]
