"""
Python client for the Splittat API.

Holds the signed-in session explicitly, attaches the bearer token to every
request and polls receipts until their processing finishes.
"""

from .api_client import SplittatClient
from .exceptions import ApiClientError, AuthenticationRequired
from .polling import ReceiptPoller
from .session import AuthSession, FileSessionStore, MemorySessionStore, SessionStore

__all__ = [
    "ApiClientError",
    "AuthSession",
    "AuthenticationRequired",
    "FileSessionStore",
    "MemorySessionStore",
    "ReceiptPoller",
    "SessionStore",
    "SplittatClient",
]
