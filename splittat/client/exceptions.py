"""
Exceptions raised by the Splittat client.
"""

from typing import Dict, List, Optional

NETWORK_ERROR_MESSAGE = "Network error. Please check your connection."


class ApiClientError(Exception):
    """
    Error returned by the API or raised while talking to it.

    Attributes:
        message: Human-readable message, taken from the response body when
            the server sent one
        status_code: HTTP status code, None for transport failures
        errors: Per-field validation messages, if any
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        errors: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        self.message = message
        self.status_code = status_code
        self.errors = errors or {}
        super().__init__(self.message)


class AuthenticationRequired(ApiClientError):
    """
    The server answered 401.

    The stored session has already been cleared when this is raised; the
    caller should send the user back to login.
    """
