"""
HTTP client for the Splittat API.

Provides an async client covering authentication, receipts, groups and
splits. Every request carries the stored bearer token; a 401 answer signs the
user out. Idempotent reads are retried once on transport failures, writes
never are.
"""

import time
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..logging_config import get_logger, get_request_id
from .exceptions import NETWORK_ERROR_MESSAGE, ApiClientError, AuthenticationRequired
from .polling import DEFAULT_POLL_INTERVAL, ReceiptPoller
from .session import AuthSession, MemorySessionStore, SessionStore

logger = get_logger(__name__)

DEFAULT_BASE_URL = "http://localhost:5000/api"
DEFAULT_TIMEOUT = 30.0
GET_ATTEMPTS = 2


class SplittatClient:
    """
    Client for the Splittat API.

    Attributes:
        base_url: API root including the ``/api`` prefix
        timeout: Request timeout in seconds
        session_store: Holder of the signed-in session
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        session_store: Optional[SessionStore] = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            base_url: API root, e.g. ``http://localhost:5000/api``
            session_store: Session holder; defaults to an in-memory store
            timeout: Request timeout in seconds
            transport: Optional httpx transport, mainly for tests
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session_store = session_store or MemorySessionStore()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "SplittatClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client and release connections."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    @property
    def session(self) -> Optional[AuthSession]:
        return self.session_store.load()

    @property
    def is_authenticated(self) -> bool:
        return self.session is not None

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/json"}

        session = self.session_store.load()
        if session is not None:
            headers["Authorization"] = f"Bearer {session.token}"

        request_id = get_request_id()
        if request_id:
            headers["X-Request-ID"] = request_id

        return headers

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        files: Any = None,
    ) -> Any:
        """
        Send a request and decode the JSON answer.

        Raises:
            AuthenticationRequired: On 401, after clearing the session
            ApiClientError: On any other error status or transport failure
        """
        attempts = GET_ATTEMPTS if method == "GET" else 1
        client = self._get_client()

        for attempt in range(1, attempts + 1):
            start_time = time.perf_counter()
            try:
                response = await client.request(
                    method, path, json=json, files=files, headers=self._headers()
                )
                break
            except httpx.TransportError as e:
                logger.warning(
                    "Request to Splittat API failed",
                    method=method,
                    path=path,
                    attempt=attempt,
                    error=str(e),
                )
                if attempt == attempts:
                    raise ApiClientError(NETWORK_ERROR_MESSAGE) from e

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.debug(
            "Received response",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=round(duration_ms, 2),
        )
        return self._handle_response(response)

    def _handle_response(self, response: httpx.Response) -> Any:
        if response.status_code < 400:
            if response.status_code == 204 or not response.content:
                return None
            return response.json()

        body = _error_body(response)
        message = body.get("message") or "An error occurred"

        if response.status_code == 401:
            logger.info("Session rejected by server, signing out")
            self.session_store.clear()
            raise AuthenticationRequired(message, 401, body.get("errors"))

        raise ApiClientError(message, response.status_code, body.get("errors"))

    # ==================== AUTH ====================

    async def register(
        self, email: str, password: str, first_name: str, last_name: str
    ) -> AuthSession:
        """Create an account and sign in with it."""
        body = await self._request(
            "POST",
            "/auth/register",
            json={
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
            },
        )
        return self._store_session(body)

    async def login(self, email: str, password: str) -> AuthSession:
        """Sign in and keep the issued token."""
        body = await self._request(
            "POST", "/auth/login", json={"email": email, "password": password}
        )
        return self._store_session(body)

    def logout(self) -> None:
        """Forget the stored session. Tokens are stateless, so no call is made."""
        self.session_store.clear()

    async def me(self) -> Dict[str, Any]:
        return await self._request("GET", "/auth/me")

    def _store_session(self, body: Dict[str, Any]) -> AuthSession:
        session = AuthSession.from_auth_response(body)
        self.session_store.save(session)
        logger.info("Signed in", user_id=session.user_id)
        return session

    # ==================== RECEIPTS ====================

    async def upload_receipt(
        self, filename: str, data: bytes, content_type: str = "image/jpeg"
    ) -> Dict[str, Any]:
        return await self._request(
            "POST", "/receipts", files={"file": (filename, data, content_type)}
        )

    async def list_receipts(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/receipts")

    async def get_receipt(self, receipt_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/receipts/{receipt_id}")

    async def update_items(
        self,
        receipt_id: str,
        items: Sequence[Dict[str, Any]],
        tax: Optional[float] = None,
        tip: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Replace the items of a receipt.

        Args:
            receipt_id: Receipt to edit
            items: Dicts with ``name``, ``price`` and optional ``quantity``
            tax: New tax, left unchanged when None
            tip: New tip, left unchanged when None
        """
        payload: Dict[str, Any] = {"items": list(items)}
        if tax is not None:
            payload["tax"] = tax
        if tip is not None:
            payload["tip"] = tip
        return await self._request("PUT", f"/receipts/{receipt_id}/items", json=payload)

    async def report_processing_result(
        self, receipt_id: str, stage: str, **fields: Any
    ) -> Dict[str, Any]:
        """Send a processing stage report; extra fields use the camelCase API names."""
        payload = {"stage": stage, **fields}
        return await self._request(
            "POST", f"/receipts/{receipt_id}/processing-result", json=payload
        )

    async def delete_receipt(self, receipt_id: str) -> None:
        await self._request("DELETE", f"/receipts/{receipt_id}")

    async def wait_for_receipt(
        self,
        receipt_id: str,
        status: Optional[str],
        interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: Optional[int] = None,
    ) -> Optional[Dict[str, Any]]:
        """Poll a receipt until its processing finishes. See ``ReceiptPoller``."""
        poller = ReceiptPoller(self.get_receipt, interval=interval, max_attempts=max_attempts)
        return await poller.poll(receipt_id, status)

    # ==================== GROUPS ====================

    async def create_group(self, name: str) -> Dict[str, Any]:
        return await self._request("POST", "/groups", json={"name": name})

    async def list_groups(self) -> List[Dict[str, Any]]:
        return await self._request("GET", "/groups")

    async def get_group(self, group_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/groups/{group_id}")

    async def add_group_member(self, group_id: str, email: str) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/groups/{group_id}/members", json={"email": email}
        )

    async def remove_group_member(self, group_id: str, user_id: str) -> Dict[str, Any]:
        return await self._request("DELETE", f"/groups/{group_id}/members/{user_id}")

    # ==================== SPLITS ====================

    async def create_split(
        self,
        receipt_id: str,
        split_type: str,
        group_id: Optional[str] = None,
        participants: Optional[Sequence[str]] = None,
        items: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        """
        Split a receipt.

        Args:
            receipt_id: Ready receipt to split
            split_type: ``Equal``, ``ByItem``, ``Percentage`` or ``Custom``
            group_id: Optional group scope
            participants: User ids; defaults server-side to the group members
            items: Per-item shares as ``{"itemId": ..., "shares": [...]}``
        """
        return await self._request(
            "POST",
            f"/receipts/{receipt_id}/splits",
            json=_split_payload(split_type, group_id, participants, items),
        )

    async def list_splits(self, receipt_id: str) -> List[Dict[str, Any]]:
        return await self._request("GET", f"/receipts/{receipt_id}/splits")

    async def get_split(self, split_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/splits/{split_id}")

    async def replace_split(
        self,
        split_id: str,
        split_type: str,
        group_id: Optional[str] = None,
        participants: Optional[Sequence[str]] = None,
        items: Optional[Sequence[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        return await self._request(
            "PUT",
            f"/splits/{split_id}",
            json=_split_payload(split_type, group_id, participants, items),
        )

    async def delete_split(self, split_id: str) -> None:
        await self._request("DELETE", f"/splits/{split_id}")

    async def get_split_summary(self, split_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/splits/{split_id}/summary")

    # ==================== MISC ====================

    async def health(self) -> Dict[str, Any]:
        return await self._request("GET", "/health")


def _split_payload(
    split_type: str,
    group_id: Optional[str],
    participants: Optional[Sequence[str]],
    items: Optional[Sequence[Dict[str, Any]]],
) -> Dict[str, Any]:
    payload: Dict[str, Any] = {"splitType": split_type}
    if group_id is not None:
        payload["groupId"] = group_id
    if participants is not None:
        payload["participants"] = list(participants)
    if items is not None:
        payload["items"] = list(items)
    return payload


def _error_body(response: httpx.Response) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
