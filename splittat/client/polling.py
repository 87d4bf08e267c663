"""
Receipt status polling.

Re-fetches a receipt at a fixed interval until its processing reaches a
terminal state. Fetch failures are logged and polling carries on; only a
401 stops it early.
"""

import asyncio
from typing import Any, Awaitable, Callable, Dict, Optional

from ..domain.entities import TERMINAL_STATUS_VALUES
from ..logging_config import get_logger
from .exceptions import ApiClientError, AuthenticationRequired

logger = get_logger(__name__)

DEFAULT_POLL_INTERVAL = 3.0

Receipt = Dict[str, Any]


def is_terminal(receipt: Receipt) -> bool:
    """Whether a fetched receipt has finished processing."""
    return (
        receipt.get("status") in TERMINAL_STATUS_VALUES
        or receipt.get("stage") in TERMINAL_STATUS_VALUES
    )


class ReceiptPoller:
    """
    Polls one receipt until it is Ready, Failed or ParseFailed.

    Every interval issues exactly one fetch; nothing is fetched after a
    terminal status has been seen.

    Attributes:
        fetch: Coroutine function returning the receipt body for an id
        interval: Seconds to wait before each fetch
        max_attempts: Upper bound on fetches, None for no bound
    """

    def __init__(
        self,
        fetch: Callable[[str], Awaitable[Receipt]],
        interval: float = DEFAULT_POLL_INTERVAL,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.fetch = fetch
        self.interval = interval
        self.max_attempts = max_attempts
        self.sleep = sleep

    async def poll(
        self,
        receipt_id: Optional[str],
        status: Optional[str],
        on_update: Optional[Callable[[Receipt], None]] = None,
    ) -> Optional[Receipt]:
        """
        Poll until the receipt finishes processing.

        Args:
            receipt_id: Receipt to watch
            status: Status (or stage) the caller currently knows
            on_update: Called with every successfully fetched receipt

        Returns:
            The last fetched receipt, or None if nothing was fetched

        Raises:
            AuthenticationRequired: If the session is rejected while polling
        """
        if not receipt_id or not status or status in TERMINAL_STATUS_VALUES:
            return None

        latest: Optional[Receipt] = None
        attempts = 0

        while self.max_attempts is None or attempts < self.max_attempts:
            await self.sleep(self.interval)
            attempts += 1

            try:
                receipt = await self.fetch(receipt_id)
            except AuthenticationRequired:
                raise
            except ApiClientError as e:
                logger.warning(
                    "Receipt poll failed, retrying",
                    receipt_id=receipt_id,
                    attempt=attempts,
                    error=e.message,
                )
                continue

            latest = receipt
            if on_update is not None:
                on_update(receipt)

            if is_terminal(receipt):
                logger.info(
                    "Receipt processing finished",
                    receipt_id=receipt_id,
                    status=receipt.get("status"),
                    attempts=attempts,
                )
                return receipt

        logger.info("Stopped polling receipt", receipt_id=receipt_id, attempts=attempts)
        return latest
