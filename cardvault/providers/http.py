"""
Shared request path for provider clients.

Each call is queued on the RequestQueue (bounded concurrency, priority) and
sent through the RetryingTransport (backoff on transient failures).
"""

import logging
from typing import Any

from cardvault.models.failure import UpstreamError
from cardvault.services.request_queue import Priority, RequestQueue
from cardvault.services.transport import RetryingTransport

logger = logging.getLogger(__name__)


class ProviderHttp:
    """JSON GETs against a provider, 404 mapped to None."""

    def __init__(self, transport: RetryingTransport, queue: RequestQueue) -> None:
        self.transport = transport
        self.queue = queue

    async def get_json(
        self,
        url: str,
        params: dict[str, str] | None = None,
        priority: Priority = Priority.NORMAL,
    ) -> Any | None:
        """
        Fetch and decode a JSON document.

        Returns:
            Decoded body, or None when the provider answers 404

        Raises:
            UpstreamError: Any other non-2xx status
            TransportError: Connection kept failing
            QueueClearedError: Queue cleared before the request started
        """
        response = await self.queue.enqueue(
            lambda: self.transport.get(url, params=params), priority
        )
        if response.status_code == 404:
            logger.debug("404 from %s %s", url, params or "")
            return None
        if not response.is_success:
            raise UpstreamError(url, response.status_code)
        return response.json()
