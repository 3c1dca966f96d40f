"""
HTTP transport with exponential backoff.

Retries rate limits (429), server errors (500/502/503/504) and
connection-level failures. Everything else, 404 included, is returned to the
caller as a normal response.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import httpx

from cardvault.models.failure import TransportError

logger = logging.getLogger(__name__)

RETRYABLE_STATUSES = frozenset({429, 500, 502, 503, 504})


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """
    Backoff parameters.

    Delay before retry n (0-based) is min(initial_delay * multiplier**n, max_delay).
    """

    max_retries: int = 3
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 16.0
    retryable_statuses: frozenset[int] = RETRYABLE_STATUSES

    def delay(self, attempt: int) -> float:
        return min(self.initial_delay * self.multiplier**attempt, self.max_delay)


class RetryingTransport:
    """
    Sends one request, retrying transient failures.

    Args:
        client: Shared httpx client (connection pooling, timeout, headers)
        policy: Backoff parameters
        sleep: Awaitable sleep, injectable so tests can observe delays
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._client = client
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def send(self, request: httpx.Request) -> httpx.Response:
        """
        Send a request.

        Returns:
            The first non-retryable response, or the last retryable one once
            retries are exhausted

        Raises:
            TransportError: If the connection kept failing through every retry
        """
        policy = self.policy
        attempts = policy.max_retries + 1

        for attempt in range(attempts):
            try:
                response = await self._client.send(request)
            except httpx.TransportError as e:
                if attempt == policy.max_retries:
                    raise TransportError(str(request.url), attempts, repr(e)) from e
                delay = policy.delay(attempt)
                logger.warning(
                    "Connection error for %s (%s), retry %d/%d in %.1fs",
                    request.url,
                    e,
                    attempt + 1,
                    policy.max_retries,
                    delay,
                )
                await self._sleep(delay)
                continue

            if response.status_code not in policy.retryable_statuses:
                return response

            if attempt == policy.max_retries:
                logger.warning(
                    "Giving up on %s after %d attempts (HTTP %d)",
                    request.url,
                    attempts,
                    response.status_code,
                )
                return response

            await response.aclose()
            delay = policy.delay(attempt)
            logger.warning(
                "HTTP %d for %s, retry %d/%d in %.1fs",
                response.status_code,
                request.url,
                attempt + 1,
                policy.max_retries,
                delay,
            )
            await self._sleep(delay)

        # range() always returns or raises on its last iteration
        raise AssertionError("unreachable")

    async def get(self, url: str, params: dict[str, str] | None = None) -> httpx.Response:
        """Convenience wrapper building a GET request on the shared client."""
        return await self.send(self._client.build_request("GET", url, params=params))
