"""Tests for the retrying HTTP transport."""

import httpx
import pytest
import respx

from cardvault.models.failure import FailureKind, TransportError
from cardvault.services.transport import RetryingTransport, RetryPolicy

CARD_URL = "https://api.scryfall.com/cards/m21/161"


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


class TestRetryPolicy:
    def test_delay_grows_geometrically_and_caps(self) -> None:
        policy = RetryPolicy(max_retries=6, initial_delay=1.0, multiplier=2.0, max_delay=16.0)

        assert [policy.delay(n) for n in range(6)] == [1.0, 2.0, 4.0, 8.0, 16.0, 16.0]


class TestRetryingTransport:
    @respx.mock
    async def test_retries_rate_limit_then_succeeds(self, sleep: RecordingSleep) -> None:
        route = respx.get(CARD_URL).mock(
            side_effect=[
                httpx.Response(429),
                httpx.Response(429),
                httpx.Response(200, json={"name": "Lightning Bolt"}),
            ]
        )

        async with httpx.AsyncClient() as client:
            transport = RetryingTransport(client, RetryPolicy(max_retries=3), sleep=sleep)
            response = await transport.get(CARD_URL)

        assert response.status_code == 200
        assert response.json()["name"] == "Lightning Bolt"
        assert route.call_count == 3
        assert sleep.delays == [1.0, 2.0]
        assert sleep.delays[0] < sleep.delays[1]

    @respx.mock
    async def test_not_found_is_returned_without_retry(self, sleep: RecordingSleep) -> None:
        route = respx.get(CARD_URL).mock(return_value=httpx.Response(404))

        async with httpx.AsyncClient() as client:
            response = await RetryingTransport(client, sleep=sleep).get(CARD_URL)

        assert response.status_code == 404
        assert route.call_count == 1
        assert sleep.delays == []

    @respx.mock
    async def test_exhausted_retries_return_last_response(self, sleep: RecordingSleep) -> None:
        route = respx.get(CARD_URL).mock(return_value=httpx.Response(503))

        async with httpx.AsyncClient() as client:
            transport = RetryingTransport(client, RetryPolicy(max_retries=2), sleep=sleep)
            response = await transport.get(CARD_URL)

        assert response.status_code == 503
        assert route.call_count == 3
        assert sleep.delays == [1.0, 2.0]

    @respx.mock
    async def test_connection_errors_raise_after_retries(self, sleep: RecordingSleep) -> None:
        route = respx.get(CARD_URL).mock(side_effect=httpx.ConnectError("refused"))

        async with httpx.AsyncClient() as client:
            transport = RetryingTransport(client, RetryPolicy(max_retries=2), sleep=sleep)
            with pytest.raises(TransportError) as exc_info:
                await transport.get(CARD_URL)

        assert exc_info.value.kind == FailureKind.TRANSPORT_FAILED
        assert exc_info.value.attempts == 3
        assert route.call_count == 3
        assert sleep.delays == [1.0, 2.0]

    @respx.mock
    async def test_connection_error_then_success(self, sleep: RecordingSleep) -> None:
        respx.get(CARD_URL).mock(
            side_effect=[httpx.ConnectTimeout("slow"), httpx.Response(200, json={})]
        )

        async with httpx.AsyncClient() as client:
            response = await RetryingTransport(client, sleep=sleep).get(CARD_URL)

        assert response.status_code == 200
        assert sleep.delays == [1.0]

    @respx.mock
    async def test_passes_query_params(self, sleep: RecordingSleep) -> None:
        route = respx.get("https://api.scryfall.com/cards/search", params={"q": "bolt"}).mock(
            return_value=httpx.Response(200, json={"data": []})
        )

        async with httpx.AsyncClient() as client:
            await RetryingTransport(client, sleep=sleep).get(
                "https://api.scryfall.com/cards/search", params={"q": "bolt"}
            )

        assert route.called
