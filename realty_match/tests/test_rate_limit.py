import asyncio

import httpx
import pytest

from realty_match.core.http import RetryingHttpClient
from realty_match.core.rate_limit import TokenBucket


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.now += seconds
        await asyncio.sleep(0)


def test_bucket_starts_full_and_admits_capacity_immediately():
    clock = FakeClock()

    async def scenario() -> None:
        bucket = TokenBucket(5, clock=clock, sleep=clock.sleep)
        for _ in range(5):
            await bucket.acquire()

    asyncio.run(scenario())
    assert clock.now == 0


def test_one_request_per_minute_spaces_three_calls_two_minutes_apart():
    clock = FakeClock()
    calls: list[float] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(clock.now)
        return httpx.Response(200, json={"ok": True})

    async def scenario() -> list[object]:
        bucket = TokenBucket(1, clock=clock, sleep=clock.sleep)
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            http = RetryingHttpClient(bucket, client=client, sleep=clock.sleep)
            return [await http.get("https://api.test/item") for _ in range(3)]

    results = asyncio.run(scenario())

    assert results == [{"ok": True}] * 3
    assert len(calls) == 3
    assert clock.now >= 120 - 1e-6


def test_concurrent_callers_are_not_over_admitted():
    clock = FakeClock()
    admitted: list[float] = []

    async def scenario() -> None:
        bucket = TokenBucket(2, clock=clock, sleep=clock.sleep)

        async def worker() -> None:
            await bucket.acquire()
            admitted.append(clock.now)

        await asyncio.gather(*(worker() for _ in range(6)))

    asyncio.run(scenario())

    assert len(admitted) == 6
    # Two free tokens, then one every 30 seconds.
    assert admitted[:2] == [0.0, 0.0]
    assert admitted[-1] >= 120 - 1e-6
    for index in range(2, 6):
        assert admitted[index] >= (index - 1) * 30 - 1e-6


def test_bucket_rejects_non_positive_rate():
    with pytest.raises(ValueError):
        TokenBucket(0)
