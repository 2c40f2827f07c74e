import asyncio
import math

import pytest

from starkeeper.rate_limit import TokenBucket


class FakeClock:
    """Monotonic clock advanced only by the bucket's own sleeps."""

    def __init__(self):
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


def make_bucket(capacity, refill_rate, refill_interval=1.0):
    clock = FakeClock()
    bucket = TokenBucket(capacity, refill_rate, refill_interval, clock=clock, sleep=clock.sleep)
    return bucket, clock


@pytest.mark.asyncio
async def test_burst_up_to_capacity_does_not_wait():
    bucket, clock = make_bucket(capacity=5, refill_rate=1)

    for _ in range(5):
        await bucket.consume()

    assert clock.sleeps == []
    assert bucket.available == 0


@pytest.mark.asyncio
async def test_waits_exactly_until_next_refill():
    bucket, clock = make_bucket(capacity=2, refill_rate=1)

    await bucket.consume()
    await bucket.consume()
    await bucket.consume()

    assert clock.sleeps == [1.0]
    assert clock.now == 1.0
    assert bucket.available == 0


@pytest.mark.asyncio
async def test_partial_interval_is_carried_over():
    bucket, clock = make_bucket(capacity=1, refill_rate=1)

    await bucket.consume()
    clock.now = 0.75
    await bucket.consume()

    assert clock.sleeps == [0.25]


@pytest.mark.asyncio
async def test_slow_refill_rate_waits_several_intervals():
    # Client defaults: 5 tokens burst, half a token per second
    bucket, clock = make_bucket(capacity=5, refill_rate=0.5)

    for _ in range(6):
        await bucket.consume()

    assert clock.sleeps == [2.0]


def test_refill_is_capped_at_capacity():
    bucket, clock = make_bucket(capacity=3, refill_rate=2)

    clock.now = 1000.0

    assert bucket.available == 3


@pytest.mark.asyncio
async def test_never_issues_more_than_capacity_plus_refills():
    capacity, rate, interval = 3, 2, 0.5
    bucket, clock = make_bucket(capacity, rate, interval)

    for issued in range(1, 41):
        await bucket.consume()
        allowed = capacity + math.floor(clock.now / interval) * rate
        assert issued <= allowed
        assert bucket.available >= 0


@pytest.mark.asyncio
async def test_concurrent_consumers_are_serialized():
    capacity, rate = 2, 1
    bucket, clock = make_bucket(capacity, rate)
    issued_at: list[float] = []

    async def worker():
        await bucket.consume()
        issued_at.append(clock.now)

    await asyncio.gather(*(worker() for _ in range(6)))

    assert len(issued_at) == 6
    for index, when in enumerate(sorted(issued_at), start=1):
        assert index <= capacity + math.floor(when) * rate


@pytest.mark.asyncio
async def test_multi_token_consume():
    bucket, clock = make_bucket(capacity=4, refill_rate=1)

    await bucket.consume(4)
    await bucket.consume(3)

    assert clock.sleeps == [3.0]


@pytest.mark.asyncio
@pytest.mark.parametrize("tokens", [0, 5])
async def test_unsatisfiable_requests_are_rejected(tokens):
    bucket, _ = make_bucket(capacity=4, refill_rate=1)

    with pytest.raises(ValueError):
        await bucket.consume(tokens)


def test_invalid_construction():
    with pytest.raises(ValueError):
        TokenBucket(0, 1)
    with pytest.raises(ValueError):
        TokenBucket(1, 0)
