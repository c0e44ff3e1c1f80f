"""Unit tests for the fixed-window rate limiter."""
import pytest

from authcore.ratelimit import RateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_limit_applies_per_scope_and_client() -> None:
    limiter = RateLimiter(clock=FakeClock())
    assert [await limiter.hit("signin", "1.1.1.1", 2, 60) for _ in range(3)] == [True, True, False]
    assert await limiter.hit("signin", "2.2.2.2", 2, 60)
    assert await limiter.hit("signup", "1.1.1.1", 2, 60)


@pytest.mark.asyncio
async def test_window_reopens_after_it_expires() -> None:
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    for _ in range(3):
        await limiter.hit("signin", "1.1.1.1", 2, 60)
    assert not await limiter.hit("signin", "1.1.1.1", 2, 60)

    clock.now += 60
    assert await limiter.hit("signin", "1.1.1.1", 2, 60)


@pytest.mark.asyncio
async def test_expired_windows_are_dropped() -> None:
    clock = FakeClock()
    limiter = RateLimiter(clock=clock)
    for i in range(20):
        await limiter.hit("signin", f"10.0.0.{i}", 5, 60)
    await limiter.hit("verify-email", "10.0.0.99", 10, 600)
    assert len(limiter) == 21

    clock.now += 61
    await limiter.hit("signin", "10.0.0.1", 5, 60)
    # The longer verify-email window is still open
    assert len(limiter) == 2

    clock.now += 600
    await limiter.hit("signup", "10.0.0.1", 5, 60)
    assert len(limiter) == 1


@pytest.mark.asyncio
async def test_disabled_limiter_never_blocks_or_stores() -> None:
    limiter = RateLimiter(enabled=False)
    for _ in range(10):
        assert await limiter.hit("signin", "1.1.1.1", 1, 60)
    assert len(limiter) == 0
