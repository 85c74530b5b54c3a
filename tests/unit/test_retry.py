"""
Unit tests for the retry decorator.
"""

import pytest
from unittest.mock import AsyncMock

from shared.retry import RetryConfig, RetryError, _calculate_delay, retry_on_exception


def fast(max_attempts=3):
    return RetryConfig(max_attempts=max_attempts, base_delay=0, jitter=False)


@pytest.mark.asyncio
async def test_returns_first_success():
    func = AsyncMock(return_value="ok")
    func.__name__ = "steady"

    assert await retry_on_exception((ValueError,), fast())(func)() == "ok"
    func.assert_awaited_once()


@pytest.mark.asyncio
async def test_retries_until_success():
    func = AsyncMock(side_effect=[ValueError("a"), ValueError("b"), "ok"])
    func.__name__ = "flaky"

    assert await retry_on_exception((ValueError,), fast())(func)() == "ok"
    assert func.await_count == 3


@pytest.mark.asyncio
async def test_exhausted_attempts_raise_retry_error():
    func = AsyncMock(side_effect=ValueError("always"))
    func.__name__ = "broken"

    with pytest.raises(RetryError) as exc_info:
        await retry_on_exception((ValueError,), fast(2))(func)()

    assert exc_info.value.attempts == 2
    assert isinstance(exc_info.value.last_exception, ValueError)
    assert func.await_count == 2


@pytest.mark.asyncio
async def test_unlisted_exceptions_propagate():
    func = AsyncMock(side_effect=KeyError("nope"))
    func.__name__ = "other"

    with pytest.raises(KeyError):
        await retry_on_exception((ValueError,), fast())(func)()
    func.assert_awaited_once()


@pytest.mark.parametrize("attempt,expected", [
    (1, 1.0),
    (2, 2.0),
    (3, 4.0),
])
def test_delay_grows_exponentially(attempt, expected):
    config = RetryConfig(base_delay=1.0, jitter=False)

    assert _calculate_delay(attempt, config) == expected


def test_delay_is_capped():
    config = RetryConfig(base_delay=1.0, max_delay=5.0, jitter=False)

    assert _calculate_delay(10, config) == 5.0
