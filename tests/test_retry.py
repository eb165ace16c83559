from __future__ import annotations

import asyncio

import pytest

from orderbot.utils.retry import RetryStatus, retry_bounded


class Flaky(Exception):
    pass


def test_first_attempt_success() -> None:
    async def attempt(attempt_no, previous_error):
        return "ok"

    result = asyncio.run(retry_bounded(attempt))

    assert result.status is RetryStatus.SUCCESS
    assert result.attempts == 1
    assert result.value == "ok"


def test_second_attempt_sees_previous_error() -> None:
    seen = []

    async def attempt(attempt_no, previous_error):
        seen.append(previous_error)
        if attempt_no == 1:
            raise Flaky("first")
        return attempt_no

    result = asyncio.run(retry_bounded(attempt, retry_on=(Flaky,)))

    assert result.status is RetryStatus.RETRIED_SUCCESS
    assert result.value == 2
    assert seen[0] is None
    assert isinstance(seen[1], Flaky)


def test_exhausted_after_max_attempts() -> None:
    calls = []

    async def attempt(attempt_no, previous_error):
        calls.append(attempt_no)
        raise Flaky(f"attempt {attempt_no}")

    result = asyncio.run(retry_bounded(attempt, max_attempts=2, retry_on=(Flaky,)))

    assert not result.ok
    assert result.status is RetryStatus.EXHAUSTED
    assert calls == [1, 2]
    assert str(result.error) == "attempt 2"


def test_other_errors_propagate() -> None:
    async def attempt(attempt_no, previous_error):
        raise KeyError("boom")

    with pytest.raises(KeyError):
        asyncio.run(retry_bounded(attempt, retry_on=(Flaky,)))


def test_max_attempts_must_be_positive() -> None:
    async def attempt(attempt_no, previous_error):
        return None

    with pytest.raises(ValueError):
        asyncio.run(retry_bounded(attempt, max_attempts=0))
