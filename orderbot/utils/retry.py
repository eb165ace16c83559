from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Awaitable, Callable, Generic, Optional, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryStatus(StrEnum):
    SUCCESS = "success"
    RETRIED_SUCCESS = "retried_success"
    EXHAUSTED = "exhausted"


@dataclass
class RetryResult(Generic[T]):
    status: RetryStatus
    attempts: int
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.status is not RetryStatus.EXHAUSTED


async def retry_bounded(
    attempt: Callable[[int, Optional[BaseException]], Awaitable[T]],
    *,
    max_attempts: int = 2,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
) -> RetryResult[T]:
    """
    Run ``attempt`` up to ``max_attempts`` times.

    ``attempt`` receives the 1-based attempt number and the error raised by the
    previous attempt (``None`` on the first call), so it can amend its request.
    Only errors listed in ``retry_on`` are retried; anything else propagates.
    """

    if max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    last_error: Optional[BaseException] = None
    for attempt_no in range(1, max_attempts + 1):
        try:
            value = await attempt(attempt_no, last_error)
        except retry_on as exc:
            last_error = exc
            logger.warning("Attempt %s/%s failed: %s", attempt_no, max_attempts, exc)
            continue
        status = RetryStatus.SUCCESS if attempt_no == 1 else RetryStatus.RETRIED_SUCCESS
        return RetryResult(status=status, attempts=attempt_no, value=value)
    return RetryResult(status=RetryStatus.EXHAUSTED, attempts=max_attempts, error=last_error)
