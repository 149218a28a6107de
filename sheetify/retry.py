"""Bounded retry around flaky remote calls."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RetryingCaller:
    """Await a coroutine function up to ``attempts`` times.

    The delay before attempt ``n + 1`` is ``n * delay`` seconds. When every
    attempt fails the last exception is re-raised unchanged.
    """

    def __init__(
        self,
        attempts: int = 3,
        delay: float = 1.0,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
    ) -> None:
        if attempts < 1:
            raise ValueError("attempts must be at least 1")
        self.attempts = attempts
        self.delay = delay
        self._sleep = sleep or asyncio.sleep

    def _retrying(self) -> AsyncRetrying:
        return AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_incrementing(start=self.delay, increment=self.delay),
            retry=retry_if_exception_type((Exception,)),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

    async def call(self, fn: Callable[..., Awaitable[T]], *args: Any, **kwargs: Any) -> T:
        async for attempt in self._retrying():
            with attempt:
                result = await fn(*args, **kwargs)
        return result
