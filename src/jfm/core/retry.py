"""Fixed-delay retry policy shared by catalog fetches and watched-state updates."""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TypeVar

import httpx
from loguru import logger

T = TypeVar("T")

# HTTP failures (transport errors and non-2xx via raise_for_status) and payload
# decoding failures (json.JSONDecodeError and pydantic.ValidationError are ValueErrors)
TRANSIENT_ERRORS: tuple[type[BaseException], ...] = (httpx.HTTPError, ValueError)

DEFAULT_RETRY_DELAY = 5.0


@dataclass(frozen=True)
class RetryPolicy:
    """
    Retry an operation until it succeeds.

    The delay is fixed and attempts are unbounded: remote outages are assumed
    to be transient. Only errors in ``TRANSIENT_ERRORS`` are retried, anything
    else propagates to the caller.
    """

    delay: float = DEFAULT_RETRY_DELAY
    sleep: Callable[[float], Awaitable[None]] = field(default=asyncio.sleep, repr=False)

    async def call(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """
        Await ``operation()`` until it returns without a transient error.

        Args:
            operation: Zero-argument coroutine factory, called once per attempt
            description: Label used in retry warnings

        Returns:
            The operation's result
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except TRANSIENT_ERRORS as e:
                logger.warning(
                    f"{description} failed (attempt {attempt}): {type(e).__name__}: {e} "
                    f"- retrying in {self.delay:g}s"
                )
                await self.sleep(self.delay)
