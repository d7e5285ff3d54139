# Where: lambdasync/core/settle.py
# What: Bounded poll-until-terminal wait after a mutating platform call.
# Why: The platform applies updates asynchronously; the next dependent call must wait.
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from lambdasync.core.errors import DeadlineExceededError, SettleFailedError, SettleTimeoutError
from lambdasync.core.models import FunctionConfig, NOT_FOUND

logger = logging.getLogger("lambdasync.settle")

T = TypeVar("T")


class SettleState(str, Enum):
    PENDING = "Pending"
    SUCCESSFUL = "Successful"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 100
    interval: float = 1.0


class Deadline:
    """Shared wall-clock budget applied to every suspension point of a run."""

    def __init__(self, seconds: float | None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._expires_at = None if seconds is None else clock() + seconds

    @classmethod
    def unbounded(cls) -> "Deadline":
        return cls(None)

    def remaining(self) -> float | None:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - self._clock())

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    async def run(self, awaitable: Awaitable[T], *, target: str, operation: str) -> T:
        """Await under the remaining budget; expiry raises DeadlineExceededError."""
        remaining = self.remaining()
        if remaining is None:
            return await awaitable
        if remaining <= 0:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            raise DeadlineExceededError(target, operation)
        try:
            return await asyncio.wait_for(awaitable, timeout=remaining)
        except asyncio.TimeoutError as e:
            raise DeadlineExceededError(target, operation) from e


def classify(config: FunctionConfig) -> SettleState:
    """Map a configuration snapshot onto the settle state machine."""
    if config.state == "Failed" or config.last_update_status == "Failed":
        return SettleState.FAILED
    if config.state == "Pending" or config.last_update_status == "InProgress":
        return SettleState.PENDING
    if config.last_update_status in (None, "Successful") and config.state in (
        None,
        "Active",
        "Inactive",
    ):
        return SettleState.SUCCESSFUL
    return SettleState.PENDING


async def wait_until_settled(
    gateway,
    function_name: str,
    *,
    policy: RetryPolicy = RetryPolicy(),
    deadline: Deadline | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> FunctionConfig:
    """
    Poll the function configuration until the platform reports a terminal state.

    Returns the settled configuration. Raises SettleFailedError as soon as a poll
    reports Failed, and SettleTimeoutError once max_attempts polls stay pending or
    the run deadline expires.
    """
    deadline = deadline or Deadline.unbounded()
    for attempt in range(1, policy.max_attempts + 1):
        try:
            lookup = await deadline.run(
                gateway.get_function_config(function_name),
                target=function_name,
                operation="settle",
            )
        except DeadlineExceededError as e:
            raise SettleTimeoutError(function_name, attempt) from e

        if lookup is NOT_FOUND:
            state = SettleState.PENDING
            config = None
        else:
            config = lookup.value
            state = classify(config)

        logger.debug(
            "Settle poll %d/%d for %s: %s",
            attempt,
            policy.max_attempts,
            function_name,
            state.value,
            extra={"function_name": function_name},
        )

        if state is SettleState.SUCCESSFUL:
            return config
        if state is SettleState.FAILED:
            raise SettleFailedError(function_name, config.last_update_status_reason, attempt)

        if attempt < policy.max_attempts:
            try:
                await deadline.run(
                    sleep(policy.interval), target=function_name, operation="settle"
                )
            except DeadlineExceededError as e:
                raise SettleTimeoutError(function_name, attempt) from e

    logger.warning(
        "%s is still %s after %d polls",
        function_name,
        SettleState.TIMED_OUT.value,
        policy.max_attempts,
    )
    raise SettleTimeoutError(function_name, policy.max_attempts)
