"""Rate limit engine interfaces.

The middleware depends on this abstraction only. The engine owns the
counting algorithm and the shared counter store; the middleware hands it a
key and a ``Limit`` and receives a ``Decision`` back.
"""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Awaitable, Protocol

from starlette.concurrency import run_in_threadpool

SLIDING_WINDOW_ALGORITHM = "sliding-window"
GCRA_ALGORITHM = "gcra"
DEFAULT_KEY_PREFIX = "rategate"


@dataclass(frozen=True)
class Limit:
    """Quota passed unchanged to every engine call of a middleware instance.

    Attributes:
        period: Duration over which ``rate`` applies.
        algorithm: Engine counting strategy identifier.
        rate: Steady-state requests allowed per period.
        burst: Maximum instantaneous allowance above the steady state.
    """

    period: timedelta
    algorithm: str
    rate: int
    burst: int


@dataclass(frozen=True)
class Decision:
    """Outcome of a single engine call.

    Attributes:
        allowed: Whether the request may proceed.
        remaining: Quota left in the current window.
        reset_after: Time until the quota fully replenishes.
        retry_after: Time the caller should wait before retrying (denied only).
    """

    allowed: bool
    remaining: int
    reset_after: timedelta
    retry_after: timedelta = timedelta(0)


class RateLimitEngine(Protocol):
    """Structural type accepted by the middleware."""

    def allow(self, key: str, limit: Limit) -> Decision | Awaitable[Decision]:
        ...


class AbstractRateLimitEngine(ABC):
    """Interface for rate limit engines.

    Implementations must be safe under concurrent invocation for the same
    and for different keys. Failures are signalled by raising.
    """

    @abstractmethod
    async def allow(self, key: str, limit: Limit) -> Decision:
        """Count one request against ``key`` and decide on it.

        Args:
            key: Namespaced caller identity.
            limit: Quota to enforce.

        Returns:
            Decision for this request.
        """
        raise NotImplementedError


async def call_engine(
    engine: RateLimitEngine,
    key: str,
    limit: Limit,
    *,
    timeout: float | None = None,
) -> Decision:
    """Invoke ``engine.allow`` without blocking the event loop.

    Coroutine engines are awaited directly; synchronous engines (for example
    ones wrapping a blocking Redis client) run in the threadpool.

    Args:
        engine: Rate limit engine.
        key: Namespaced caller identity.
        limit: Quota to enforce.
        timeout: Optional upper bound in seconds for the call.

    Returns:
        Decision returned by the engine.

    Raises:
        asyncio.TimeoutError: If the call exceeds ``timeout``.
        Exception: Whatever the engine raises.
    """

    async def _invoke() -> Decision:
        if inspect.iscoroutinefunction(engine.allow):
            return await engine.allow(key, limit)
        result: Any = await run_in_threadpool(engine.allow, key, limit)
        if inspect.isawaitable(result):
            result = await result
        return result

    if timeout is None:
        return await _invoke()
    return await asyncio.wait_for(_invoke(), timeout=timeout)
