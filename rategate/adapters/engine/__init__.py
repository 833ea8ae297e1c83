"""Rate limit engine adapters.

This package defines the contract between the middleware and an external
rate limit engine (sliding window, GCRA, ...) backed by a shared store.
"""

from __future__ import annotations

from rategate.adapters.engine.base import (
    DEFAULT_KEY_PREFIX,
    GCRA_ALGORITHM,
    SLIDING_WINDOW_ALGORITHM,
    AbstractRateLimitEngine,
    Decision,
    Limit,
    RateLimitEngine,
    call_engine,
)

__all__ = [
    "DEFAULT_KEY_PREFIX",
    "GCRA_ALGORITHM",
    "SLIDING_WINDOW_ALGORITHM",
    "AbstractRateLimitEngine",
    "Decision",
    "Limit",
    "RateLimitEngine",
    "call_engine",
]
