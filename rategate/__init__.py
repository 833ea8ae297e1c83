"""Rate limiting middleware for FastAPI/Starlette applications."""

from __future__ import annotations

from rategate.adapters.engine import (
    DEFAULT_KEY_PREFIX,
    GCRA_ALGORITHM,
    SLIDING_WINDOW_ALGORITHM,
    AbstractRateLimitEngine,
    Decision,
    Limit,
)
from rategate.core.errors import AppError, ConfigurationAppError, EngineAppError
from rategate.core.middleware import (
    new_rate_limiter,
    new_rate_limiter_with_config,
    rate_limit_middleware,
)
from rategate.core.options import (
    DEFAULT_CONFIG,
    EngineErrorPolicy,
    LimiterConfig,
    LimiterOptions,
    resolve_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_KEY_PREFIX",
    "GCRA_ALGORITHM",
    "SLIDING_WINDOW_ALGORITHM",
    "AbstractRateLimitEngine",
    "AppError",
    "ConfigurationAppError",
    "Decision",
    "EngineAppError",
    "EngineErrorPolicy",
    "LimiterConfig",
    "LimiterOptions",
    "Limit",
    "new_rate_limiter",
    "new_rate_limiter_with_config",
    "rate_limit_middleware",
    "resolve_config",
]
