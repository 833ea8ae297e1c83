"""Limiter configuration: caller options, shared defaults and resolution.

Callers describe the middleware with a ``LimiterOptions`` value in which every
field is optional. ``None`` always means "use the documented default"; for
``algorithm``, ``key_prefix`` and ``message`` the empty string is reserved
for the same purpose. Explicit values always win over defaults, field by
field, and are validated rather than silently replaced.

Resolution happens once, when the middleware is built. The resulting
``LimiterConfig`` is immutable and shared read-only by every request.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Awaitable, Callable

from starlette.requests import Request
from starlette.responses import PlainTextResponse, Response

from rategate.adapters.engine.base import (
    DEFAULT_KEY_PREFIX,
    SLIDING_WINDOW_ALGORITHM,
    Limit,
    RateLimitEngine,
)
from rategate.core.config import LimiterSettings, settings
from rategate.core.errors import AppError, ConfigurationAppError, EngineAppError
from rategate.core.exception_handlers import app_error_response
from rategate.core.keys import real_ip

DEFAULT_MESSAGE = "Too many requests, please try again later."
DEFAULT_STATUS_CODE = 429

SkipFn = Callable[[Request], bool]
KeyFn = Callable[[Request], str]
LimitReachedHandler = Callable[[Request], Response | Awaitable[Response]]
EngineErrorHandler = Callable[[Exception, Request], Response | Awaitable[Response]]
Clock = Callable[[], float]


class EngineErrorPolicy(str, Enum):
    """What to do with a request when the engine call fails."""

    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"


def never_skip(request: Request) -> bool:
    return False


@dataclass(frozen=True)
class PlainTextLimitHandler:
    """Default denial response: ``status_code`` with ``message`` as body."""

    status_code: int
    message: str

    def __call__(self, request: Request) -> Response:
        return PlainTextResponse(self.message, status_code=self.status_code)


def internal_error_response(exc: Exception, request: Request) -> Response:
    """Default engine-error response: a 500 in the shared error envelope.

    The status is distinct from the denial status so clients can tell
    "over quota" apart from "limiter unavailable".
    """

    if not isinstance(exc, AppError):
        exc = EngineAppError(
            code="engine_error",
            message="Rate limiter unavailable. Please try again later.",
        )
    return app_error_response(exc, status_code=500)


@dataclass(frozen=True)
class LimiterOptions:
    """Caller-supplied, possibly partial, limiter configuration.

    Attributes:
        engine: Rate limit engine handle. Required.
        skip: Predicate; when true the request bypasses rate limiting.
        max_rate: Steady-state requests allowed per period.
        burst: Maximum instantaneous allowance above the steady state.
        period: Duration (``timedelta`` or seconds) over which max_rate applies.
        algorithm: Engine counting strategy, passed through untouched.
        key_prefix: Namespace for all derived keys.
        status_code: HTTP status used for denied requests.
        message: Body text used for denied requests.
        key_fn: Derives the caller identity from a request.
        on_limit_reached: Builds the denial response.
        on_engine_error: Builds the response when the engine call fails.
        skip_on_engine_error: Forward requests when the engine fails.
        engine_timeout: Seconds after which the engine call is abandoned.
        clock: Epoch-seconds time source for header timestamps.
    """

    engine: RateLimitEngine | None = None
    skip: SkipFn | None = None
    max_rate: int | None = None
    burst: int | None = None
    period: timedelta | float | None = None
    algorithm: str | None = None
    key_prefix: str | None = None
    status_code: int | None = None
    message: str | None = None
    key_fn: KeyFn | None = None
    on_limit_reached: LimitReachedHandler | None = None
    on_engine_error: EngineErrorHandler | None = None
    skip_on_engine_error: bool | None = None
    engine_timeout: float | None = None
    clock: Clock | None = None


@dataclass(frozen=True)
class LimiterDefaults:
    """Documented defaults shared by every middleware instance."""

    skip: SkipFn = never_skip
    max_rate: int = 10
    burst: int = 10
    period: timedelta = timedelta(minutes=1)
    algorithm: str = SLIDING_WINDOW_ALGORITHM
    key_prefix: str = DEFAULT_KEY_PREFIX
    status_code: int = DEFAULT_STATUS_CODE
    message: str = DEFAULT_MESSAGE
    key_fn: KeyFn = real_ip
    on_engine_error: EngineErrorHandler = internal_error_response
    skip_on_engine_error: bool = False
    engine_timeout: float | None = None
    clock: Clock = time.time


DEFAULT_CONFIG = LimiterDefaults()


@dataclass(frozen=True)
class LimiterConfig:
    """Fully resolved, immutable limiter configuration."""

    engine: RateLimitEngine
    skip: SkipFn
    max_rate: int
    burst: int
    period: timedelta
    algorithm: str
    key_prefix: str
    status_code: int
    message: str
    key_fn: KeyFn
    on_limit_reached: LimitReachedHandler
    on_engine_error: EngineErrorHandler
    skip_on_engine_error: bool
    engine_timeout: float | None = None
    clock: Clock = time.time

    @property
    def limit(self) -> Limit:
        return Limit(
            period=self.period,
            algorithm=self.algorithm,
            rate=self.max_rate,
            burst=self.burst,
        )

    @property
    def engine_error_policy(self) -> EngineErrorPolicy:
        if self.skip_on_engine_error:
            return EngineErrorPolicy.FAIL_OPEN
        return EngineErrorPolicy.FAIL_CLOSED


def _invalid(field_name: str, value: object, message: str) -> ConfigurationAppError:
    return ConfigurationAppError(
        code="invalid_limiter_option",
        message=f"{field_name} {message}",
        details={"field": field_name, "actual_value": value},
    )


def _positive_int(field_name: str, value: int | None, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise _invalid(field_name, value, "must be a positive integer")
    return value


def _resolve_period(value: timedelta | float | None, default: timedelta) -> timedelta:
    if value is None:
        return default
    period = value if isinstance(value, timedelta) else timedelta(seconds=value)
    if period <= timedelta(0):
        raise _invalid("period", value, "must be a positive duration")
    return period


def _resolve_text(value: str | None, default: str) -> str:
    # Empty string is reserved for "use default"
    return value if value else default


def _resolve_status_code(value: int | None, default: int) -> int:
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or not 100 <= value <= 599:
        raise _invalid("status_code", value, "must be an HTTP status between 100 and 599")
    return value


def _resolve_timeout(value: float | None, default: float | None) -> float | None:
    if value is None:
        return default
    if value <= 0:
        raise _invalid("engine_timeout", value, "must be a positive number of seconds")
    return float(value)


def resolve_config(
    options: LimiterOptions,
    defaults: LimiterDefaults = DEFAULT_CONFIG,
) -> LimiterConfig:
    """Merge caller options with the documented defaults.

    Args:
        options: Caller-supplied options; ``None`` fields fall back to defaults.
        defaults: Default values. Never mutated.

    Returns:
        LimiterConfig: Complete configuration for one middleware instance.

    Raises:
        ConfigurationAppError: If the engine is missing or an explicit value
            is out of range.
    """

    if options.engine is None:
        raise ConfigurationAppError(
            code="engine_missing",
            message="rate limit engine is missing",
            details={"hint": "Pass an engine implementing allow(key, limit)"},
        )

    status_code = _resolve_status_code(options.status_code, defaults.status_code)
    message = _resolve_text(options.message, defaults.message)

    on_limit_reached = options.on_limit_reached
    if on_limit_reached is None:
        on_limit_reached = PlainTextLimitHandler(status_code=status_code, message=message)

    return LimiterConfig(
        engine=options.engine,
        skip=options.skip or defaults.skip,
        max_rate=_positive_int("max_rate", options.max_rate, defaults.max_rate),
        burst=_positive_int("burst", options.burst, defaults.burst),
        period=_resolve_period(options.period, defaults.period),
        algorithm=_resolve_text(options.algorithm, defaults.algorithm),
        key_prefix=_resolve_text(options.key_prefix, defaults.key_prefix),
        status_code=status_code,
        message=message,
        key_fn=options.key_fn or defaults.key_fn,
        on_limit_reached=on_limit_reached,
        on_engine_error=options.on_engine_error or defaults.on_engine_error,
        skip_on_engine_error=(
            defaults.skip_on_engine_error
            if options.skip_on_engine_error is None
            else options.skip_on_engine_error
        ),
        engine_timeout=_resolve_timeout(options.engine_timeout, defaults.engine_timeout),
        clock=options.clock or defaults.clock,
    )


def options_from_settings(
    engine: RateLimitEngine | None,
    limiter_settings: LimiterSettings | None = None,
    **overrides,
) -> LimiterOptions:
    """Build options from environment settings.

    Unset settings stay ``None`` so they resolve to defaults. Keyword
    overrides (for example ``key_fn`` or ``skip``) take precedence over the
    environment.

    Args:
        engine: Rate limit engine handle.
        limiter_settings: Settings to read; defaults to the global settings.
        **overrides: Explicit ``LimiterOptions`` fields.

    Returns:
        LimiterOptions ready for ``resolve_config``.
    """

    cfg = limiter_settings or settings.limiter
    values = {
        "max_rate": cfg.max_rate,
        "burst": cfg.burst,
        "period": cfg.period_seconds,
        "algorithm": cfg.algorithm,
        "key_prefix": cfg.key_prefix,
        "status_code": cfg.status_code,
        "message": cfg.message,
        "skip_on_engine_error": cfg.skip_on_engine_error,
        "engine_timeout": cfg.engine_timeout_seconds,
    }
    values.update(overrides)
    return LimiterOptions(engine=engine, **values)
