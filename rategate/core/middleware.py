"""HTTP middleware: request correlation and rate limiting.

Both middlewares are plain ``(request, call_next)`` coroutines registered
with ``app.middleware("http")``.

Rate limiting, per request:
- ``skip(request)`` true: forward untouched (no engine call, no headers)
- Derive ``<key_prefix>:<key_fn(request)>`` and ask the engine once
- Engine failure: forward (fail-open) or answer with ``on_engine_error``
- Denied: answer with ``on_limit_reached`` plus an absolute ``Retry-After``
- Allowed: forward and add ``X-RateLimit-Limit/Remaining/Reset``

Usage:
    app.middleware("http")(request_id_middleware)
    app.middleware("http")(new_rate_limiter(engine))
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from typing import Any, Awaitable, Callable

from fastapi import Request, Response

from rategate.adapters.engine.base import Decision, RateLimitEngine, call_engine
from rategate.core.config import settings
from rategate.core.errors import EngineAppError
from rategate.core.keys import build_key, hash_key
from rategate.core.logging import clear_request_id, set_request_id
from rategate.core.options import (
    EngineErrorPolicy,
    LimiterConfig,
    LimiterOptions,
    resolve_config,
)

logger = logging.getLogger(__name__)

HEADER_LIMIT = "X-RateLimit-Limit"
HEADER_REMAINING = "X-RateLimit-Remaining"
HEADER_RESET = "X-RateLimit-Reset"
HEADER_RETRY_AFTER = "Retry-After"

CallNext = Callable[[Request], Awaitable[Response]]
Middleware = Callable[[Request, CallNext], Awaitable[Response]]


async def request_id_middleware(request: Request, call_next: CallNext) -> Response:
    """HTTP middleware for request ID generation and propagation.

    Uses the incoming request id header when present, otherwise a new UUID.
    The id is stored in contextvars for log correlation during the request
    and echoed back with the total duration in the response headers.

    Args:
        request: The incoming HTTP request object.
        call_next: The next middleware/route handler in the stack.

    Returns:
        Response: The downstream response with request id and duration headers.
    """

    header_name = settings.log.request_id_header
    request_id = request.headers.get(header_name) or str(uuid.uuid4())
    set_request_id(request_id)
    start = time.perf_counter()
    try:
        response: Response = await call_next(request)
    finally:
        clear_request_id()

    duration_ms = (time.perf_counter() - start) * 1000
    response.headers[header_name] = request_id
    response.headers.setdefault("X-Request-Duration-ms", f"{duration_ms:.2f}")
    return response


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _epoch_after(clock: Callable[[], float], seconds: float) -> str:
    return str(int(clock() + seconds))


def _engine_error(code: str, exc: Exception, timeout: float | None = None) -> EngineAppError:
    details: dict[str, Any] = {"error_type": type(exc).__name__}
    if timeout is not None:
        details["timeout_seconds"] = timeout
    error = EngineAppError(
        code=code,
        message="Rate limiter unavailable. Please try again later.",
        details=details,  # type: ignore[arg-type]
    )
    error.__cause__ = exc
    return error


def rate_limit_middleware(config: LimiterConfig) -> Middleware:
    """Build the rate limiting middleware for a resolved configuration.

    Args:
        config: Resolved limiter configuration, shared read-only by requests.

    Returns:
        Middleware coroutine for ``app.middleware("http")``.
    """

    limit = config.limit
    policy = config.engine_error_policy

    async def _on_engine_failure(
        error: EngineAppError, request: Request, call_next: CallNext, key: str
    ) -> Response:
        logger.error(
            "rate_limit.engine_error",
            extra={
                "key_hash": hash_key(key),
                "error_code": error.code,
                "error_type": type(error.__cause__).__name__,
                "error_msg": str(error.__cause__),
                "policy": policy.value,
                "request_path": request.url.path,
            },
        )

        if policy is EngineErrorPolicy.FAIL_OPEN:
            return await call_next(request)

        return await _maybe_await(config.on_engine_error(error, request))

    async def _deny(request: Request, decision: Decision, key: str) -> Response:
        retry_after = decision.retry_after.total_seconds()
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "key_hash": hash_key(key),
                "limit": config.max_rate,
                "remaining": decision.remaining,
                "retry_after_s": retry_after,
            },
        )

        response: Response = await _maybe_await(config.on_limit_reached(request))
        # https://tools.ietf.org/html/rfc6584
        response.headers[HEADER_RETRY_AFTER] = _epoch_after(config.clock, retry_after)
        return response

    async def _allow(
        request: Request, call_next: CallNext, decision: Decision, key: str
    ) -> Response:
        logger.debug(
            "rate_limit.allowed",
            extra={
                "key_hash": hash_key(key),
                "limit": config.max_rate,
                "remaining": decision.remaining,
            },
        )

        reset = _epoch_after(config.clock, decision.reset_after.total_seconds())
        response = await call_next(request)
        response.headers[HEADER_LIMIT] = str(config.max_rate)
        response.headers[HEADER_REMAINING] = str(decision.remaining)
        response.headers[HEADER_RESET] = reset
        return response

    async def middleware(request: Request, call_next: CallNext) -> Response:
        if config.skip(request):
            logger.debug("rate_limit.skipped", extra={"request_path": request.url.path})
            return await call_next(request)

        key = build_key(config.key_prefix, config.key_fn(request))

        failure: EngineAppError | None = None
        try:
            decision = await call_engine(
                config.engine, key, limit, timeout=config.engine_timeout
            )
        except asyncio.TimeoutError as exc:
            failure = _engine_error("engine_timeout", exc, config.engine_timeout)
        except Exception as exc:  # noqa: BLE001 - transport/store failures of any kind
            failure = _engine_error("engine_error", exc)

        if failure is not None:
            return await _on_engine_failure(failure, request, call_next, key)

        if not decision.allowed:
            return await _deny(request, decision, key)

        return await _allow(request, call_next, decision, key)

    return middleware


def new_rate_limiter_with_config(options: LimiterOptions) -> Middleware:
    """Resolve ``options`` against the defaults and build the middleware.

    Raises:
        ConfigurationAppError: If the engine is missing or an option is invalid.
    """

    config = resolve_config(options)
    logger.info(
        "rate_limit.configured",
        extra={
            "max_rate": config.max_rate,
            "burst": config.burst,
            "period_s": config.period.total_seconds(),
            "algorithm": config.algorithm,
            "key_prefix": config.key_prefix,
            "policy": config.engine_error_policy.value,
            "engine_timeout_s": config.engine_timeout,
        },
    )
    return rate_limit_middleware(config)


def new_rate_limiter(engine: RateLimitEngine | None) -> Middleware:
    """Build the middleware with every option at its default."""
    return new_rate_limiter_with_config(LimiterOptions(engine=engine))
