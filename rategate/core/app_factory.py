from __future__ import annotations

"""Application factory for the rate limited demo app.

Wires logging, middleware, exception handlers and routers around a caller
supplied rate limit engine. Useful as a reference integration and in tests.
"""

import dataclasses

from fastapi import FastAPI, Request

from rategate.adapters.engine.base import RateLimitEngine
from rategate.api.routes import health_router, hello_router
from rategate.api.routes.health import HEALTH_PATH
from rategate.core.config import settings
from rategate.core.exception_handlers import setup_exception_handlers
from rategate.core.logging import configure_logging
from rategate.core.middleware import new_rate_limiter_with_config, request_id_middleware
from rategate.core.options import LimiterOptions, options_from_settings


def skip_health_checks(request: Request) -> bool:
    """Skip predicate exempting the health endpoint from rate limiting."""
    return request.url.path == HEALTH_PATH


def create_app(engine: RateLimitEngine | None, options: LimiterOptions | None = None) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        engine: Rate limit engine handle. When None, ``options.engine`` is used;
            one of the two is required.
        options: Explicit limiter options. When omitted, options come from
            the ``RATEGATE_*`` environment settings.

    Returns:
        Configured FastAPI app.

    Raises:
        ConfigurationAppError: If no engine is supplied or options are invalid.
    """
    # Logging first so subsequent init logs are formatted as desired
    configure_logging(settings.log)

    if options is None:
        options = options_from_settings(engine)
    elif engine is not None:
        options = dataclasses.replace(options, engine=engine)
    if options.skip is None:
        options = dataclasses.replace(options, skip=skip_health_checks)

    # Fails fast before the app can serve a single request
    rate_limiter = new_rate_limiter_with_config(options)

    app = FastAPI(
        title="rategate demo",
        description="Rate limited demo application.",
        version="0.1.0",
    )

    # Last registered runs first: request ids wrap the rate limiter
    app.middleware("http")(rate_limiter)
    app.middleware("http")(request_id_middleware)

    setup_exception_handlers(app)

    app.include_router(hello_router)
    app.include_router(health_router)

    return app
