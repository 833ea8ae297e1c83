from __future__ import annotations

from rategate.api.routes.health import router as health_router
from rategate.api.routes.hello import router as hello_router

__all__ = ["health_router", "hello_router"]
