from __future__ import annotations

from fastapi import APIRouter

router = APIRouter(tags=["Health"])

HEALTH_PATH = "/health"


@router.get(HEALTH_PATH)
def health_check() -> dict:
    """Health check endpoint.

    Never rate limited by the demo app, so load balancers can always probe it.

    Returns:
        dict: A dictionary with a single "status" key set to "ok".
    """

    return {"status": "ok"}
