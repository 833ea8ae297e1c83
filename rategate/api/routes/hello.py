from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse

router = APIRouter(tags=["Demo"])


@router.get("/", response_class=PlainTextResponse)
def hello() -> str:
    """Rate limited demo endpoint."""
    return "Hello, World!"
