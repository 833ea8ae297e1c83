"""Limiter key derivation.

Keys are ``<prefix>:<identity>``. The default identity is the caller's
resolved IP address, honouring proxy headers the way most reverse proxies
set them.
"""

from __future__ import annotations

import hashlib

from starlette.requests import Request


def real_ip(request: Request) -> str:
    """Resolve the caller's IP address.

    Checks ``X-Forwarded-For`` (first hop), then ``X-Real-IP``, then the
    socket peer.

    Both headers are trusted as sent. Unless a reverse proxy in front of the
    app overwrites them, a client can rotate ``X-Forwarded-For`` to get a
    fresh key per request and escape the limit. Deployments exposed directly
    to clients should pass a ``key_fn`` that reads ``request.client.host``.

    Args:
        request: Incoming request.

    Returns:
        str: Client address, or ``"unknown"`` when none is available.
    """

    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        first_hop = forwarded.split(",")[0].strip()
        if first_hop:
            return first_hop

    real = request.headers.get("X-Real-IP")
    if real and real.strip():
        return real.strip()

    return request.client.host if request.client else "unknown"


def build_key(prefix: str, identity: str) -> str:
    """Namespace a caller identity under ``prefix``."""
    return f"{prefix}:{identity}"


def hash_key(key: str) -> str:
    """Hash a limiter key for logging without exposing caller identities."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]
