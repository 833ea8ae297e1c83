"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
It sets the TESTING environment variable so local .env files are ignored.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["TESTING"] = "true"

from datetime import timedelta
from typing import Callable

import pytest

from rategate.adapters.engine.base import Decision, Limit


class FakeEngine:
    """Engine double recording every call and replaying a fixed outcome."""

    def __init__(self, decision: Decision | None = None, error: Exception | None = None) -> None:
        self.decision = decision
        self.error = error
        self.calls: list[tuple[str, Limit]] = []

    async def allow(self, key: str, limit: Limit) -> Decision:
        self.calls.append((key, limit))
        if self.error is not None:
            raise self.error
        assert self.decision is not None
        return self.decision


class SyncFakeEngine(FakeEngine):
    """Blocking variant, like an engine wrapping a synchronous Redis client."""

    def allow(self, key: str, limit: Limit) -> Decision:  # type: ignore[override]
        self.calls.append((key, limit))
        if self.error is not None:
            raise self.error
        assert self.decision is not None
        return self.decision


@pytest.fixture
def allowed_decision() -> Decision:
    return Decision(allowed=True, remaining=2, reset_after=timedelta(seconds=5))


@pytest.fixture
def denied_decision() -> Decision:
    return Decision(
        allowed=False,
        remaining=0,
        reset_after=timedelta(seconds=60),
        retry_after=timedelta(seconds=30),
    )


@pytest.fixture
def make_engine() -> Callable[..., FakeEngine]:
    def _make(decision: Decision | None = None, error: Exception | None = None, *, sync: bool = False) -> FakeEngine:
        cls = SyncFakeEngine if sync else FakeEngine
        return cls(decision=decision, error=error)

    return _make


@pytest.fixture
def fixed_clock() -> Callable[[], float]:
    return lambda: 1_000.0
