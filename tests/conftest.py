"""Pytest configuration and fixtures."""

from __future__ import annotations

import asyncio
import inspect
import os
import sys
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

# Ensure src/ is on sys.path so the src layout is used during test runs
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC = os.path.join(ROOT, "src")
if SRC not in sys.path:
    sys.path.insert(0, SRC)

from arxpool.config import ArxPoolConfig, configure  # noqa: E402

SECRET = "ed25519:" + bytes(range(1, 33)).hex()


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line("markers", "asyncio: mark test as requiring an event loop")


def pytest_pyfunc_call(pyfuncitem: Any) -> bool | None:
    """Execute async test functions without requiring pytest-asyncio."""

    if inspect.iscoroutinefunction(pyfuncitem.obj):
        call_kwargs = {
            name: pyfuncitem.funcargs[name]
            for name in pyfuncitem._fixtureinfo.argnames  # type: ignore[attr-defined]
        }

        event_loop = asyncio.new_event_loop()
        try:
            event_loop.run_until_complete(pyfuncitem.obj(**call_kwargs))
        finally:
            event_loop.close()
        return True
    return None


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2024, 5, 1, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def config() -> ArxPoolConfig:
    """Stub-mode config that ignores the process environment."""

    return configure(
        {"mxe_id": "mxe-test", "attester_secret": SECRET}, base=ArxPoolConfig()
    )


@pytest.fixture
def secret() -> str:
    return SECRET


@pytest.fixture
def blob() -> dict[str, str]:
    """Minimal valid ciphertext submission."""

    return {
        "ciphertext": "ciphertext-placeholder-value",
        "senderPubkey": "sender-public-key-placeholder-1234567890",
    }
