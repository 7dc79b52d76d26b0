"""
Shared pytest fixtures.

Time is always faked: limiters, fetch cooldowns and throttle backoff
advance a FakeClock instead of sleeping.
"""

import pytest
import structlog

from ingestion.storage import SQLiteDocumentStore


class FakeClock:
    """Monotonic clock whose sleep() advances time instantly."""

    def __init__(self, start: float = 1000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += max(0.0, seconds)

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    return SQLiteDocumentStore(tmp_path / "pulse.db")


@pytest.fixture(autouse=True, scope="session")
def route_structlog_to_stdlib():
    """Send log events through stdlib logging so stdout carries only command output."""
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.processors.KeyValueRenderer(key_order=["event"]),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
    yield
    structlog.reset_defaults()
