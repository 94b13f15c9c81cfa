"""
Pytest configuration and fixtures for StatusKeeper tests.
"""

from collections.abc import Iterator
from typing import Any

import pytest

from statuskeeper.config import Config, parse_config
from statuskeeper.core import ServiceSample
from statuskeeper.store import SampleStore

NOW = 1_700_000_000_000
MINUTE = 60 * 1000
HOUR = 60 * MINUTE


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = NOW) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


def make_config(**overrides: Any) -> Config:
    """Build a snapshot with three services in two categories."""
    raw: dict[str, Any] = {
        "name": "Test Status",
        "check_interval_minutes": 5,
        "data_retention_hours": 1,
        "database_url": "sqlite://",
        "categories": [
            {
                "name": "Web",
                "description": "Web services",
                "services": [
                    {"name": "A", "url": "https://a.example.com", "expected_response_code": 200},
                    {"name": "B", "url": "https://b.example.com", "hide_url": True},
                ],
            },
            {
                "name": "Backend",
                "description": "Internal services",
                "services": [
                    {"name": "C", "url": "https://c.example.com", "expected_response_code": 204},
                ],
            },
        ],
    }
    raw.update(overrides)
    return parse_config(raw)


def sample(url: str, status: str, timestamp: int, response_time: int | None = 100) -> ServiceSample:
    """Shorthand for building samples."""
    return ServiceSample(url=url, status=status, response_time=response_time, timestamp=timestamp)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> Iterator[SampleStore]:
    """In-memory sample store."""
    sample_store = SampleStore("sqlite://")
    yield sample_store
    sample_store.close()


@pytest.fixture
def config() -> Config:
    return make_config()
