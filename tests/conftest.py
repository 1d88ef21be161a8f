"""
Pytest configuration and fixtures.
"""

import os

# Settings are read at import time, so the environment must be ready
# before any app module is imported.
os.environ["ROUTEWISE_ENV"] = "test"
os.environ["ROUTEWISE_JWT_SECRET"] = "test-jwt-secret"
os.environ.pop("ROUTEWISE_MONGO_URI", None)
os.environ.pop("ROUTEWISE_MLFLOW_TRACKING_URI", None)

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402

from app.core.config import settings  # noqa: E402
from app.core.services import build_services  # noqa: E402
from app.driver_service.schemas import DriverProfile  # noqa: E402


class FakeClock:
    """Controllable UTC clock."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class StaticMessageGenerator:
    """Records calls instead of reaching the LLM."""

    def __init__(self):
        self.calls = []

    def generate(self, driver, category, reason=None):
        self.calls.append((driver.driver_id, category, reason))
        return f"{driver.name} would like to see your {category}."


DRIVERS = [
    DriverProfile(
        driver_id="driver-verified",
        name="Sarah",
        rating=4.9,
        total_rides=150,
        verification_level="verified",
    ),
    DriverProfile(
        driver_id="driver-premium",
        name="Omar",
        rating=4.6,
        total_rides=900,
        verification_level="premium",
    ),
    DriverProfile(
        driver_id="driver-new-veteran",
        name="Lee",
        rating=4.7,
        total_rides=25,
        verification_level="new",
    ),
    DriverProfile(
        driver_id="driver-new",
        name="Ana",
        rating=4.9,
        total_rides=3,
        verification_level="new",
    ),
    DriverProfile(
        driver_id="driver-low",
        name="Max",
        rating=4.2,
        total_rides=400,
        verification_level="verified",
    ),
]


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def messages():
    return StaticMessageGenerator()


@pytest.fixture
def services(clock, messages):
    """In-memory service container with a seeded driver directory."""
    built = build_services(settings, None, message_generator=messages, clock=clock)
    for driver in DRIVERS:
        built.drivers.add(driver)
    return built
