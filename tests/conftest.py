"""Test configuration and fixtures for ferry captain tests."""

import os

import pytest
import pytest_asyncio

os.environ.setdefault("APP_ENV", "test")

from ferry_captain.core.services import CaptainServices  # noqa: E402
from ferry_captain.core.settings import Settings  # noqa: E402
from ferry_captain.core.settings import reset_settings_cache as _reset_settings_cache  # noqa: E402
from ferry_captain.schemas.trip import StopType, Trip  # noqa: E402
from tests.fakes.backend import InMemoryTripBackend, make_passenger, make_stop  # noqa: E402

TRIP_ID = "trip-1"
CAPTAIN_ID = "captain-1"


def reset_settings_cache() -> None:
    """Reset settings cache for tests."""
    _reset_settings_cache()


@pytest.fixture
def test_settings() -> Settings:
    """Settings with reconciliation running immediately after each transition."""
    return Settings(app_env="test", reconcile_delay_sec=0.0, metrics_enabled=True)


@pytest.fixture
def fake_backend() -> InMemoryTripBackend:
    """
    Three-stop trip: pickup at Male, both at Maafushi, dropoff at Gulhi.

    Two bookings with three passengers, all boarding at Male.
    """
    backend = InMemoryTripBackend()
    backend.add_trip(
        Trip(id=TRIP_ID),
        [
            make_stop("stop-a", 1, StopType.PICKUP, island="Male"),
            make_stop("stop-b", 2, StopType.BOTH, island="Maafushi"),
            make_stop("stop-c", 3, StopType.DROPOFF, island="Gulhi"),
        ],
        [
            make_passenger("p1", "booking-1", boarding_stop_id="stop-a", destination_stop_id="stop-b"),
            make_passenger("p2", "booking-1", boarding_stop_id="stop-a", destination_stop_id="stop-b"),
            make_passenger("p3", "booking-2", boarding_stop_id="stop-a", destination_stop_id="stop-c"),
        ],
    )
    return backend


@pytest_asyncio.fixture
async def services(fake_backend, test_settings):
    """Trip services over the fake backend; background work is cancelled afterwards."""
    container = CaptainServices(fake_backend, test_settings)
    yield container
    await container.aclose()
