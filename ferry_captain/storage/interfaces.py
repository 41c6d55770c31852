"""Backend interface for dependency injection.

The backend is the single source of truth for trip, stop and booking state.
Mutations report failure through ``success=False`` results; transport
failures raise ``BackendError``.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from ferry_captain.schemas.actions import (
    AdvanceResult,
    BackendResult,
    CloseCheckinResult,
)
from ferry_captain.schemas.trip import Passenger, RouteStop, StopStatus, Trip, TripStatus


class TripBackendIface(ABC):
    """Interface for the trip operations backend."""

    @abstractmethod
    async def fetch_trip(self, trip_id: str) -> Trip:
        """Get a trip by ID."""
        pass

    @abstractmethod
    async def fetch_trip_stops(self, trip_id: str) -> list[RouteStop]:
        """Get the trip's stops ordered by stop_sequence."""
        pass

    @abstractmethod
    async def fetch_trip_passengers(self, trip_id: str) -> list[Passenger]:
        """Get the trip's passengers."""
        pass

    @abstractmethod
    async def initialize_stop_progress(self, trip_id: str, captain_id: str) -> BackendResult:
        """Create the per-trip stop progress rows."""
        pass

    @abstractmethod
    async def update_stop_status(
        self,
        trip_id: str,
        stop_id: str,
        status: StopStatus,
        captain_id: str,
        expected_statuses: Iterable[StopStatus] | None = None,
    ) -> BackendResult:
        """
        Set a stop's status.

        Conditioned update: when ``expected_statuses`` is given the write only
        applies if the stop is currently in one of them. A stop already at or
        past ``status`` is left alone and the write succeeds as a no-op.
        """
        pass

    @abstractmethod
    async def advance_to_next_stop(
        self, trip_id: str, captain_id: str, target_stop_id: str | None = None
    ) -> AdvanceResult:
        """Complete the current stop and make the next one arrived and current."""
        pass

    @abstractmethod
    async def update_trip_status(
        self,
        trip_id: str,
        status: TripStatus,
        current_stop_sequence: int | None = None,
        current_stop_id: str | None = None,
    ) -> BackendResult:
        """Set the trip status and, optionally, its current stop pointer."""
        pass

    @abstractmethod
    async def send_manifest(self, trip_id: str, stop_id: str) -> BackendResult:
        """Notify operations with the passenger manifest."""
        pass

    @abstractmethod
    async def close_checkin(
        self,
        trip_id: str,
        notes: str | None = None,
        weather_conditions: str | None = None,
        delay_reason: str | None = None,
        actual_departure_time: str | None = None,
    ) -> CloseCheckinResult:
        """Close check-in and generate the manifest."""
        pass

    @abstractmethod
    async def set_booking_checked_in(self, booking_id: str, captain_id: str) -> BackendResult:
        """Mark every passenger of a booking as checked in."""
        pass

    @abstractmethod
    async def activate_trip(self, trip_id: str, captain_id: str) -> BackendResult:
        """Enable check-in and operations for a trip."""
        pass
