"""In-memory fake trip backend for unit tests."""

from collections.abc import Iterable
from typing import Any

from ferry_captain.core.exceptions import BackendError
from ferry_captain.domain import stops as stop_rules
from ferry_captain.schemas.actions import AdvanceResult, BackendResult, CloseCheckinResult
from ferry_captain.schemas.trip import (
    BookingStatus,
    Island,
    Passenger,
    RouteStop,
    StopStatus,
    StopType,
    Trip,
    TripStatus,
)
from ferry_captain.storage.interfaces import TripBackendIface


def make_stop(
    stop_id: str,
    sequence: int,
    stop_type: StopType = StopType.BOTH,
    status: StopStatus = StopStatus.PENDING,
    island: str | None = None,
    progress_id: str | None = None,
    is_current_stop: bool = False,
) -> RouteStop:
    """Build a route stop; ``is_completed`` follows the status."""
    return RouteStop(
        stop_id=stop_id,
        progress_id=progress_id,
        stop_sequence=sequence,
        stop_type=stop_type,
        status=status,
        is_completed=stop_rules.derive_is_completed(status),
        is_current_stop=is_current_stop,
        island=Island(id=f"island-{stop_id}", name=island or stop_id),
    )


def make_passenger(
    passenger_id: str,
    booking_id: str,
    checked_in: bool = False,
    booking_status: BookingStatus = BookingStatus.CONFIRMED,
    boarding_stop_id: str | None = None,
    destination_stop_id: str | None = None,
) -> Passenger:
    return Passenger(
        id=passenger_id,
        booking_id=booking_id,
        passenger_name=f"Passenger {passenger_id}",
        booking_status=booking_status,
        check_in_status=checked_in,
        boarding_stop_id=boarding_stop_id,
        destination_stop_id=destination_stop_id,
    )


class InMemoryTripBackend(TripBackendIface):
    """
    In-memory fake of the trip backend.

    Records every call in ``calls``. ``fail`` makes a method answer
    ``success=False`` with a message; ``raise_on`` makes it raise
    ``BackendError``.
    """

    def __init__(self) -> None:
        self.trips: dict[str, Trip] = {}
        self.stops: dict[str, list[RouteStop]] = {}
        self.passengers: dict[str, list[Passenger]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.fail: dict[str, str] = {}
        self.raise_on: dict[str, BackendError] = {}
        self.manifests: list[tuple[str, str]] = []

    def add_trip(
        self,
        trip: Trip,
        stops: list[RouteStop],
        passengers: list[Passenger] | None = None,
    ) -> None:
        if not trip.total_stops:
            trip = trip.model_copy(update={"total_stops": len(stops)})
        self.trips[trip.id] = trip
        self.stops[trip.id] = stop_rules.sort_stops(stops)
        self.passengers[trip.id] = list(passengers or [])

    def calls_to(self, method: str) -> list[dict[str, Any]]:
        return [kwargs for name, kwargs in self.calls if name == method]

    def stop(self, trip_id: str, stop_id: str) -> RouteStop:
        found = stop_rules.find_stop(self.stops[trip_id], stop_id)
        assert found is not None, f"unknown stop {stop_id}"
        return found

    def _record(self, method: str, **kwargs: Any) -> BackendResult | None:
        self.calls.append((method, kwargs))
        if method in self.raise_on:
            raise self.raise_on[method]
        if method in self.fail:
            return BackendResult(success=False, message=self.fail[method])
        return None

    def _set_stop(self, trip_id: str, stop_id: str, **changes: Any) -> None:
        self.stops[trip_id] = [
            s.model_copy(update=changes) if s.stop_id == stop_id else s
            for s in self.stops[trip_id]
        ]

    def _set_trip(self, trip_id: str, **changes: Any) -> None:
        self.trips[trip_id] = self.trips[trip_id].model_copy(update=changes)

    async def fetch_trip(self, trip_id: str) -> Trip:
        self._record("fetch_trip", trip_id=trip_id)
        if trip_id not in self.trips:
            raise BackendError(f"Trip {trip_id} not found", 404)
        return self.trips[trip_id]

    async def fetch_trip_stops(self, trip_id: str) -> list[RouteStop]:
        self._record("fetch_trip_stops", trip_id=trip_id)
        pointer = self.trips[trip_id].current_stop_id if trip_id in self.trips else None
        return [
            s.model_copy(
                update={
                    "is_current_stop": s.status in stop_rules.ACTIVE_STATUSES
                    or s.stop_id == pointer
                }
            )
            for s in self.stops.get(trip_id, [])
        ]

    async def fetch_trip_passengers(self, trip_id: str) -> list[Passenger]:
        self._record("fetch_trip_passengers", trip_id=trip_id)
        return list(self.passengers.get(trip_id, []))

    async def initialize_stop_progress(self, trip_id: str, captain_id: str) -> BackendResult:
        failed = self._record("initialize_stop_progress", trip_id=trip_id, captain_id=captain_id)
        if failed:
            return failed
        self.stops[trip_id] = [
            s.model_copy(update={"progress_id": s.progress_id or f"progress-{s.stop_id}"})
            for s in self.stops[trip_id]
        ]
        return BackendResult(success=True)

    async def update_stop_status(
        self,
        trip_id: str,
        stop_id: str,
        status: StopStatus,
        captain_id: str,
        expected_statuses: Iterable[StopStatus] | None = None,
    ) -> BackendResult:
        expected = set(expected_statuses) if expected_statuses else None
        failed = self._record(
            "update_stop_status",
            trip_id=trip_id,
            stop_id=stop_id,
            status=status,
            captain_id=captain_id,
            expected_statuses=expected,
        )
        if failed:
            return failed

        stop = self.stop(trip_id, stop_id)
        if expected is not None and stop.status not in expected:
            return BackendResult(
                success=False, message=f"Stop is {stop.status.value}, update rejected"
            )
        if stop_rules.has_reached(stop.status, status):
            return BackendResult(success=True)
        if not stop_rules.can_transition(stop.status, status):
            return BackendResult(
                success=False,
                message=f"Cannot move stop from {stop.status.value} to {status.value}",
            )
        self._set_stop(
            trip_id,
            stop_id,
            status=status,
            is_completed=stop.is_completed or stop_rules.derive_is_completed(status),
        )
        return BackendResult(success=True)

    async def advance_to_next_stop(
        self, trip_id: str, captain_id: str, target_stop_id: str | None = None
    ) -> AdvanceResult:
        failed = self._record(
            "advance_to_next_stop",
            trip_id=trip_id,
            captain_id=captain_id,
            target_stop_id=target_stop_id,
        )
        if failed:
            return AdvanceResult(success=False, message=failed.message)

        trip = self.trips[trip_id]
        stops = self.stops[trip_id]
        current = stop_rules.find_stop(stops, trip.current_stop_id) or stop_rules.select_current_stop(
            stops
        )
        if target_stop_id is not None:
            target = stop_rules.find_stop(stops, target_stop_id)
        else:
            target = stop_rules.next_incomplete_stop(stops, current.stop_sequence)

        if current is not None:
            self._set_stop(
                trip_id,
                current.stop_id,
                status=StopStatus.COMPLETED,
                is_completed=True,
            )

        if target is None:
            self._set_trip(trip_id, status=TripStatus.COMPLETED)
            return AdvanceResult(success=True, is_completed=True, message="Trip completed")

        self._set_stop(trip_id, target.stop_id, status=StopStatus.ARRIVED)
        self._set_trip(
            trip_id,
            current_stop_id=target.stop_id,
            current_stop_sequence=max(trip.current_stop_sequence or 0, target.stop_sequence),
        )
        return AdvanceResult(success=True, message=f"Arrived at {target.island.name}")

    async def update_trip_status(
        self,
        trip_id: str,
        status: TripStatus,
        current_stop_sequence: int | None = None,
        current_stop_id: str | None = None,
    ) -> BackendResult:
        failed = self._record(
            "update_trip_status",
            trip_id=trip_id,
            status=status,
            current_stop_sequence=current_stop_sequence,
            current_stop_id=current_stop_id,
        )
        if failed:
            return failed

        changes: dict[str, Any] = {"status": status}
        if current_stop_sequence is not None:
            changes["current_stop_sequence"] = current_stop_sequence
        if current_stop_id is not None:
            changes["current_stop_id"] = current_stop_id
        self._set_trip(trip_id, **changes)
        return BackendResult(success=True)

    async def send_manifest(self, trip_id: str, stop_id: str) -> BackendResult:
        failed = self._record("send_manifest", trip_id=trip_id, stop_id=stop_id)
        if failed:
            return failed
        self.manifests.append((trip_id, stop_id))
        return BackendResult(success=True, message="Manifest sent")

    async def close_checkin(
        self,
        trip_id: str,
        notes: str | None = None,
        weather_conditions: str | None = None,
        delay_reason: str | None = None,
        actual_departure_time: str | None = None,
    ) -> CloseCheckinResult:
        failed = self._record(
            "close_checkin",
            trip_id=trip_id,
            notes=notes,
            weather_conditions=weather_conditions,
            delay_reason=delay_reason,
            actual_departure_time=actual_departure_time,
        )
        if failed:
            return CloseCheckinResult(success=False, message=failed.message)

        self._set_trip(trip_id, is_checkin_closed=True, status=TripStatus.DEPARTED)
        active = [
            p
            for p in self.passengers[trip_id]
            if p.booking_status
            in (BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN, BookingStatus.COMPLETED)
        ]
        checked_in = sum(1 for p in active if p.check_in_status)
        return CloseCheckinResult(
            success=True,
            manifest_id=f"manifest-{trip_id}",
            total_passengers=len(active),
            checked_in_passengers=checked_in,
            no_show_passengers=len(active) - checked_in,
        )

    async def set_booking_checked_in(self, booking_id: str, captain_id: str) -> BackendResult:
        failed = self._record(
            "set_booking_checked_in", booking_id=booking_id, captain_id=captain_id
        )
        if failed:
            return failed

        for trip_id, passengers in self.passengers.items():
            self.passengers[trip_id] = [
                p.model_copy(
                    update={"check_in_status": True, "booking_status": BookingStatus.CHECKED_IN}
                )
                if p.booking_id == booking_id
                else p
                for p in passengers
            ]
        return BackendResult(success=True)

    async def activate_trip(self, trip_id: str, captain_id: str) -> BackendResult:
        failed = self._record("activate_trip", trip_id=trip_id, captain_id=captain_id)
        if failed:
            return failed
        self._set_trip(trip_id, is_active=True)
        return BackendResult(success=True, message="Trip activated successfully")
