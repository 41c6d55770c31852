"""Versioned trip progress snapshot and the optimistic updates applied to it."""

from pydantic import BaseModel, ConfigDict, Field

from ferry_captain.domain import stops as stop_rules
from ferry_captain.schemas.trip import (
    Passenger,
    RouteStop,
    StopStatus,
    Trip,
    TripStatus,
)


class TripProgress(BaseModel):
    """
    The single local snapshot of a trip, its stops and passengers.

    Owned by the reconciliation loop. The resolver and the executor read and
    write trip state only through this object; every installed snapshot gets
    a higher ``version`` than the one it replaces.
    """

    model_config = ConfigDict(frozen=True)

    trip: Trip
    stops: tuple[RouteStop, ...] = ()
    passengers: tuple[Passenger, ...] = ()
    current_stop_id: str | None = None
    version: int = Field(default=0, ge=0)
    optimistic: bool = False

    @classmethod
    def from_fetch(
        cls,
        trip: Trip,
        stops: list[RouteStop],
        passengers: list[Passenger],
        version: int = 0,
    ) -> "TripProgress":
        """Build an authoritative snapshot from freshly fetched backend state."""
        ordered = stop_rules.sort_stops(stops)
        current = stop_rules.select_current_stop(ordered)
        if not trip.total_stops and ordered:
            trip = trip.model_copy(update={"total_stops": ordered[-1].stop_sequence})
        return cls(
            trip=trip,
            stops=tuple(ordered),
            passengers=tuple(passengers),
            current_stop_id=current.stop_id if current else None,
            version=version,
            optimistic=False,
        )

    @property
    def current_stop(self) -> RouteStop | None:
        return stop_rules.find_stop(self.stops, self.current_stop_id)

    def stop(self, stop_id: str | None) -> RouteStop | None:
        return stop_rules.find_stop(self.stops, stop_id)

    @property
    def progress_initialized(self) -> bool:
        return any(s.progress_id is not None for s in self.stops)

    def replace(self, **changes) -> "TripProgress":
        """Return an optimistic copy with a bumped version."""
        changes.setdefault("optimistic", True)
        return self.model_copy(update={**changes, "version": self.version + 1})


def _advance_pointer(trip: Trip, stop: RouteStop, status: TripStatus | None = None) -> Trip:
    # current_stop_sequence never decreases
    sequence = max(trip.current_stop_sequence or 0, stop.stop_sequence)
    update: dict = {"current_stop_sequence": sequence}
    if sequence == stop.stop_sequence:
        update["current_stop_id"] = stop.stop_id
    if status is not None:
        update["status"] = status
    return trip.model_copy(update=update)


def apply_start_boarding(progress: TripProgress, stop_id: str) -> TripProgress:
    """Mark the stop boarding and current, clear the current flag elsewhere."""
    stops = tuple(
        stop_rules.transition(s, StopStatus.BOARDING).model_copy(
            update={"is_current_stop": True}
        )
        if s.stop_id == stop_id
        else s.model_copy(update={"is_current_stop": False})
        for s in progress.stops
    )
    stop = stop_rules.find_stop(stops, stop_id)
    trip = _advance_pointer(progress.trip, stop, TripStatus.BOARDING)
    return progress.replace(trip=trip, stops=stops, current_stop_id=stop_id)


def apply_depart(
    progress: TripProgress, stop_id: str, trip_status: TripStatus
) -> TripProgress:
    """Mark the stop departed (pickup obligation met) and set the trip status."""
    stops = tuple(
        stop_rules.transition(s, StopStatus.DEPARTED) if s.stop_id == stop_id else s
        for s in progress.stops
    )
    trip = progress.trip.model_copy(update={"status": trip_status})
    return progress.replace(trip=trip, stops=stops)


def apply_arrive(
    progress: TripProgress, target_stop_id: str, trip_completed: bool = False
) -> TripProgress:
    """
    Mirror the atomic advance: the previous current stop completes and the
    target becomes the arrived current stop.
    """
    previous = progress.current_stop
    stops = []
    for s in progress.stops:
        if s.stop_id == target_stop_id:
            s = s.model_copy(
                update={"status": StopStatus.ARRIVED, "is_current_stop": True}
            )
        elif previous is not None and s.stop_id == previous.stop_id:
            s = s.model_copy(
                update={
                    "status": StopStatus.COMPLETED,
                    "is_completed": True,
                    "is_current_stop": False,
                }
            )
        else:
            s = s.model_copy(update={"is_current_stop": False})
        stops.append(s)

    target = stop_rules.find_stop(stops, target_stop_id)
    status = TripStatus.COMPLETED if trip_completed else None
    trip = _advance_pointer(progress.trip, target, status)
    return progress.replace(trip=trip, stops=tuple(stops), current_stop_id=target_stop_id)


def apply_complete_dropoff(progress: TripProgress, stop_id: str) -> TripProgress:
    stops = tuple(
        stop_rules.transition(s, StopStatus.COMPLETED) if s.stop_id == stop_id else s
        for s in progress.stops
    )
    return progress.replace(stops=stops)


def apply_trip_completed(
    progress: TripProgress, last_stop_id: str | None = None
) -> TripProgress:
    """Complete the trip, walking the last stop to completed if given."""
    stops = progress.stops
    trip = progress.trip.model_copy(update={"status": TripStatus.COMPLETED})
    if last_stop_id is not None:
        walked = []
        for s in stops:
            if s.stop_id == last_stop_id:
                if s.status == StopStatus.PENDING:
                    s = stop_rules.transition(s, StopStatus.ARRIVED)
                s = stop_rules.transition(s, StopStatus.COMPLETED)
                trip = _advance_pointer(trip, s)
            walked.append(s)
        stops = tuple(walked)
    return progress.replace(trip=trip, stops=stops)


def apply_trip_activated(progress: TripProgress) -> TripProgress:
    return progress.replace(trip=progress.trip.model_copy(update={"is_active": True}))


def apply_checkin_closed(progress: TripProgress) -> TripProgress:
    trip = progress.trip.model_copy(
        update={"is_checkin_closed": True, "status": TripStatus.DEPARTED}
    )
    return progress.replace(trip=trip)


def apply_bookings_checked_in(
    progress: TripProgress, booking_ids: set[str]
) -> TripProgress:
    passengers = tuple(
        p.model_copy(update={"check_in_status": True}) if p.booking_id in booking_ids else p
        for p in progress.passengers
    )
    return progress.replace(passengers=passengers)
