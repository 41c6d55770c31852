"""Next-action resolver for the captain trip screen.

Given the current stop, the trip and its full stop list, derive the single
action the captain should take next. The resolver is pure and read-only; it
never raises for missing or inconsistent input and returns ``None`` instead,
which hides the action button.

Two phases:

* Pickup phase (some pickup-capable stop is not completed): driven by the
  status of the current stop - start boarding, depart, then arrive at the
  next pickup-capable stop ahead.
* Dropoff phase (all pickups completed): always re-derive the first
  incomplete dropoff-capable stop in sequence order instead of advancing
  blindly from the current stop, so a stop completed by another path never
  leaves the captain stuck.

Targets are never behind the current stop.
"""

from collections.abc import Sequence

from ferry_captain.core.logging import get_logger
from ferry_captain.domain import stops as stop_rules
from ferry_captain.schemas.actions import ButtonState, CaptainAction, Emphasis
from ferry_captain.schemas.trip import RouteStop, StopStatus, Trip, TripStatus

logger = get_logger(__name__)

# Trips in these states offer no further actions
CLOSED_TRIP_STATUSES = frozenset({TripStatus.COMPLETED, TripStatus.CANCELLED})


def start_boarding_button(stop: RouteStop) -> ButtonState:
    return ButtonState(
        label=f"Start Boarding at {stop.island.name}",
        action=CaptainAction.START_BOARDING,
        emphasis=Emphasis.PRIMARY,
        target_stop_id=stop.stop_id,
        target_sequence=stop.stop_sequence,
    )


def depart_button(stop: RouteStop) -> ButtonState:
    return ButtonState(
        label=f"Depart from {stop.island.name}",
        action=CaptainAction.DEPART,
        emphasis=Emphasis.DESTRUCTIVE,
        target_stop_id=stop.stop_id,
        target_sequence=stop.stop_sequence,
    )


def arrive_button(stop: RouteStop) -> ButtonState:
    return ButtonState(
        label=f"Arrive at {stop.island.name}",
        action=CaptainAction.ARRIVE,
        emphasis=Emphasis.PRIMARY,
        target_stop_id=stop.stop_id,
        target_sequence=stop.stop_sequence,
    )


def complete_dropoff_button(stop: RouteStop) -> ButtonState:
    return ButtonState(
        label=f"Complete Drop-off at {stop.island.name}",
        action=CaptainAction.COMPLETE_DROPOFF,
        emphasis=Emphasis.PRIMARY,
        target_stop_id=stop.stop_id,
        target_sequence=stop.stop_sequence,
    )


def complete_trip_button(stop: RouteStop | None = None) -> ButtonState:
    if stop is None:
        return ButtonState(
            label="Complete Trip",
            action=CaptainAction.COMPLETE_TRIP,
            emphasis=Emphasis.DESTRUCTIVE,
        )
    return ButtonState(
        label=f"Complete Trip at {stop.island.name}",
        action=CaptainAction.COMPLETE_TRIP,
        emphasis=Emphasis.DESTRUCTIVE,
        target_stop_id=stop.stop_id,
        target_sequence=stop.stop_sequence,
    )


def resolve(
    current_stop: RouteStop | None,
    trip: Trip | None,
    route_stops: Sequence[RouteStop] | None,
) -> ButtonState | None:
    """Return the next captain action, or None when no action applies."""
    if current_stop is None or trip is None or not route_stops:
        return None
    if trip.status in CLOSED_TRIP_STATUSES:
        return None

    ordered = stop_rules.sort_stops(route_stops)

    if stop_rules.all_pickups_completed(ordered):
        return _resolve_dropoff_phase(current_stop, trip, ordered)
    return _resolve_pickup_phase(current_stop, trip, ordered)


def _resolve_pickup_phase(
    current_stop: RouteStop, trip: Trip, stops: list[RouteStop]
) -> ButtonState | None:
    if stop_rules.is_pickup_capable(current_stop):
        if current_stop.status in (StopStatus.PENDING, StopStatus.ARRIVED):
            return start_boarding_button(current_stop)
        if current_stop.status == StopStatus.BOARDING:
            return depart_button(current_stop)

    # Departed/completed here, or the current stop takes no boarding at all:
    # move on to the next pickup-capable stop ahead.
    next_pickup = stop_rules.next_incomplete_pickup(stops, current_stop.stop_sequence)
    if next_pickup is not None:
        return arrive_button(next_pickup)

    logger.warning(
        "Open pickup stops lie behind the current stop; no forward action",
        trip_id=trip.id,
        current_stop_id=current_stop.stop_id,
        current_sequence=current_stop.stop_sequence,
    )
    return None


def _resolve_dropoff_phase(
    current_stop: RouteStop, trip: Trip, stops: list[RouteStop]
) -> ButtonState | None:
    total = trip.total_stops

    if stop_rules.is_dropoff_capable(current_stop):
        if current_stop.status == StopStatus.ARRIVED:
            if stop_rules.is_last_stop(current_stop, total):
                return complete_trip_button(current_stop)
            return complete_dropoff_button(current_stop)

        if current_stop.status == StopStatus.COMPLETED:
            next_stop = stop_rules.next_incomplete_stop(stops, current_stop.stop_sequence)
            if next_stop is None:
                return complete_trip_button()
            if stop_rules.is_last_stop(next_stop, total):
                return complete_trip_button(next_stop)
            return arrive_button(next_stop)

    target = stop_rules.first_incomplete_dropoff(stops, current_stop.stop_sequence)
    if target is None:
        return complete_trip_button()
    if stop_rules.is_last_stop(target, total):
        return complete_trip_button(target)
    return arrive_button(target)
