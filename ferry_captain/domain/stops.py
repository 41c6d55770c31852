"""Stop state machine and stop-list queries for multi-stop trips."""

from collections.abc import Iterable, Sequence

from ferry_captain.core.exceptions import InvalidStopTransitionError
from ferry_captain.schemas.trip import RouteStop, StopStatus, StopType

PICKUP_TYPES = frozenset({StopType.PICKUP, StopType.BOTH})
DROPOFF_TYPES = frozenset({StopType.DROPOFF, StopType.BOTH})

# Statuses in which a stop is the captain's active point of operation
ACTIVE_STATUSES = frozenset({StopStatus.ARRIVED, StopStatus.BOARDING})

# Statuses after which the stop's obligations are satisfied
DONE_STATUSES = frozenset({StopStatus.DEPARTED, StopStatus.COMPLETED})

ALLOWED_TRANSITIONS: dict[StopStatus, frozenset[StopStatus]] = {
    StopStatus.PENDING: frozenset({StopStatus.ARRIVED, StopStatus.BOARDING}),
    StopStatus.ARRIVED: frozenset({StopStatus.BOARDING, StopStatus.COMPLETED}),
    StopStatus.BOARDING: frozenset({StopStatus.DEPARTED}),
    StopStatus.DEPARTED: frozenset({StopStatus.COMPLETED}),
    StopStatus.COMPLETED: frozenset(),
}


def is_pickup_capable(stop: RouteStop) -> bool:
    return stop.stop_type in PICKUP_TYPES


def is_dropoff_capable(stop: RouteStop) -> bool:
    return stop.stop_type in DROPOFF_TYPES


def can_transition(current: StopStatus, target: StopStatus) -> bool:
    """Whether a status write is legal. Re-writing the same status is a no-op."""
    return current == target or target in ALLOWED_TRANSITIONS[current]


def has_reached(current: StopStatus, target: StopStatus) -> bool:
    """Whether a stop in ``current`` is already at ``target`` or past it."""
    seen = {target}
    frontier = [target]
    while frontier:
        for following in ALLOWED_TRANSITIONS[frontier.pop()]:
            if following not in seen:
                seen.add(following)
                frontier.append(following)
    return current in seen


def derive_is_completed(status: StopStatus) -> bool:
    return status in DONE_STATUSES


def transition(stop: RouteStop, target: StopStatus) -> RouteStop:
    """
    Return a copy of the stop moved to ``target``.

    ``is_completed`` follows the status: it becomes true on departed (pickup
    obligation met) and on completed (dropoff obligation met).

    Raises:
        InvalidStopTransitionError: If the state machine forbids the move.
    """
    if not can_transition(stop.status, target):
        raise InvalidStopTransitionError(stop.stop_id, stop.status.value, target.value)
    if stop.status == target:
        return stop
    return stop.model_copy(
        update={
            "status": target,
            "is_completed": stop.is_completed or derive_is_completed(target),
        }
    )


def sort_stops(stops: Iterable[RouteStop]) -> list[RouteStop]:
    return sorted(stops, key=lambda s: s.stop_sequence)


def find_stop(stops: Iterable[RouteStop], stop_id: str | None) -> RouteStop | None:
    if stop_id is None:
        return None
    return next((s for s in stops if s.stop_id == stop_id), None)


def all_pickups_completed(stops: Iterable[RouteStop]) -> bool:
    """True when every pickup-capable stop has completed (vacuously true)."""
    return all(s.is_completed for s in stops if is_pickup_capable(s))


def next_incomplete_pickup(
    stops: Sequence[RouteStop], after_sequence: int
) -> RouteStop | None:
    """First incomplete pickup-capable stop with a sequence after ``after_sequence``."""
    for stop in sort_stops(stops):
        if (
            stop.stop_sequence > after_sequence
            and is_pickup_capable(stop)
            and not stop.is_completed
        ):
            return stop
    return None


def remaining_pickups_after(
    stops: Sequence[RouteStop], stop: RouteStop
) -> list[RouteStop]:
    return [
        s
        for s in sort_stops(stops)
        if s.stop_sequence > stop.stop_sequence
        and is_pickup_capable(s)
        and not s.is_completed
    ]


def first_incomplete_dropoff(
    stops: Sequence[RouteStop], from_sequence: int = 1
) -> RouteStop | None:
    """
    First incomplete dropoff-capable stop at or after ``from_sequence``.

    Sequence order is authoritative: the lowest matching sequence wins,
    never the stop nearest to the current position.
    """
    for stop in sort_stops(stops):
        if (
            stop.stop_sequence >= from_sequence
            and is_dropoff_capable(stop)
            and not stop.is_completed
        ):
            return stop
    return None


def next_incomplete_stop(
    stops: Sequence[RouteStop], after_sequence: int
) -> RouteStop | None:
    for stop in sort_stops(stops):
        if stop.stop_sequence > after_sequence and not stop.is_completed:
            return stop
    return None


def last_stop(stops: Sequence[RouteStop], total_stops: int) -> RouteStop | None:
    """The stop whose sequence equals the trip's total stop count."""
    return next((s for s in stops if s.stop_sequence == total_stops), None)


def is_last_stop(stop: RouteStop, total_stops: int) -> bool:
    return stop.stop_sequence == total_stops


def select_current_stop(stops: Sequence[RouteStop]) -> RouteStop | None:
    """
    Pick the stop the captain is operating at from a freshly fetched list.

    Order: a stop that is arrived/boarding, then the stop flagged current,
    then the first incomplete dropoff once all pickups are done (or the first
    incomplete stop while pickups remain), and finally the first stop.
    """
    ordered = sort_stops(stops)
    if not ordered:
        return None

    active = next((s for s in ordered if s.status in ACTIVE_STATUSES), None)
    if active is not None:
        return active

    flagged = next((s for s in ordered if s.is_current_stop), None)
    if flagged is not None:
        return flagged

    if all_pickups_completed(ordered):
        candidate = first_incomplete_dropoff(ordered)
    else:
        candidate = next((s for s in ordered if not s.is_completed), None)

    return candidate or ordered[0]


def has_contiguous_sequences(stops: Sequence[RouteStop]) -> bool:
    """Check that sequences form exactly 1..len(stops)."""
    return sorted(s.stop_sequence for s in stops) == list(range(1, len(stops) + 1))
