"""Passenger check-in aggregation over active bookings."""

import enum
from collections.abc import Iterable

from ferry_captain.schemas.actions import PassengerSummary
from ferry_captain.schemas.trip import BookingStatus, Passenger

# Bookings that count toward capacity and the manifest
ACTIVE_BOOKING_STATUSES = frozenset(
    {BookingStatus.CONFIRMED, BookingStatus.CHECKED_IN, BookingStatus.COMPLETED}
)


class PassengerTab(str, enum.Enum):
    """Passenger list filters on the trip screen."""

    ALL = "all"
    CHECKED_IN = "checked_in"
    PENDING = "pending"


def is_active(passenger: Passenger) -> bool:
    return passenger.booking_status in ACTIVE_BOOKING_STATUSES


def active_passengers(passengers: Iterable[Passenger]) -> list[Passenger]:
    return [p for p in passengers if is_active(p)]


def checked_in_passengers(passengers: Iterable[Passenger]) -> list[Passenger]:
    return [p for p in active_passengers(passengers) if p.check_in_status]


def pending_passengers(passengers: Iterable[Passenger]) -> list[Passenger]:
    return [p for p in active_passengers(passengers) if not p.check_in_status]


def summarize(passengers: Iterable[Passenger]) -> PassengerSummary:
    """Count active passengers by check-in state.

    Passengers still pending when check-in closes are the no-shows.
    """
    active = active_passengers(passengers)
    checked_in = sum(1 for p in active if p.check_in_status)
    total = len(active)
    pending = total - checked_in
    return PassengerSummary(
        total=total,
        checked_in=checked_in,
        pending=pending,
        no_show=pending,
        progress_percent=round(checked_in / total * 100, 1) if total else 0.0,
    )


def filter_passengers(
    passengers: Iterable[Passenger], tab: PassengerTab = PassengerTab.ALL
) -> list[Passenger]:
    if tab == PassengerTab.CHECKED_IN:
        return checked_in_passengers(passengers)
    if tab == PassengerTab.PENDING:
        return pending_passengers(passengers)
    return active_passengers(passengers)


def stop_passengers(
    passengers: Iterable[Passenger], stop_id: str
) -> dict[str, list[Passenger]]:
    """Active passengers boarding and leaving at one stop."""
    active = active_passengers(passengers)
    return {
        "boarding": [p for p in active if p.boarding_stop_id == stop_id],
        "dropoff": [p for p in active if p.destination_stop_id == stop_id],
    }


def bookings_to_check_in(
    passengers: Iterable[Passenger], passenger_ids: Iterable[str]
) -> list[str]:
    """
    Unique booking ids covering the selected passengers, in selection order.

    One booking may list several passengers; each booking is checked in once.
    Unknown ids, inactive bookings and passengers already checked in are
    skipped.
    """
    by_id = {p.id: p for p in active_passengers(passengers)}
    booking_ids: list[str] = []
    seen: set[str] = set()
    for passenger_id in passenger_ids:
        passenger = by_id.get(passenger_id)
        if passenger is None or passenger.check_in_status:
            continue
        if passenger.booking_id in seen:
            continue
        seen.add(passenger.booking_id)
        booking_ids.append(passenger.booking_id)
    return booking_ids


def close_checkin_notes(summary: PassengerSummary) -> str:
    return (
        f"Trip completed with {summary.checked_in}/{summary.total} "
        "passengers checked-in."
    )


def close_checkin_message(summary: PassengerSummary) -> str:
    return (
        "Check-in closed. Passenger manifest generated and operations notified.\n"
        f"Total passengers: {summary.total}\n"
        f"Checked-in: {summary.checked_in}\n"
        f"No-show: {summary.no_show}"
    )
