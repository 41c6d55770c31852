"""Per-trip in-flight guard for transitions."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from ferry_captain.core.exceptions import TransitionInFlightError

IN_FLIGHT_MESSAGE = "Another action is still in progress for this trip"


class TripInFlightGuard:
    """
    Single-slot lock keyed by trip id.

    A second transition for a trip that already has one outstanding is
    rejected, never queued, so rapid repeated taps cannot double-submit.
    """

    def __init__(self) -> None:
        self._busy: set[str] = set()

    def is_busy(self, trip_id: str) -> bool:
        return trip_id in self._busy

    @asynccontextmanager
    async def hold(self, trip_id: str) -> AsyncIterator[None]:
        """Hold the slot for ``trip_id`` or raise ``TransitionInFlightError``."""
        if trip_id in self._busy:
            raise TransitionInFlightError(trip_id)
        self._busy.add(trip_id)
        try:
            yield
        finally:
            self._busy.discard(trip_id)
