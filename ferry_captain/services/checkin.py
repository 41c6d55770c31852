"""Passenger check-in service: bulk check-in and closing check-in."""

from collections.abc import Iterable
from datetime import datetime, timezone

from ferry_captain.core.exceptions import BackendError, TransitionInFlightError
from ferry_captain.core.logging import get_logger
from ferry_captain.core.metrics import booking_checkins_total
from ferry_captain.domain import passengers as roster
from ferry_captain.domain import progress as updates
from ferry_captain.domain.passengers import PassengerTab
from ferry_captain.domain.progress import TripProgress
from ferry_captain.schemas.actions import (
    BulkCheckInResult,
    CloseCheckinOutcome,
    PassengerSummary,
)
from ferry_captain.schemas.trip import Passenger
from ferry_captain.services.inflight import IN_FLIGHT_MESSAGE, TripInFlightGuard
from ferry_captain.services.reconciliation import ReconciliationLoop, TripProgressStore
from ferry_captain.storage.interfaces import TripBackendIface

logger = get_logger(__name__)


class CheckInService:
    """
    Check-in operations over a trip's active bookings.

    Writes share the per-trip in-flight guard with captain transitions, so a
    repeated tap is rejected instead of submitted twice.
    """

    def __init__(
        self,
        backend: TripBackendIface,
        store: TripProgressStore,
        reconciler: ReconciliationLoop,
        guard: TripInFlightGuard,
    ) -> None:
        self.backend = backend
        self.store = store
        self.reconciler = reconciler
        self.guard = guard

    async def passengers(
        self, trip_id: str, tab: PassengerTab = PassengerTab.ALL
    ) -> list[Passenger]:
        progress = await self.reconciler.load(trip_id)
        return roster.filter_passengers(progress.passengers, tab)

    async def summary(self, trip_id: str) -> PassengerSummary:
        progress = await self.reconciler.load(trip_id)
        return roster.summarize(progress.passengers)

    async def stop_passengers(self, trip_id: str, stop_id: str) -> dict[str, list[Passenger]]:
        progress = await self.reconciler.load(trip_id)
        return roster.stop_passengers(progress.passengers, stop_id)

    async def bulk_check_in(
        self, trip_id: str, passenger_ids: Iterable[str], captain_id: str | None
    ) -> BulkCheckInResult:
        """
        Check in the bookings behind a selection of passengers.

        Each booking is written once, one at a time. A failed booking is
        counted and the rest of the batch carries on.
        """
        selected = list(passenger_ids)
        if not selected:
            return BulkCheckInResult(success=False, message="No passengers selected")
        if not captain_id:
            return BulkCheckInResult(success=False, message="Captain ID not found")

        try:
            async with self.guard.hold(trip_id):
                try:
                    progress = await self.reconciler.load(trip_id)
                except BackendError as e:
                    logger.warning("Could not load trip for check-in", trip_id=trip_id, error=str(e))
                    return BulkCheckInResult(success=False, message=e.message)

                booking_ids = roster.bookings_to_check_in(progress.passengers, selected)
                if not booking_ids:
                    return BulkCheckInResult(
                        success=True, message="Selected passengers are already checked in."
                    )
                return await self._check_in_bookings(progress, booking_ids, captain_id)
        except TransitionInFlightError:
            logger.info("Rejected concurrent check-in", trip_id=trip_id)
            return BulkCheckInResult(success=False, message=IN_FLIGHT_MESSAGE)

    async def complete_stop_boarding(
        self, trip_id: str, stop_id: str, captain_id: str | None
    ) -> BulkCheckInResult:
        """Check in everyone still pending who boards at ``stop_id``."""
        try:
            boarding = (await self.stop_passengers(trip_id, stop_id))["boarding"]
        except BackendError as e:
            return BulkCheckInResult(success=False, message=e.message)

        pending = [p.id for p in boarding if not p.check_in_status]
        if not pending:
            return BulkCheckInResult(
                success=True, message="All passengers at this stop are checked in."
            )
        return await self.bulk_check_in(trip_id, pending, captain_id)

    async def check_in_passenger(
        self, trip_id: str, passenger_id: str, captain_id: str | None
    ) -> BulkCheckInResult:
        try:
            progress = await self.reconciler.load(trip_id)
        except BackendError as e:
            return BulkCheckInResult(success=False, message=e.message)

        passenger = next((p for p in progress.passengers if p.id == passenger_id), None)
        if passenger is None:
            return BulkCheckInResult(success=False, message="Passenger not found")
        if not roster.is_active(passenger):
            return BulkCheckInResult(
                success=False,
                message=f"Booking is {passenger.booking_status.value} and cannot be checked in",
            )
        if passenger.check_in_status:
            return BulkCheckInResult(success=True, message="Passenger is already checked in.")
        return await self.bulk_check_in(trip_id, [passenger_id], captain_id)

    async def _check_in_bookings(
        self, progress: TripProgress, booking_ids: list[str], captain_id: str
    ) -> BulkCheckInResult:
        trip_id = progress.trip.id
        succeeded: list[str] = []
        failed: list[str] = []

        for booking_id in booking_ids:
            try:
                result = await self.backend.set_booking_checked_in(booking_id, captain_id)
                ok = result.success
            except BackendError as e:
                logger.warning(
                    "Booking check-in failed",
                    trip_id=trip_id,
                    booking_id=booking_id,
                    error=str(e),
                )
                ok = False

            booking_checkins_total.labels(result="success" if ok else "failure").inc()
            (succeeded if ok else failed).append(booking_id)

        if succeeded:
            current = self.store.get(trip_id) or progress
            self.store.install(updates.apply_bookings_checked_in(current, set(succeeded)))
        self.reconciler.schedule(trip_id)

        if failed:
            message = f"Checked in {len(succeeded)} bookings. {len(failed)} failed."
        else:
            message = f"Successfully checked in {len(succeeded)} bookings."

        logger.info(
            "Bulk check-in finished",
            trip_id=trip_id,
            success_count=len(succeeded),
            error_count=len(failed),
        )
        return BulkCheckInResult(
            success=not failed,
            success_count=len(succeeded),
            error_count=len(failed),
            booking_ids=succeeded,
            failed_booking_ids=failed,
            message=message,
        )

    async def close_check_in(
        self,
        trip_id: str,
        captain_id: str | None,
        notes: str | None = None,
        weather_conditions: str | None = None,
        delay_reason: str | None = None,
    ) -> CloseCheckinOutcome:
        """Close check-in, generate the manifest and mark the trip departed."""
        if not captain_id:
            return CloseCheckinOutcome(success=False, message="Captain ID not found")
        try:
            async with self.guard.hold(trip_id):
                return await self._close_check_in(
                    trip_id, notes, weather_conditions, delay_reason
                )
        except TransitionInFlightError:
            logger.info("Rejected concurrent close check-in", trip_id=trip_id)
            return CloseCheckinOutcome(success=False, message=IN_FLIGHT_MESSAGE)

    async def _close_check_in(
        self,
        trip_id: str,
        notes: str | None,
        weather_conditions: str | None,
        delay_reason: str | None,
    ) -> CloseCheckinOutcome:
        try:
            progress = await self.reconciler.load(trip_id)
        except BackendError as e:
            return CloseCheckinOutcome(success=False, message=e.message)

        if progress.trip.is_checkin_closed:
            return CloseCheckinOutcome(
                success=False,
                message="Check-in is already closed for this trip",
                trip=progress.trip,
            )

        summary = roster.summarize(progress.passengers)
        try:
            result = await self.backend.close_checkin(
                trip_id,
                notes=notes or roster.close_checkin_notes(summary),
                weather_conditions=weather_conditions,
                delay_reason=delay_reason,
                actual_departure_time=datetime.now(timezone.utc).isoformat(),
            )
        except BackendError as e:
            logger.warning("Close check-in failed", trip_id=trip_id, error=str(e))
            self.reconciler.schedule(trip_id)
            return CloseCheckinOutcome(success=False, message=e.message)

        if not result.success:
            return CloseCheckinOutcome(
                success=False, message=result.message or "Failed to close check-in"
            )

        if result.total_passengers is not None:
            checked_in = result.checked_in_passengers or 0
            summary = PassengerSummary(
                total=result.total_passengers,
                checked_in=checked_in,
                pending=result.total_passengers - checked_in,
                no_show=result.no_show_passengers or 0,
                progress_percent=summary.progress_percent,
            )

        current = self.store.get(trip_id) or progress
        installed = self.store.install(updates.apply_checkin_closed(current))
        self.reconciler.schedule(trip_id)

        logger.info(
            "Check-in closed",
            trip_id=trip_id,
            manifest_id=result.manifest_id,
            total=summary.total,
            checked_in=summary.checked_in,
        )
        return CloseCheckinOutcome(
            success=True,
            message=roster.close_checkin_message(summary),
            trip=installed.trip,
            summary=summary,
        )
