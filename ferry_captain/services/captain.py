"""Captain trip service: the action handler boundary for the trip screen."""

from ferry_captain.core.exceptions import BackendError, TransitionInFlightError
from ferry_captain.core.logging import get_logger
from ferry_captain.core.metrics import trip_transitions_total
from ferry_captain.domain import progress as updates
from ferry_captain.domain import resolver
from ferry_captain.domain.progress import TripProgress
from ferry_captain.schemas.actions import (
    ButtonState,
    CaptainAction,
    TransitionOutcome,
)
from ferry_captain.schemas.trip import TripStatus
from ferry_captain.services.inflight import IN_FLIGHT_MESSAGE, TripInFlightGuard
from ferry_captain.services.reconciliation import ReconciliationLoop, TripProgressStore
from ferry_captain.services.transitions import ManifestDispatcher, TransitionExecutor
from ferry_captain.storage.interfaces import TripBackendIface

logger = get_logger(__name__)


def button_state(progress: TripProgress) -> ButtonState | None:
    return resolver.resolve(progress.current_stop, progress.trip, progress.stops)


class CaptainTripService:
    """
    Resolve, execute, apply and reconcile captain actions.

    Nothing raised below this boundary reaches the caller: every action ends
    in a ``TransitionOutcome`` whose message the screen can show.
    """

    def __init__(
        self,
        backend: TripBackendIface,
        store: TripProgressStore,
        reconciler: ReconciliationLoop,
        executor: TransitionExecutor,
        guard: TripInFlightGuard,
    ) -> None:
        self.backend = backend
        self.store = store
        self.reconciler = reconciler
        self.executor = executor
        self.guard = guard

    @property
    def manifests(self) -> ManifestDispatcher:
        return self.executor.manifests

    async def get_progress(self, trip_id: str) -> TripProgress:
        """Local snapshot for the trip. Raises ``BackendError`` on first fetch failure."""
        return await self.reconciler.load(trip_id)

    async def next_action(self, trip_id: str) -> ButtonState | None:
        return button_state(await self.get_progress(trip_id))

    async def refresh(self, trip_id: str) -> TripProgress:
        """Pull-to-refresh. Unlike background reconciliation, failures propagate."""
        return await self.reconciler.reconcile(trip_id)

    async def perform_next_action(
        self,
        trip_id: str,
        captain_id: str | None,
        expected_action: CaptainAction | None = None,
    ) -> TransitionOutcome:
        """
        Execute whatever the resolver says the captain should do next.

        ``expected_action`` is the action the screen showed; if the trip has
        moved on since, nothing is executed and the current action is returned
        instead.
        """
        resync = False
        try:
            async with self.guard.hold(trip_id):
                outcome, resync = await self._perform(trip_id, captain_id, expected_action)
        except TransitionInFlightError:
            trip_transitions_total.labels(
                action=expected_action.value if expected_action else "unknown",
                result="rejected",
            ).inc()
            logger.info("Rejected concurrent transition", trip_id=trip_id)
            return TransitionOutcome(
                success=False, action=expected_action, message=IN_FLIGHT_MESSAGE
            )

        if resync:
            outcome = await self._resync(trip_id, outcome)
        return outcome

    async def _perform(
        self,
        trip_id: str,
        captain_id: str | None,
        expected_action: CaptainAction | None,
    ) -> tuple[TransitionOutcome, bool]:
        try:
            progress = await self.get_progress(trip_id)
        except BackendError as e:
            logger.warning("Could not load trip progress", trip_id=trip_id, error=str(e))
            return TransitionOutcome(success=False, message=e.message), False

        button = button_state(progress)
        if button is None:
            return (
                TransitionOutcome(
                    success=False,
                    action=expected_action,
                    message="No action is available for this trip",
                    version=progress.version,
                ),
                False,
            )
        if expected_action is not None and button.action != expected_action:
            return (
                TransitionOutcome(
                    success=False,
                    action=expected_action,
                    message=f"Trip has moved on, next action is: {button.label}",
                    next_action=button,
                    version=progress.version,
                ),
                False,
            )

        logger.info(
            "Executing captain action",
            trip_id=trip_id,
            action=button.action.value,
            stop_id=button.target_stop_id,
        )
        result = await self.executor.execute(progress, button, captain_id)
        action = button.action.value

        if not result.success:
            trip_transitions_total.labels(action=action, result="failure").inc()
            # A partly applied action leaves the backend ahead of the snapshot
            self.reconciler.schedule(trip_id)
            return (
                TransitionOutcome(
                    success=False,
                    action=button.action,
                    message=result.message,
                    next_action=button,
                    version=progress.version,
                ),
                False,
            )

        if result.resync:
            trip_transitions_total.labels(action=action, result="resync").inc()
            return (
                TransitionOutcome(success=True, action=button.action, message=result.message),
                True,
            )

        installed = progress
        if result.progress is not None:
            installed = self.store.install(result.progress)
        self.reconciler.schedule(trip_id)

        trip_transitions_total.labels(action=action, result="success").inc()
        next_button = None if result.trip_completed else button_state(installed)
        return (
            TransitionOutcome(
                success=True,
                action=button.action,
                message=result.message,
                trip_completed=result.trip_completed,
                next_action=next_button,
                version=installed.version,
            ),
            False,
        )

    async def _resync(self, trip_id: str, outcome: TransitionOutcome) -> TransitionOutcome:
        try:
            fresh = await self.reconciler.reconcile(trip_id)
        except BackendError as e:
            logger.warning("Immediate reconciliation failed", trip_id=trip_id, error=str(e))
            self.reconciler.schedule(trip_id)
            return outcome

        completed = fresh.trip.status == TripStatus.COMPLETED
        return outcome.model_copy(
            update={
                "trip_completed": completed,
                "next_action": None if completed else button_state(fresh),
                "version": fresh.version,
            }
        )

    async def send_manifest(
        self, trip_id: str, captain_id: str | None, stop_id: str | None = None
    ) -> TransitionOutcome:
        """Send the passenger manifest for a stop (the current one by default)."""
        action = CaptainAction.SEND_MANIFEST
        if not captain_id:
            return TransitionOutcome(success=False, action=action, message="Captain ID not found")
        try:
            progress = await self.get_progress(trip_id)
        except BackendError as e:
            return TransitionOutcome(success=False, action=action, message=e.message)

        stop = progress.stop(stop_id) if stop_id else progress.current_stop
        if stop is None:
            return TransitionOutcome(success=False, action=action, message="Stop not found")

        result = await self.manifests.send(trip_id, stop.stop_id)
        trip_transitions_total.labels(
            action=action.value, result="success" if result.success else "failure"
        ).inc()
        return TransitionOutcome(
            success=result.success,
            action=action,
            message=result.message
            or ("Manifest sent to operations" if result.success else "Failed to send manifest"),
            version=progress.version,
        )

    async def activate_trip(self, trip_id: str, captain_id: str | None) -> TransitionOutcome:
        """Enable check-in and operations for a trip."""
        if not captain_id:
            return TransitionOutcome(success=False, message="Captain ID not found")
        try:
            async with self.guard.hold(trip_id):
                try:
                    result = await self.backend.activate_trip(trip_id, captain_id)
                except BackendError as e:
                    logger.warning("Trip activation failed", trip_id=trip_id, error=str(e))
                    return TransitionOutcome(success=False, message=e.message)

                if not result.success:
                    return TransitionOutcome(
                        success=False, message=result.message or "Failed to activate trip"
                    )

                version = None
                progress = self.store.get(trip_id)
                if progress is not None:
                    version = self.store.install(updates.apply_trip_activated(progress)).version
                self.reconciler.schedule(trip_id)
        except TransitionInFlightError:
            return TransitionOutcome(success=False, message=IN_FLIGHT_MESSAGE)

        logger.info("Trip activated", trip_id=trip_id, captain_id=captain_id)
        return TransitionOutcome(
            success=True,
            message=result.message or "Trip activated",
            version=version,
        )
