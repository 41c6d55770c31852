"""Transition executor: runs a resolved captain action against the backend."""

import asyncio

from pydantic import BaseModel

from ferry_captain.core.exceptions import BackendError, InvalidStopTransitionError
from ferry_captain.core.logging import get_logger, log_with_context
from ferry_captain.core.metrics import manifest_sends_total
from ferry_captain.domain import progress as updates
from ferry_captain.domain import stops as stop_rules
from ferry_captain.domain.progress import TripProgress
from ferry_captain.schemas.actions import BackendResult, ButtonState, CaptainAction
from ferry_captain.schemas.trip import RouteStop, StopStatus, TripStatus
from ferry_captain.storage.interfaces import TripBackendIface

logger = get_logger(__name__)


class ExecutionResult(BaseModel):
    """Outcome of one executed transition.

    ``progress`` is the optimistic snapshot to install, or ``None`` when the
    action changes nothing locally. ``resync`` means the backend accepted the
    change but the local snapshot could not mirror it.
    """

    success: bool
    message: str | None = None
    progress: TripProgress | None = None
    trip_completed: bool = False
    resync: bool = False


def _failed(message: str) -> ExecutionResult:
    return ExecutionResult(success=False, message=message)


class ManifestDispatcher:
    """Sends passenger manifests to operations, awaited or in the background."""

    def __init__(self, backend: TripBackendIface, enabled: bool = True) -> None:
        self.backend = backend
        self.enabled = enabled
        self._tasks: set[asyncio.Task] = set()

    async def send(self, trip_id: str, stop_id: str) -> BackendResult:
        if not self.enabled:
            manifest_sends_total.labels(result="disabled").inc()
            return BackendResult(success=False, message="Manifest delivery is disabled")

        try:
            result = await self.backend.send_manifest(trip_id, stop_id)
        except BackendError as e:
            manifest_sends_total.labels(result="error").inc()
            logger.warning("Manifest send failed", trip_id=trip_id, stop_id=stop_id, error=str(e))
            return BackendResult(success=False, message=e.message)

        manifest_sends_total.labels(result="success" if result.success else "failure").inc()
        logger.info(
            "Manifest send finished",
            trip_id=trip_id,
            stop_id=stop_id,
            success=result.success,
        )
        return result

    def dispatch(self, trip_id: str, stop_id: str) -> asyncio.Task | None:
        """Fire-and-forget send; failures are logged and never reach the caller."""
        if not self.enabled:
            return None
        task = asyncio.create_task(self.send(trip_id, stop_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def aclose(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()


class TransitionExecutor:
    """
    Executes the action chosen by the resolver.

    Each action checks its preconditions locally, performs the remote
    mutations, and on success returns the optimistic snapshot mirroring what
    the backend did. Backend failures suppress the optimistic update and come
    back as a failed result carrying the message.
    """

    def __init__(self, backend: TripBackendIface, manifests: ManifestDispatcher) -> None:
        self.backend = backend
        self.manifests = manifests
        self._handlers = {
            CaptainAction.START_BOARDING: self._start_boarding,
            CaptainAction.DEPART: self._depart,
            CaptainAction.ARRIVE: self._arrive,
            CaptainAction.COMPLETE_DROPOFF: self._complete_dropoff,
            CaptainAction.COMPLETE_TRIP: self._complete_trip,
            CaptainAction.SEND_MANIFEST: self._send_manifest,
        }

    async def execute(
        self, progress: TripProgress, button: ButtonState, captain_id: str | None
    ) -> ExecutionResult:
        if not captain_id:
            return _failed("Captain ID not found")

        handler = self._handlers[button.action]
        log = log_with_context(logger, trip_id=progress.trip.id, action=button.action.value)
        try:
            return await handler(progress, button, captain_id)
        except BackendError as e:
            log.warning(
                "Transition failed at backend", status_code=e.status_code, error=e.message
            )
            return _failed(e.message)
        except InvalidStopTransitionError as e:
            # The backend accepted the change but the local stop disagrees
            log.warning("Local snapshot out of date after transition", error=str(e))
            return ExecutionResult(success=True, resync=True)

    def _target(self, progress: TripProgress, button: ButtonState) -> RouteStop | None:
        return progress.stop(button.target_stop_id) or progress.current_stop

    async def _ensure_progress(self, progress: TripProgress, captain_id: str) -> BackendResult:
        if progress.progress_initialized:
            return BackendResult(success=True)
        logger.info("Initializing stop progress", trip_id=progress.trip.id)
        return await self.backend.initialize_stop_progress(progress.trip.id, captain_id)

    async def _start_boarding(
        self, progress: TripProgress, button: ButtonState, captain_id: str
    ) -> ExecutionResult:
        stop = self._target(progress, button)
        if stop is None:
            return _failed("Stop not found")
        if stop.status == StopStatus.BOARDING:
            return ExecutionResult(success=True, message="Boarding already started")
        if not stop_rules.can_transition(stop.status, StopStatus.BOARDING):
            return _failed(f"Cannot start boarding at a {stop.status.value} stop")

        init = await self._ensure_progress(progress, captain_id)
        if not init.success:
            return _failed(init.message or "Failed to initialize stop progress")

        trip_id = progress.trip.id
        result = await self.backend.update_stop_status(
            trip_id,
            stop.stop_id,
            StopStatus.BOARDING,
            captain_id,
            expected_statuses={StopStatus.PENDING, StopStatus.ARRIVED, StopStatus.BOARDING},
        )
        if not result.success:
            return _failed(result.message or "Failed to start boarding")

        sequence = max(progress.trip.current_stop_sequence or 0, stop.stop_sequence)
        trip_result = await self.backend.update_trip_status(
            trip_id,
            TripStatus.BOARDING,
            current_stop_sequence=sequence,
            current_stop_id=stop.stop_id,
        )
        if not trip_result.success:
            return _failed(trip_result.message or "Failed to update trip status")

        return ExecutionResult(
            success=True,
            message=f"Boarding started at {stop.island.name}",
            progress=updates.apply_start_boarding(progress, stop.stop_id),
        )

    async def _depart(
        self, progress: TripProgress, button: ButtonState, captain_id: str
    ) -> ExecutionResult:
        stop = self._target(progress, button)
        if stop is None:
            return _failed("Stop not found")
        if stop.status == StopStatus.DEPARTED:
            return ExecutionResult(success=True, message="Already departed")
        if stop.status != StopStatus.BOARDING:
            return _failed("Start boarding before departing")

        trip_id = progress.trip.id
        remaining = stop_rules.remaining_pickups_after(progress.stops, stop)

        result = await self.backend.update_stop_status(
            trip_id,
            stop.stop_id,
            StopStatus.DEPARTED,
            captain_id,
            expected_statuses={StopStatus.BOARDING, StopStatus.DEPARTED},
        )
        if not result.success:
            return _failed(result.message or "Failed to depart")

        trip_status = TripStatus.BOARDING if remaining else TripStatus.DEPARTED
        trip_result = await self.backend.update_trip_status(trip_id, trip_status)
        if not trip_result.success:
            return _failed(trip_result.message or "Failed to update trip status")

        if not remaining:
            # Last pickup: operations get the manifest
            self.manifests.dispatch(trip_id, stop.stop_id)

        return ExecutionResult(
            success=True,
            message=f"Departed from {stop.island.name}",
            progress=updates.apply_depart(progress, stop.stop_id, trip_status),
        )

    async def _arrive(
        self, progress: TripProgress, button: ButtonState, captain_id: str
    ) -> ExecutionResult:
        target = progress.stop(button.target_stop_id)
        if target is None:
            return _failed("Next stop not found")
        current = progress.current_stop
        if current is not None and target.stop_sequence < current.stop_sequence:
            return _failed("Cannot move back to an earlier stop")

        result = await self.backend.advance_to_next_stop(
            progress.trip.id, captain_id, target_stop_id=target.stop_id
        )
        if not result.success:
            return _failed(result.message or "Failed to move to next stop")

        return ExecutionResult(
            success=True,
            message=result.message or f"Arrived at {target.island.name}",
            progress=updates.apply_arrive(progress, target.stop_id, result.is_completed),
            trip_completed=result.is_completed,
        )

    async def _complete_dropoff(
        self, progress: TripProgress, button: ButtonState, captain_id: str
    ) -> ExecutionResult:
        stop = self._target(progress, button)
        if stop is None:
            return _failed("Stop not found")
        if not stop_rules.is_dropoff_capable(stop):
            return _failed(f"{stop.island.name} is not a drop-off stop")
        if stop.status == StopStatus.COMPLETED:
            return ExecutionResult(success=True, message="Drop-off already completed")
        if stop.status != StopStatus.ARRIVED:
            return _failed("Arrive at the stop before completing drop-off")

        result = await self.backend.update_stop_status(
            progress.trip.id,
            stop.stop_id,
            StopStatus.COMPLETED,
            captain_id,
            expected_statuses={StopStatus.ARRIVED, StopStatus.COMPLETED},
        )
        if not result.success:
            return _failed(result.message or "Failed to complete drop-off")

        return ExecutionResult(
            success=True,
            message=f"Drop-off completed at {stop.island.name}",
            progress=updates.apply_complete_dropoff(progress, stop.stop_id),
        )

    async def _complete_trip(
        self, progress: TripProgress, button: ButtonState, captain_id: str
    ) -> ExecutionResult:
        trip_id = progress.trip.id
        last = stop_rules.last_stop(progress.stops, progress.trip.total_stops)
        if last is None:
            return _failed("Last stop not found")
        if last.status == StopStatus.BOARDING:
            return _failed("Depart from the last stop before completing the trip")

        if last.status == StopStatus.PENDING:
            result = await self.backend.update_stop_status(
                trip_id,
                last.stop_id,
                StopStatus.ARRIVED,
                captain_id,
                expected_statuses={
                    StopStatus.PENDING,
                    StopStatus.ARRIVED,
                    StopStatus.DEPARTED,
                    StopStatus.COMPLETED,
                },
            )
            if not result.success:
                return _failed(result.message or "Failed to arrive at the last stop")

        if last.status != StopStatus.COMPLETED:
            result = await self.backend.update_stop_status(
                trip_id,
                last.stop_id,
                StopStatus.COMPLETED,
                captain_id,
                expected_statuses={
                    StopStatus.ARRIVED,
                    StopStatus.DEPARTED,
                    StopStatus.COMPLETED,
                },
            )
            if not result.success:
                return _failed(result.message or "Failed to complete the last stop")

        trip_result = await self.backend.update_trip_status(
            trip_id,
            TripStatus.COMPLETED,
            current_stop_sequence=max(
                progress.trip.current_stop_sequence or 0, last.stop_sequence
            ),
            current_stop_id=last.stop_id,
        )
        if not trip_result.success:
            return _failed(trip_result.message or "Failed to complete trip")

        return ExecutionResult(
            success=True,
            message="Trip completed",
            progress=updates.apply_trip_completed(progress, last.stop_id),
            trip_completed=True,
        )

    async def _send_manifest(
        self, progress: TripProgress, button: ButtonState, captain_id: str
    ) -> ExecutionResult:
        stop = self._target(progress, button)
        if stop is None:
            return _failed("Stop not found")
        if self.manifests.dispatch(progress.trip.id, stop.stop_id) is None:
            return _failed("Manifest delivery is disabled")
        return ExecutionResult(success=True, message="Manifest is being sent to operations")
