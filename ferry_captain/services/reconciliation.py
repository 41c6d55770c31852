"""Reconciliation loop: authoritative re-fetch of trip progress."""

import asyncio

from ferry_captain.core.exceptions import BackendError
from ferry_captain.core.logging import get_logger
from ferry_captain.core.metrics import trip_reconciliations_total
from ferry_captain.domain.progress import TripProgress
from ferry_captain.services.inflight import TripInFlightGuard
from ferry_captain.storage.interfaces import TripBackendIface

logger = get_logger(__name__)


class TripProgressStore:
    """Holds the one local ``TripProgress`` per trip."""

    def __init__(self) -> None:
        self._snapshots: dict[str, TripProgress] = {}

    def get(self, trip_id: str) -> TripProgress | None:
        return self._snapshots.get(trip_id)

    def version(self, trip_id: str) -> int | None:
        snapshot = self._snapshots.get(trip_id)
        return snapshot.version if snapshot else None

    def install(self, progress: TripProgress) -> TripProgress:
        """Store a snapshot, keeping versions strictly increasing per trip."""
        previous = self._snapshots.get(progress.trip.id)
        if previous is not None and progress.version <= previous.version:
            progress = progress.model_copy(update={"version": previous.version + 1})
        self._snapshots[progress.trip.id] = progress
        return progress

    def discard(self, trip_id: str) -> None:
        self._snapshots.pop(trip_id, None)


class ReconciliationLoop:
    """
    Re-fetches trip, stops and passengers and replaces local optimistic state.

    Reconciliation is idempotent and may run redundantly. A fetched snapshot
    is discarded if a transition for the trip is in flight, or the local
    snapshot changed while the fetch was running; the transition that caused
    the change schedules its own reconciliation.
    """

    def __init__(
        self,
        backend: TripBackendIface,
        store: TripProgressStore,
        guard: TripInFlightGuard,
        delay_sec: float = 1.0,
    ) -> None:
        self.backend = backend
        self.store = store
        self.guard = guard
        self.delay_sec = delay_sec
        self._pending: dict[str, asyncio.Task] = {}

    async def fetch(self, trip_id: str) -> TripProgress:
        """Fetch authoritative state. Raises ``BackendError`` on failure."""
        trip, stops, passengers = await asyncio.gather(
            self.backend.fetch_trip(trip_id),
            self.backend.fetch_trip_stops(trip_id),
            self.backend.fetch_trip_passengers(trip_id),
        )
        return TripProgress.from_fetch(trip, stops, passengers)

    async def load(self, trip_id: str) -> TripProgress:
        """Return the local snapshot, fetching it on first use."""
        snapshot = self.store.get(trip_id)
        if snapshot is not None:
            return snapshot
        return await self.reconcile(trip_id)

    async def reconcile(self, trip_id: str) -> TripProgress:
        """
        Fetch and install authoritative state for a trip.

        Returns the snapshot the store holds afterwards. Raises
        ``BackendError`` when the fetch fails.
        """
        started_version = self.store.version(trip_id)
        try:
            fetched = await self.fetch(trip_id)
        except BackendError:
            trip_reconciliations_total.labels(result="error").inc()
            raise

        current = self.store.get(trip_id)
        stale = self.guard.is_busy(trip_id) or self.store.version(trip_id) != started_version
        if current is not None and stale:
            trip_reconciliations_total.labels(result="discarded").inc()
            logger.info(
                "Discarded stale reconciliation",
                trip_id=trip_id,
                started_version=started_version,
                current_version=self.store.version(trip_id),
            )
            return current

        installed = self.store.install(fetched)
        trip_reconciliations_total.labels(result="ok").inc()
        logger.debug(
            "Reconciled trip progress",
            trip_id=trip_id,
            version=installed.version,
            current_stop_id=installed.current_stop_id,
        )
        return installed

    def schedule(self, trip_id: str, delay_sec: float | None = None) -> asyncio.Task:
        """Reconcile after a delay, replacing any reconciliation still waiting."""
        delay = self.delay_sec if delay_sec is None else delay_sec
        waiting = self._pending.get(trip_id)
        if waiting is not None and not waiting.done():
            waiting.cancel()

        task = asyncio.create_task(self._reconcile_later(trip_id, delay))
        self._pending[trip_id] = task
        task.add_done_callback(lambda t: self._forget(trip_id, t))
        return task

    def _forget(self, trip_id: str, task: asyncio.Task) -> None:
        if self._pending.get(trip_id) is task:
            del self._pending[trip_id]

    async def _reconcile_later(self, trip_id: str, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self.reconcile(trip_id)
        except BackendError as e:
            # Keep the last known state until the next refresh or transition
            logger.warning("Background reconciliation failed", trip_id=trip_id, error=str(e))
        except Exception:
            trip_reconciliations_total.labels(result="error").inc()
            logger.exception("Unexpected reconciliation failure", trip_id=trip_id)

    def pending(self, trip_id: str) -> bool:
        task = self._pending.get(trip_id)
        return task is not None and not task.done()

    async def drain(self) -> None:
        """Wait for every scheduled reconciliation to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending.values()), return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel scheduled reconciliations."""
        tasks = list(self._pending.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pending.clear()
