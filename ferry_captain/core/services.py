"""Wiring of the trip progression services around one backend."""

from ferry_captain.core.settings import Settings
from ferry_captain.services.captain import CaptainTripService
from ferry_captain.services.checkin import CheckInService
from ferry_captain.services.inflight import TripInFlightGuard
from ferry_captain.services.reconciliation import ReconciliationLoop, TripProgressStore
from ferry_captain.services.transitions import ManifestDispatcher, TransitionExecutor
from ferry_captain.storage.interfaces import TripBackendIface


class CaptainServices:
    """The services sharing one progress store, guard and reconciliation loop."""

    def __init__(self, backend: TripBackendIface, settings: Settings) -> None:
        self.backend = backend
        self.store = TripProgressStore()
        self.guard = TripInFlightGuard()
        self.reconciler = ReconciliationLoop(
            backend, self.store, self.guard, delay_sec=settings.reconcile_delay_sec
        )
        self.manifests = ManifestDispatcher(backend, enabled=settings.manifest_enabled)
        self.executor = TransitionExecutor(backend, self.manifests)
        self.captain = CaptainTripService(
            backend, self.store, self.reconciler, self.executor, self.guard
        )
        self.checkin = CheckInService(backend, self.store, self.reconciler, self.guard)

    async def drain(self) -> None:
        """Wait for background reconciliations and manifest sends."""
        await self.manifests.drain()
        await self.reconciler.drain()

    async def aclose(self) -> None:
        await self.manifests.aclose()
        await self.reconciler.aclose()
