"""Backend collaborator interfaces."""

from ferry_captain.storage.interfaces import TripBackendIface

__all__ = ["TripBackendIface"]
