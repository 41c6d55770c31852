"""FastAPI dependency injection for services."""

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from ferry_captain.core.services import CaptainServices
from ferry_captain.core.settings import Settings
from ferry_captain.services.captain import CaptainTripService
from ferry_captain.services.checkin import CheckInService


def get_app_settings(request: Request) -> Settings:
    """Get the settings the app was created with."""
    return request.app.state.settings


def get_services(request: Request) -> CaptainServices:
    """Get the service container built at startup."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Trip backend is not configured",
        )
    return services


def get_captain_service(
    services: Annotated[CaptainServices, Depends(get_services)],
) -> CaptainTripService:
    return services.captain


def get_checkin_service(
    services: Annotated[CaptainServices, Depends(get_services)],
) -> CheckInService:
    return services.checkin


# Type aliases for dependency injection
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
CaptainServiceDep = Annotated[CaptainTripService, Depends(get_captain_service)]
CheckInServiceDep = Annotated[CheckInService, Depends(get_checkin_service)]
