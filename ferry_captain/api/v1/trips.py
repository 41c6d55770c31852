"""Captain trip progression API endpoints."""

from fastapi import APIRouter, HTTPException, Query, status

from ferry_captain.core.dependencies import CaptainServiceDep, CheckInServiceDep
from ferry_captain.core.exceptions import BackendError
from ferry_captain.domain import passengers as roster
from ferry_captain.domain.passengers import PassengerTab
from ferry_captain.domain.progress import TripProgress
from ferry_captain.schemas.actions import (
    BulkCheckInResult,
    CloseCheckinOutcome,
    TransitionOutcome,
)
from ferry_captain.schemas.api import (
    ActionRequest,
    CaptainRequest,
    CheckInRequest,
    CloseCheckinRequest,
    ManifestRequest,
    PassengerListResponse,
    StopPassengersResponse,
    TripProgressResponse,
)
from ferry_captain.services.captain import button_state

router = APIRouter(prefix="/captain/trips", tags=["captain"])


def _progress_response(progress: TripProgress) -> TripProgressResponse:
    return TripProgressResponse.from_progress(
        progress, button_state(progress), roster.summarize(progress.passengers)
    )


def _bad_gateway(e: BackendError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message)


@router.get(
    "/{trip_id}/progress",
    response_model=TripProgressResponse,
    summary="Get trip progress and the next captain action",
)
async def get_trip_progress(trip_id: str, captain_service: CaptainServiceDep):
    try:
        progress = await captain_service.get_progress(trip_id)
    except BackendError as e:
        raise _bad_gateway(e)
    return _progress_response(progress)


@router.post(
    "/{trip_id}/actions",
    response_model=TransitionOutcome,
    summary="Perform the next captain action",
)
async def perform_next_action(
    trip_id: str, request: ActionRequest, captain_service: CaptainServiceDep
):
    """
    Execute the action the resolver currently offers.

    Failures come back as ``success: false`` with a message to show the
    captain, never as an HTTP error.
    """
    return await captain_service.perform_next_action(
        trip_id, request.captain_id, request.expected_action
    )


@router.post(
    "/{trip_id}/refresh",
    response_model=TripProgressResponse,
    summary="Re-fetch authoritative trip state",
)
async def refresh_trip(trip_id: str, captain_service: CaptainServiceDep):
    try:
        progress = await captain_service.refresh(trip_id)
    except BackendError as e:
        raise _bad_gateway(e)
    return _progress_response(progress)


@router.post("/{trip_id}/manifest", response_model=TransitionOutcome)
async def send_manifest(
    trip_id: str, request: ManifestRequest, captain_service: CaptainServiceDep
):
    return await captain_service.send_manifest(trip_id, request.captain_id, request.stop_id)


@router.post("/{trip_id}/activate", response_model=TransitionOutcome)
async def activate_trip(
    trip_id: str, request: CaptainRequest, captain_service: CaptainServiceDep
):
    return await captain_service.activate_trip(trip_id, request.captain_id)


@router.get("/{trip_id}/passengers", response_model=PassengerListResponse)
async def list_passengers(
    trip_id: str,
    checkin_service: CheckInServiceDep,
    tab: PassengerTab = Query(PassengerTab.ALL, description="Passenger list filter"),
):
    try:
        passengers = await checkin_service.passengers(trip_id, tab)
        summary = await checkin_service.summary(trip_id)
    except BackendError as e:
        raise _bad_gateway(e)
    return PassengerListResponse(passengers=passengers, summary=summary)


@router.get("/{trip_id}/stops/{stop_id}/passengers", response_model=StopPassengersResponse)
async def list_stop_passengers(trip_id: str, stop_id: str, checkin_service: CheckInServiceDep):
    try:
        by_direction = await checkin_service.stop_passengers(trip_id, stop_id)
    except BackendError as e:
        raise _bad_gateway(e)
    return StopPassengersResponse(stop_id=stop_id, **by_direction)


@router.post("/{trip_id}/check-in", response_model=BulkCheckInResult)
async def check_in_passengers(
    trip_id: str, request: CheckInRequest, checkin_service: CheckInServiceDep
):
    return await checkin_service.bulk_check_in(trip_id, request.passenger_ids, request.captain_id)


@router.post(
    "/{trip_id}/stops/{stop_id}/complete-boarding",
    response_model=BulkCheckInResult,
    summary="Check in every pending passenger boarding at a stop",
)
async def complete_stop_boarding(
    trip_id: str,
    stop_id: str,
    request: CaptainRequest,
    checkin_service: CheckInServiceDep,
):
    return await checkin_service.complete_stop_boarding(trip_id, stop_id, request.captain_id)


@router.post("/{trip_id}/close-checkin", response_model=CloseCheckinOutcome)
async def close_checkin(
    trip_id: str, request: CloseCheckinRequest, checkin_service: CheckInServiceDep
):
    return await checkin_service.close_check_in(
        trip_id,
        request.captain_id,
        notes=request.notes,
        weather_conditions=request.weather_conditions,
        delay_reason=request.delay_reason,
    )
