"""Request and response bodies for the captain trip API."""

from pydantic import BaseModel, Field

from ferry_captain.domain.progress import TripProgress
from ferry_captain.schemas.actions import ButtonState, CaptainAction, PassengerSummary
from ferry_captain.schemas.trip import Passenger, RouteStop, Trip


class CaptainRequest(BaseModel):
    captain_id: str = Field(..., min_length=1, description="Acting captain's user id")


class ActionRequest(CaptainRequest):
    expected_action: CaptainAction | None = Field(
        None, description="The action the screen showed when the captain tapped it"
    )


class ManifestRequest(CaptainRequest):
    stop_id: str | None = Field(None, description="Stop to send for; defaults to the current stop")


class CheckInRequest(CaptainRequest):
    passenger_ids: list[str] = Field(..., description="Selected passenger ids")


class CloseCheckinRequest(CaptainRequest):
    notes: str | None = None
    weather_conditions: str | None = None
    delay_reason: str | None = None


class TripProgressResponse(BaseModel):
    """Everything the trip screen renders."""

    trip: Trip
    stops: list[RouteStop]
    current_stop: RouteStop | None = None
    next_action: ButtonState | None = None
    summary: PassengerSummary
    version: int

    @classmethod
    def from_progress(
        cls,
        progress: TripProgress,
        next_action: ButtonState | None,
        summary: PassengerSummary,
    ) -> "TripProgressResponse":
        return cls(
            trip=progress.trip,
            stops=list(progress.stops),
            current_stop=progress.current_stop,
            next_action=next_action,
            summary=summary,
            version=progress.version,
        )


class PassengerListResponse(BaseModel):
    passengers: list[Passenger]
    summary: PassengerSummary


class StopPassengersResponse(BaseModel):
    """Active passengers getting on and off at one stop."""

    stop_id: str
    boarding: list[Passenger]
    dropoff: list[Passenger]
