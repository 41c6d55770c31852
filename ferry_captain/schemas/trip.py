"""Pydantic schemas for trips, route stops and passengers."""

import enum

from pydantic import BaseModel, ConfigDict, Field


class TripStatus(str, enum.Enum):
    """Trip lifecycle status."""

    SCHEDULED = "scheduled"
    BOARDING = "boarding"
    DEPARTED = "departed"
    ARRIVED = "arrived"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DELAYED = "delayed"


class StopStatus(str, enum.Enum):
    """Progress status of a single route stop."""

    PENDING = "pending"
    ARRIVED = "arrived"
    BOARDING = "boarding"
    DEPARTED = "departed"
    COMPLETED = "completed"


class StopType(str, enum.Enum):
    """Whether a stop accepts boarding, disembarking, or both."""

    PICKUP = "pickup"
    DROPOFF = "dropoff"
    BOTH = "both"


class BookingStatus(str, enum.Enum):
    """Booking status as seen by the captain app."""

    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    PENDING = "pending"


class Island(BaseModel):
    """Location a stop is served at."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    zone: str | None = None


class Trip(BaseModel):
    """One scheduled voyage of a vessel."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: TripStatus = TripStatus.SCHEDULED
    current_stop_sequence: int | None = Field(default=None, ge=1)
    current_stop_id: str | None = None
    total_stops: int = Field(default=0, ge=0)
    is_active: bool = False
    is_checkin_closed: bool = False


class RouteStop(BaseModel):
    """One stop of a trip's ordered itinerary."""

    model_config = ConfigDict(frozen=True)

    stop_id: str = Field(..., description="Route stop id, used for backend calls")
    progress_id: str | None = Field(
        default=None, description="Per-trip progress row id; None until initialised"
    )
    stop_sequence: int = Field(..., ge=1)
    stop_type: StopType = StopType.BOTH
    status: StopStatus = StopStatus.PENDING
    is_completed: bool = False
    is_current_stop: bool = False
    island: Island


class Passenger(BaseModel):
    """One passenger of a booking."""

    model_config = ConfigDict(frozen=True)

    id: str
    booking_id: str
    passenger_name: str = ""
    booking_status: BookingStatus = BookingStatus.CONFIRMED
    check_in_status: bool = False
    boarding_stop_id: str | None = None
    destination_stop_id: str | None = None
    seat_number: str | None = None
