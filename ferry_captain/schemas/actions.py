"""Schemas for captain actions and their outcomes."""

import enum

from pydantic import BaseModel, ConfigDict, Field

from ferry_captain.schemas.trip import Trip


class CaptainAction(str, enum.Enum):
    """Actions a captain can be offered."""

    START_BOARDING = "start_boarding"
    DEPART = "depart"
    ARRIVE = "arrive"
    COMPLETE_DROPOFF = "complete_dropoff"
    COMPLETE_TRIP = "complete_trip"
    SEND_MANIFEST = "send_manifest"


class Emphasis(str, enum.Enum):
    """How prominently the UI should render the action."""

    PRIMARY = "primary"
    DESTRUCTIVE = "destructive"


class ButtonState(BaseModel):
    """The single next action shown to the captain."""

    model_config = ConfigDict(frozen=True)

    label: str
    action: CaptainAction
    emphasis: Emphasis
    target_stop_id: str | None = None
    target_sequence: int | None = None


class BackendResult(BaseModel):
    """Result of a backend mutation."""

    success: bool
    message: str | None = None


class AdvanceResult(BackendResult):
    """Result of the atomic advance-to-next-stop transition."""

    is_completed: bool = False


class CloseCheckinResult(BackendResult):
    """Result of closing check-in for a trip."""

    manifest_id: str | None = None
    total_passengers: int | None = None
    checked_in_passengers: int | None = None
    no_show_passengers: int | None = None


class TransitionOutcome(BaseModel):
    """What the action handler reports back to the screen."""

    success: bool
    action: CaptainAction | None = None
    message: str | None = None
    trip_completed: bool = False
    next_action: ButtonState | None = None
    version: int | None = None


class PassengerSummary(BaseModel):
    """Check-in counts over active bookings."""

    total: int = 0
    checked_in: int = 0
    pending: int = 0
    no_show: int = 0
    progress_percent: float = 0.0


class BulkCheckInResult(BaseModel):
    """Per-booking outcome of a bulk check-in."""

    success: bool = True
    success_count: int = 0
    error_count: int = 0
    booking_ids: list[str] = Field(default_factory=list)
    failed_booking_ids: list[str] = Field(default_factory=list)
    message: str | None = None


class CloseCheckinOutcome(BaseModel):
    """Outcome of the close check-in action."""

    success: bool
    message: str
    trip: Trip | None = None
    summary: PassengerSummary | None = None
