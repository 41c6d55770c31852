"""Exception hierarchy for trip progression."""


class FerryCaptainError(Exception):
    """Base error for the captain service."""


class BackendError(FerryCaptainError):
    """Backend request failed (transport error or non-success HTTP status)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        self.message = message
        if status_code is None:
            super().__init__(f"Backend error: {message}")
        else:
            super().__init__(f"Backend error {status_code}: {message}")


class InvalidStopTransitionError(FerryCaptainError):
    """A stop status change that the stop state machine does not allow."""

    def __init__(self, stop_id: str, current: str, requested: str) -> None:
        self.stop_id = stop_id
        self.current = current
        self.requested = requested
        super().__init__(f"Stop {stop_id} cannot move from {current} to {requested}")


class TransitionInFlightError(FerryCaptainError):
    """Another transition for the same trip has not finished yet."""

    def __init__(self, trip_id: str) -> None:
        self.trip_id = trip_id
        super().__init__(f"A transition is already in progress for trip {trip_id}")
