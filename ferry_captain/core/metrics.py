"""Application metrics."""

from prometheus_client import Counter

# Trip progression metrics
trip_transitions_total = Counter(
    "trip_transitions_total",
    "Captain trip transitions by action and result",
    ["action", "result"],
)

trip_reconciliations_total = Counter(
    "trip_reconciliations_total",
    "Authoritative trip re-fetches by result",
    ["result"],
)

# Check-in metrics
booking_checkins_total = Counter(
    "booking_checkins_total",
    "Booking check-in mutations by result",
    ["result"],
)

manifest_sends_total = Counter(
    "manifest_sends_total",
    "Passenger manifest notifications by result",
    ["result"],
)

# Health check metrics
health_ready_checks_total = Counter(
    "health_ready_checks_total",
    "Total number of readiness checks",
    ["result", "reason"],
)
