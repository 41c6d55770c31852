"""Supabase backend client over PostgREST tables, views and RPC functions."""

from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import httpx

from ferry_captain.core.exceptions import BackendError
from ferry_captain.core.logging import get_logger
from ferry_captain.schemas.actions import AdvanceResult, BackendResult, CloseCheckinResult
from ferry_captain.schemas.trip import (
    Island,
    Passenger,
    RouteStop,
    StopStatus,
    StopType,
    Trip,
    TripStatus,
)
from ferry_captain.storage.interfaces import TripBackendIface

logger = get_logger(__name__)

TRIP_COLUMNS = (
    "id,status,route_id,current_stop_sequence,current_stop_id,"
    "total_stops,is_active,is_checkin_closed"
)
ROUTE_STOP_COLUMNS = "id,stop_sequence,stop_type,island:island_id(id,name,zone)"
PROGRESS_COLUMNS = "id,stop_id,stop_sequence,stop_type,status,departed_at"
PASSENGER_COLUMNS = (
    "id,booking_id,passenger_name,booking_status,check_in_status,"
    "seat_number,boarding_stop_id,destination_stop_id"
)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _rpc_result(data: Any) -> BackendResult:
    # Void functions answer with no body
    if not isinstance(data, dict):
        return BackendResult(success=True)
    return BackendResult(success=bool(data.get("success", True)), message=data.get("message"))


class SupabaseBackend(TripBackendIface):
    """Trip backend backed by a Supabase project."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _build_url(self, path: str) -> str:
        return f"{self.base_url}/rest/v1/{path}"

    def _headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if extra:
            headers.update(extra)
        return headers

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = self._headers({"Prefer": prefer} if prefer else None)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.request(
                    method,
                    self._build_url(path),
                    params=params,
                    json=json,
                    headers=headers,
                )
        except httpx.HTTPError as e:
            logger.warning("Backend request failed", method=method, path=path, error=str(e))
            raise BackendError(f"Request to {path} failed: {e}") from e

        if not response.is_success:
            raise BackendError(self._error_message(response), response.status_code)

        if not response.content:
            return None
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        if isinstance(body, dict):
            return body.get("message") or body.get("error") or response.text
        return response.text

    async def _rpc(self, function: str, payload: dict[str, Any]) -> Any:
        return await self._request("POST", f"rpc/{function}", json=payload)

    async def _select(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        rows = await self._request("GET", table, params=params)
        return rows or []

    async def _trip_row(self, trip_id: str) -> dict[str, Any]:
        rows = await self._select("trips", {"select": TRIP_COLUMNS, "id": f"eq.{trip_id}"})
        if not rows:
            raise BackendError(f"Trip {trip_id} not found", 404)
        return rows[0]

    async def fetch_trip(self, trip_id: str) -> Trip:
        row = await self._trip_row(trip_id)
        return Trip(
            id=str(row["id"]),
            status=TripStatus(row.get("status") or TripStatus.SCHEDULED.value),
            current_stop_sequence=row.get("current_stop_sequence"),
            current_stop_id=row.get("current_stop_id"),
            total_stops=row.get("total_stops") or 0,
            is_active=bool(row.get("is_active")),
            is_checkin_closed=bool(row.get("is_checkin_closed")),
        )

    async def fetch_trip_stops(self, trip_id: str) -> list[RouteStop]:
        """
        Route stops merged with the trip's stop progress rows.

        A stop is flagged current when it is arrived or boarding, or when the
        trip's stop pointer names it.
        """
        trip_row = await self._trip_row(trip_id)
        route_stops = await self._select(
            "route_stops",
            {
                "select": ROUTE_STOP_COLUMNS,
                "route_id": f"eq.{trip_row['route_id']}",
                "order": "stop_sequence",
            },
        )
        progress_rows = await self._select(
            "trip_stop_progress",
            {
                "select": PROGRESS_COLUMNS,
                "trip_id": f"eq.{trip_id}",
                "order": "stop_sequence",
            },
        )
        progress_by_stop = {row["stop_id"]: row for row in progress_rows}

        stops = []
        for row in route_stops:
            progress = progress_by_stop.get(row["id"], {})
            status = StopStatus(progress.get("status") or StopStatus.PENDING.value)
            island = row.get("island") or {}
            if isinstance(island, list):
                island = island[0] if island else {}
            stops.append(
                RouteStop(
                    stop_id=str(row["id"]),
                    progress_id=str(progress["id"]) if progress.get("id") else None,
                    stop_sequence=row["stop_sequence"],
                    stop_type=StopType(
                        progress.get("stop_type") or row.get("stop_type") or StopType.BOTH.value
                    ),
                    status=status,
                    is_current_stop=status in (StopStatus.BOARDING, StopStatus.ARRIVED)
                    or str(row["id"]) == trip_row.get("current_stop_id"),
                    is_completed=status in (StopStatus.DEPARTED, StopStatus.COMPLETED)
                    or progress.get("departed_at") is not None,
                    island=Island(
                        id=str(island.get("id", "")),
                        name=island.get("name") or "Unknown",
                        zone=island.get("zone"),
                    ),
                )
            )
        return sorted(stops, key=lambda s: s.stop_sequence)

    async def fetch_trip_passengers(self, trip_id: str) -> list[Passenger]:
        rows = await self._select(
            "captain_passengers_view",
            {"select": PASSENGER_COLUMNS, "trip_id": f"eq.{trip_id}"},
        )
        return [
            Passenger(
                id=str(row["id"]),
                booking_id=str(row["booking_id"]),
                passenger_name=row.get("passenger_name") or "",
                booking_status=row.get("booking_status") or "confirmed",
                check_in_status=bool(row.get("check_in_status")),
                seat_number=row.get("seat_number"),
                boarding_stop_id=row.get("boarding_stop_id"),
                destination_stop_id=row.get("destination_stop_id"),
            )
            for row in rows
        ]

    async def initialize_stop_progress(self, trip_id: str, captain_id: str) -> BackendResult:
        data = await self._rpc(
            "initialize_trip_stop_progress",
            {"p_trip_id": trip_id, "p_captain_id": captain_id},
        )
        return _rpc_result(data)

    async def update_stop_status(
        self,
        trip_id: str,
        stop_id: str,
        status: StopStatus,
        captain_id: str,
        expected_statuses: Iterable[StopStatus] | None = None,
    ) -> BackendResult:
        expected = sorted(s.value for s in expected_statuses) if expected_statuses else None
        data = await self._rpc(
            "update_stop_status",
            {
                "p_trip_id": trip_id,
                "p_stop_id": stop_id,
                "p_status": status.value,
                "p_captain_id": captain_id,
                "p_expected_statuses": expected,
            },
        )
        return _rpc_result(data)

    async def advance_to_next_stop(
        self, trip_id: str, captain_id: str, target_stop_id: str | None = None
    ) -> AdvanceResult:
        data = await self._rpc(
            "move_to_next_stop",
            {
                "p_trip_id": trip_id,
                "p_captain_id": captain_id,
                "p_target_stop_id": target_stop_id,
            },
        )
        if not isinstance(data, dict):
            return AdvanceResult(success=True)
        return AdvanceResult(
            success=bool(data.get("success", False)),
            is_completed=bool(data.get("is_completed", False)),
            message=data.get("message"),
        )

    async def update_trip_status(
        self,
        trip_id: str,
        status: TripStatus,
        current_stop_sequence: int | None = None,
        current_stop_id: str | None = None,
    ) -> BackendResult:
        payload: dict[str, Any] = {"status": status.value, "updated_at": _utcnow()}
        if current_stop_sequence is not None:
            payload["current_stop_sequence"] = current_stop_sequence
        if current_stop_id is not None:
            payload["current_stop_id"] = current_stop_id

        rows = await self._request(
            "PATCH",
            "trips",
            params={"id": f"eq.{trip_id}"},
            json=payload,
            prefer="return=representation",
        )
        if not rows:
            return BackendResult(success=False, message=f"Trip {trip_id} not found")
        return BackendResult(success=True)

    async def send_manifest(self, trip_id: str, stop_id: str) -> BackendResult:
        data = await self._rpc("send_trip_manifest", {"p_trip_id": trip_id, "p_stop_id": stop_id})
        return _rpc_result(data)

    async def close_checkin(
        self,
        trip_id: str,
        notes: str | None = None,
        weather_conditions: str | None = None,
        delay_reason: str | None = None,
        actual_departure_time: str | None = None,
    ) -> CloseCheckinResult:
        data = await self._rpc(
            "close_trip_checkin",
            {
                "p_trip_id": trip_id,
                "p_captain_notes": notes,
                "p_weather_conditions": weather_conditions,
                "p_delay_reason": delay_reason,
                "p_actual_departure_time": actual_departure_time,
            },
        )
        if not isinstance(data, dict):
            return CloseCheckinResult(success=False, message="Empty response from close check-in")
        return CloseCheckinResult(
            success=bool(data.get("success", False)),
            message=data.get("message") or data.get("error"),
            manifest_id=data.get("manifest_id"),
            total_passengers=data.get("total_passengers"),
            checked_in_passengers=data.get("checked_in_passengers"),
            no_show_passengers=data.get("no_show_passengers"),
        )

    async def set_booking_checked_in(self, booking_id: str, captain_id: str) -> BackendResult:
        now = _utcnow()
        rows = await self._request(
            "PATCH",
            "bookings",
            params={"id": f"eq.{booking_id}"},
            json={
                "check_in_status": True,
                "checked_in_at": now,
                "status": "checked_in",
                "updated_at": now,
            },
            prefer="return=representation",
        )
        if not rows:
            return BackendResult(success=False, message=f"Booking {booking_id} not found")

        try:
            await self._request(
                "POST",
                "activity_logs",
                json={
                    "user_id": captain_id,
                    "action": "booking_check_in",
                    "entity_type": "booking",
                    "entity_id": booking_id,
                    "details": {"checked_in_at": now},
                },
            )
        except BackendError as e:
            # The check-in itself succeeded
            logger.warning("Activity log write failed", booking_id=booking_id, error=str(e))

        return BackendResult(success=True)

    async def activate_trip(self, trip_id: str, captain_id: str) -> BackendResult:
        data = await self._rpc(
            "activate_trip_by_captain",
            {"p_trip_id": trip_id, "p_captain_id": captain_id},
        )
        return _rpc_result(data)
