"""HTTP client for the TripLog API."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import requests

from .config import ClientConfig
from .models import Location, Note, PeriodSummary, RouteSummary, Trip, Vehicle


class ApiError(RuntimeError):
    """Raised when the API answers with an error status or is unreachable."""

    def __init__(self, message: str, *, response: Optional[requests.Response] = None) -> None:
        super().__init__(message)
        self.response = response

    @property
    def status_code(self) -> Optional[int]:
        return self.response.status_code if self.response is not None else None


class ApiClient:
    """Wraps the HTTP calls of the TripLog API."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: int = 15,
        locale: Optional[str] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/"
        self.token = token
        self.timeout = timeout
        self.locale = locale

    @classmethod
    def from_config(cls, config: ClientConfig) -> "ApiClient":
        return cls(
            config.api_base_url,
            token=config.api_token,
            timeout=config.timeout_seconds,
            locale=config.locale,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs):
        url = urljoin(self.base_url, path.lstrip("/"))
        kwargs.setdefault("timeout", self.timeout)
        headers = kwargs.setdefault("headers", {})
        headers.update(self._headers())
        try:
            response = requests.request(method, url, **kwargs)
        except requests.RequestException as exc:  # pragma: no cover - network failure
            raise ApiError(str(exc)) from exc

        if response.status_code >= 400:
            raise ApiError(f"API error {response.status_code}: {response.text}", response=response)

        if response.headers.get("Content-Type", "").startswith("application/json"):
            return response.json()
        return response.content

    def _report_payload(self, start_date: date, end_date: date, options: Dict[str, Any]) -> Dict[str, Any]:
        payload = {"start_date": start_date.isoformat(), "end_date": end_date.isoformat(), **options}
        if self.locale:
            payload.setdefault("locale", self.locale)
        return payload

    @staticmethod
    def _params(**values: Any) -> Dict[str, Any]:
        params: Dict[str, Any] = {}
        for key, value in values.items():
            if value is None:
                continue
            params[key] = value.isoformat() if isinstance(value, date) else value
        return params

    # ------------------------------------------------------------------
    # Account
    # ------------------------------------------------------------------
    def register(self, email: str, full_name: Optional[str] = None) -> str:
        """Create an account and keep the returned token for later calls."""
        data = self._request("POST", "/auth/register", json={"email": email, "full_name": full_name})
        self.token = data["token"]
        return self.token

    def get_profile(self) -> dict[str, Any]:
        return self._request("GET", "/profile")

    def get_overview(self) -> dict[str, Any]:
        return self._request("GET", "/profile/overview")

    def delete_account(self) -> None:
        self._request("DELETE", "/profile")
        self.token = None

    # ------------------------------------------------------------------
    # Vehicles and locations
    # ------------------------------------------------------------------
    def list_vehicles(self) -> list[Vehicle]:
        data = self._request("GET", "/vehicles") or []
        return [self._vehicle(item) for item in data]

    def create_vehicle(
        self,
        name: str,
        license_plate: str,
        *,
        main_driver: Optional[str] = None,
        drivers: Optional[List[str]] = None,
        default_unit_price: Optional[float] = None,
    ) -> Vehicle:
        payload = {
            "name": name,
            "license_plate": license_plate,
            "main_driver": main_driver,
            "drivers": list(drivers or []),
            "default_unit_price": default_unit_price,
        }
        return self._vehicle(self._request("POST", "/vehicles", json=payload))

    def delete_vehicle(self, vehicle_id: int) -> None:
        self._request("DELETE", f"/vehicles/{vehicle_id}")

    def search_vehicles(self, query: str) -> list[dict[str, Any]]:
        return self._request("GET", "/vehicles/search", params={"q": query}) or []

    def list_locations(self, category: Optional[str] = None, location_type: Optional[str] = None) -> list[Location]:
        data = self._request("GET", "/locations", params=self._params(category=category, type=location_type)) or []
        return [self._location(item) for item in data]

    def create_location(
        self,
        name: str,
        *,
        alias: Optional[str] = None,
        category: str = "other",
        location_type: str = "both",
    ) -> Location:
        payload = {"name": name, "alias": alias, "category": category, "type": location_type}
        return self._location(self._request("POST", "/locations", json=payload))

    # ------------------------------------------------------------------
    # Trips
    # ------------------------------------------------------------------
    def list_trips(
        self,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        vehicle_id: Optional[int] = None,
    ) -> list[Trip]:
        params = self._params(from_date=from_date, to_date=to_date, vehicle_id=vehicle_id)
        data = self._request("GET", "/trips", params=params) or []
        return [self._trip(item) for item in data]

    def create_trip(
        self,
        day: date,
        departure: str,
        destination: str,
        unit_price: float,
        vehicle_id: int,
        *,
        count: int = 1,
        driver_name: Optional[str] = None,
        memo: Optional[str] = None,
    ) -> Trip:
        payload = {
            "date": day.isoformat(),
            "departure": departure,
            "destination": destination,
            "unit_price": unit_price,
            "count": count,
            "vehicle_id": vehicle_id,
            "driver_name": driver_name,
            "memo": memo,
        }
        return self._trip(self._request("POST", "/trips", json=payload))

    def update_trip(self, trip_id: int, **changes: Any) -> Trip:
        payload = {key: value.isoformat() if isinstance(value, date) else value for key, value in changes.items()}
        return self._trip(self._request("PATCH", f"/trips/{trip_id}", json=payload))

    def delete_trip(self, trip_id: int) -> None:
        self._request("DELETE", f"/trips/{trip_id}")

    def get_recent_unit_price(self, departure: str, destination: str) -> Optional[float]:
        params = {"departure": departure, "destination": destination}
        data = self._request("GET", "/trips/recent-price", params=params) or {}
        return data.get("unit_price")

    def get_period_stats(self, from_date: Optional[date] = None, to_date: Optional[date] = None) -> PeriodSummary:
        data = self._request("GET", "/stats/period", params=self._params(from_date=from_date, to_date=to_date)) or {}
        return PeriodSummary(
            total_trips=int(data.get("total_trips", 0)),
            total_amount=float(data.get("total_amount", 0.0)),
            unique_routes=int(data.get("unique_routes", 0)),
            top_routes=[RouteSummary(**route) for route in data.get("top_routes", [])],
        )

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------
    def daily_report(self, start_date: date, end_date: date, **filters: Any) -> dict[str, Any]:
        return self._request("POST", "/reports/daily", json=self._report_payload(start_date, end_date, filters))

    def monthly_report(self, start_date: date, end_date: date, **filters: Any) -> dict[str, Any]:
        return self._request("POST", "/reports/monthly", json=self._report_payload(start_date, end_date, filters))

    def invoice_from_trips(self, start_date: date, end_date: date, **options: Any) -> dict[str, Any]:
        return self._request("POST", "/reports/invoice", json=self._report_payload(start_date, end_date, options))

    def recalculate_invoice(self, invoice: dict[str, Any]) -> dict[str, Any]:
        return self._request("POST", "/reports/invoice/recalculate", json=invoice)

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------
    def list_notes(self) -> list[Note]:
        data = self._request("GET", "/notes") or []
        return [self._note(item) for item in data]

    def create_note(self, title: str, content: Optional[List[List[Any]]] = None) -> Note:
        return self._note(self._request("POST", "/notes", json={"title": title, "content": content or []}))

    # ------------------------------------------------------------------
    # Conversion
    # ------------------------------------------------------------------
    @staticmethod
    def _vehicle(item: dict[str, Any]) -> Vehicle:
        return Vehicle(
            vehicle_id=int(item["id"]),
            name=item.get("name", ""),
            license_plate=item.get("license_plate", ""),
            main_driver=item.get("main_driver"),
            drivers=list(item.get("drivers") or []),
            default_unit_price=item.get("default_unit_price"),
        )

    @staticmethod
    def _location(item: dict[str, Any]) -> Location:
        return Location(
            location_id=int(item["id"]),
            name=item.get("name", ""),
            alias=item.get("alias"),
            category=item.get("category", "other"),
            type=item.get("type", "both"),
        )

    @classmethod
    def _trip(cls, item: dict[str, Any]) -> Trip:
        return Trip(
            trip_id=int(item["id"]),
            date=date.fromisoformat(item["date"]),
            departure=item.get("departure", ""),
            destination=item.get("destination", ""),
            unit_price=float(item.get("unit_price", 0.0)),
            count=int(item.get("count", 1)),
            total_amount=float(item.get("total_amount", 0.0)),
            vehicle_id=int(item["vehicle_id"]),
            start_time=item.get("start_time"),
            end_time=item.get("end_time"),
            driver_name=item.get("driver_name"),
            memo=item.get("memo"),
            created_at=cls._parse_datetime(item.get("created_at")),
        )

    @classmethod
    def _note(cls, item: dict[str, Any]) -> Note:
        return Note(
            note_id=int(item["id"]),
            title=item.get("title", ""),
            content=list(item.get("content") or []),
            updated_at=cls._parse_datetime(item.get("updated_at")),
        )

    @staticmethod
    def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
        if not value:
            return None
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            return None


__all__ = ["ApiClient", "ApiError"]
