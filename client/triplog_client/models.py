"""Data models returned by the TripLog API client."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Optional


@dataclass(slots=True)
class Vehicle:
    """A registered vehicle."""

    vehicle_id: int
    name: str
    license_plate: str
    main_driver: Optional[str] = None
    drivers: List[str] = field(default_factory=list)
    default_unit_price: Optional[float] = None

    @property
    def label(self) -> str:
        return f"{self.license_plate} ({self.name})" if self.name else self.license_plate


@dataclass(slots=True)
class Location:
    location_id: int
    name: str
    alias: Optional[str] = None
    category: str = "other"
    type: str = "both"


@dataclass(slots=True)
class Trip:
    """A single recorded trip."""

    trip_id: int
    date: date
    departure: str
    destination: str
    unit_price: float
    count: int
    total_amount: float
    vehicle_id: int
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    driver_name: Optional[str] = None
    memo: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass(slots=True)
class RouteSummary:
    departure: str
    destination: str
    total_count: int
    total_amount: float


@dataclass(slots=True)
class PeriodSummary:
    """Totals for a date range."""

    total_trips: int
    total_amount: float
    unique_routes: int
    top_routes: List[RouteSummary] = field(default_factory=list)


@dataclass(slots=True)
class Note:
    note_id: int
    title: str
    content: List[List[Any]] = field(default_factory=list)
    updated_at: Optional[datetime] = None


__all__ = ["Vehicle", "Location", "Trip", "RouteSummary", "PeriodSummary", "Note"]
