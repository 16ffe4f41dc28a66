"""Pure aggregation helpers over already loaded trip and vehicle rows.

Every function accepts plain iterables of objects exposing the trip attributes
(``date``, ``departure``, ``destination``, ``unit_price``, ``count``,
``total_amount``, ``vehicle_id``) and never mutates its input. Empty input
produces empty or zeroed aggregates instead of raising.
"""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

RouteKey = Tuple[str, str]

ALL_VEHICLES = "all"


@dataclass(slots=True)
class RouteAggregate:
    departure: str
    destination: str
    total_count: int = 0
    total_amount: float = 0.0


@dataclass(slots=True)
class DepartureAggregate:
    departure: str
    total_count: int = 0
    total_amount: float = 0.0


@dataclass(slots=True)
class VehicleStats:
    vehicle: Any
    total_trips: int = 0
    total_amount: float = 0.0
    avg_unit_price: float = 0.0
    most_frequent_route: Optional[RouteAggregate] = None


@dataclass(slots=True)
class PeriodStats:
    total_trips: int = 0
    total_amount: float = 0.0
    unique_routes: int = 0
    top_routes: List[RouteAggregate] = field(default_factory=list)


@dataclass(slots=True)
class VehicleUsage:
    vehicle: Any
    trip_count: int = 0
    amount: float = 0.0


@dataclass(slots=True)
class UserOverview:
    total_trips: int = 0
    total_amount: float = 0.0
    this_month_trips: int = 0
    this_month_amount: float = 0.0
    trips_last_7_days: int = 0
    trips_last_30_days: int = 0
    last_trip_date: Optional[dt.date] = None
    first_trip_date: Optional[dt.date] = None
    days_since_first_trip: int = 0
    unique_routes: int = 0
    top_vehicles: List[VehicleUsage] = field(default_factory=list)
    most_used_vehicle: Optional[VehicleUsage] = None
    most_frequent_route: Optional[RouteAggregate] = None


def calculate_total_amount(unit_price: float, count: int) -> float:
    return unit_price * count


def route_key(trip: Any) -> RouteKey:
    return trip.departure, trip.destination


def _total_count(trips: Iterable[Any]) -> int:
    return sum(trip.count for trip in trips)


def _total_amount(trips: Iterable[Any]) -> float:
    return sum(trip.total_amount for trip in trips)


def group_by_route(trips: Iterable[Any]) -> List[RouteAggregate]:
    """Sum counts and amounts per (departure, destination), first occurrence first."""
    groups: Dict[RouteKey, RouteAggregate] = {}
    for trip in trips:
        key = route_key(trip)
        group = groups.get(key)
        if group is None:
            group = groups[key] = RouteAggregate(departure=trip.departure, destination=trip.destination)
        group.total_count += trip.count
        group.total_amount += trip.total_amount
    return list(groups.values())


def group_by_departure(trips: Iterable[Any]) -> List[DepartureAggregate]:
    groups: Dict[str, DepartureAggregate] = {}
    for trip in trips:
        group = groups.get(trip.departure)
        if group is None:
            group = groups[trip.departure] = DepartureAggregate(departure=trip.departure)
        group.total_count += trip.count
        group.total_amount += trip.total_amount
    return list(groups.values())


def most_frequent_route(trips: Iterable[Any]) -> Optional[RouteAggregate]:
    # sorted() is stable: equal counts keep first-occurrence order
    ranked = sorted(group_by_route(trips), key=lambda group: group.total_count, reverse=True)
    return ranked[0] if ranked else None


def top_routes(trips: Iterable[Any], limit: int = 5) -> List[RouteAggregate]:
    ranked = sorted(group_by_route(trips), key=lambda group: group.total_amount, reverse=True)
    return ranked[:limit]


def period_stats(trips: Iterable[Any], limit: int = 5) -> PeriodStats:
    items = list(trips)
    return PeriodStats(
        total_trips=_total_count(items),
        total_amount=_total_amount(items),
        unique_routes=len(group_by_route(items)),
        top_routes=top_routes(items, limit),
    )


def filter_trips(
    trips: Iterable[Any],
    start: Optional[dt.date] = None,
    end: Optional[dt.date] = None,
    vehicle_id: Optional[Any] = None,
    departure: Optional[str] = None,
    destination: Optional[str] = None,
) -> List[Any]:
    """Select trips by inclusive date range, vehicle and case-insensitive location text."""
    departure_needle = departure.strip().casefold() if departure and departure.strip() else None
    destination_needle = destination.strip().casefold() if destination and destination.strip() else None
    selected: List[Any] = []
    for trip in trips:
        if start is not None and trip.date < start:
            continue
        if end is not None and trip.date > end:
            continue
        if vehicle_id not in (None, ALL_VEHICLES) and trip.vehicle_id != vehicle_id:
            continue
        if departure_needle and departure_needle not in trip.departure.casefold():
            continue
        if destination_needle and destination_needle not in trip.destination.casefold():
            continue
        selected.append(trip)
    return selected


def vehicle_stats(vehicle_id: Any, trips: Iterable[Any], vehicles: Iterable[Any]) -> Optional[VehicleStats]:
    vehicle = next((item for item in vehicles if item.id == vehicle_id), None)
    if vehicle is None:
        return None

    vehicle_trips = [trip for trip in trips if trip.vehicle_id == vehicle_id]
    if not vehicle_trips:
        return VehicleStats(vehicle=vehicle)

    # Mean over trips, not weighted by count
    avg_unit_price = sum(trip.unit_price for trip in vehicle_trips) / len(vehicle_trips)
    return VehicleStats(
        vehicle=vehicle,
        total_trips=_total_count(vehicle_trips),
        total_amount=_total_amount(vehicle_trips),
        avg_unit_price=avg_unit_price,
        most_frequent_route=most_frequent_route(vehicle_trips),
    )


def _vehicle_usage(trips: Iterable[Any], vehicles: Iterable[Any], limit: int) -> List[VehicleUsage]:
    by_id = {vehicle.id: vehicle for vehicle in vehicles}
    usage: Dict[Any, VehicleUsage] = {}
    for trip in trips:
        vehicle = by_id.get(trip.vehicle_id)
        if vehicle is None:
            continue
        entry = usage.get(trip.vehicle_id)
        if entry is None:
            entry = usage[trip.vehicle_id] = VehicleUsage(vehicle=vehicle)
        entry.trip_count += trip.count
        entry.amount += trip.total_amount
    ranked = sorted(usage.values(), key=lambda entry: entry.trip_count, reverse=True)
    return ranked[:limit]


def user_overview(trips: Iterable[Any], vehicles: Iterable[Any], today: dt.date) -> UserOverview:
    items = list(trips)
    if not items:
        return UserOverview()

    month_start = today.replace(day=1)
    last_7 = today - dt.timedelta(days=7)
    last_30 = today - dt.timedelta(days=30)
    this_month = [trip for trip in items if trip.date >= month_start]
    dates = [trip.date for trip in items]
    first_trip = min(dates)
    top_vehicles = _vehicle_usage(items, vehicles, limit=3)

    return UserOverview(
        total_trips=_total_count(items),
        total_amount=_total_amount(items),
        this_month_trips=_total_count(this_month),
        this_month_amount=_total_amount(this_month),
        trips_last_7_days=_total_count(trip for trip in items if trip.date >= last_7),
        trips_last_30_days=_total_count(trip for trip in items if trip.date >= last_30),
        last_trip_date=max(dates),
        first_trip_date=first_trip,
        days_since_first_trip=(today - first_trip).days,
        unique_routes=len(group_by_route(items)),
        top_vehicles=top_vehicles,
        most_used_vehicle=top_vehicles[0] if top_vehicles else None,
        most_frequent_route=most_frequent_route(items),
    )
