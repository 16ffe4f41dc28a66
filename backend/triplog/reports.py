"""Report view-models built from trip aggregates.

The daily report lists every trip of a date range and groups them by departure
and destination, the monthly report is an editable grid with departure
statistics, and invoices are editable row sets with running totals. Period
labels and amounts are rendered for the configured locale.
"""

from __future__ import annotations

import datetime as dt
import uuid
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Iterable, List, Optional

from .aggregation import (
    ALL_VEHICLES,
    DepartureAggregate,
    calculate_total_amount,
    filter_trips,
    group_by_departure,
    group_by_route,
)

DEFAULT_LOCALE = "ko-KR"

_EN_MONTHS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

LOCALE_LABELS: Dict[str, Dict[str, str]] = {
    "ko-KR": {
        "date": "{y:04d}년 {m:02d}월 {d:02d}일",
        "short_date": "{m:02d}월 {d:02d}일",
        "month": "{y:04d}년 {m:02d}월",
        "range": "{start} ~ {end}",
        "currency": "{amount}원",
        "thousands": ",",
        "all_vehicles": "전체 차량",
        "no_data": "데이터 없음",
        "unknown_vehicle": "알 수 없음",
        "departure": "출발지",
        "destination": "목적지",
        "invoice_title": "{y:04d}년 {m:02d}월 청구서",
    },
    "de-DE": {
        "date": "{d:02d}.{m:02d}.{y:04d}",
        "short_date": "{d:02d}.{m:02d}.",
        "month": "{m:02d}/{y:04d}",
        "range": "{start} - {end}",
        "currency": "{amount} €",
        "thousands": ".",
        "all_vehicles": "Alle Fahrzeuge",
        "no_data": "Keine Daten",
        "unknown_vehicle": "Unbekannt",
        "departure": "Abfahrt",
        "destination": "Ziel",
        "invoice_title": "Rechnung {m:02d}/{y:04d}",
    },
    "en-US": {
        "date": "{mon} {d:02d}, {y:04d}",
        "short_date": "{mon} {d:02d}",
        "month": "{mon} {y:04d}",
        "range": "{start} - {end}",
        "currency": "${amount}",
        "thousands": ",",
        "all_vehicles": "All vehicles",
        "no_data": "No data",
        "unknown_vehicle": "Unknown",
        "departure": "Departure",
        "destination": "Destination",
        "invoice_title": "Invoice {mon} {y:04d}",
    },
}


def _labels(locale: Optional[str]) -> Dict[str, str]:
    return LOCALE_LABELS.get(locale or DEFAULT_LOCALE, LOCALE_LABELS[DEFAULT_LOCALE])


def _render(pattern: str, day: dt.date) -> str:
    return pattern.format(y=day.year, m=day.month, d=day.day, mon=_EN_MONTHS[day.month - 1])


def format_date(day: dt.date, locale: Optional[str] = None) -> str:
    return _render(_labels(locale)["date"], day)


def format_daily_period(start: dt.date, end: dt.date, locale: Optional[str] = None) -> str:
    """Single date label for one day, otherwise a range whose end drops the year."""
    labels = _labels(locale)
    if start == end:
        return _render(labels["date"], start)
    return labels["range"].format(start=_render(labels["date"], start), end=_render(labels["short_date"], end))


def format_monthly_period(start: dt.date, end: dt.date, locale: Optional[str] = None) -> str:
    labels = _labels(locale)
    if (start.year, start.month) == (end.year, end.month):
        return _render(labels["month"], start)
    return labels["range"].format(start=_render(labels["month"], start), end=_render(labels["month"], end))


def format_amount(value: float, locale: Optional[str] = None) -> str:
    labels = _labels(locale)
    grouped = f"{round(value):,}".replace(",", labels["thousands"])
    return labels["currency"].format(amount=grouped)


def vehicle_label(vehicle: Any) -> str:
    if vehicle.name:
        return f"{vehicle.license_plate} ({vehicle.name})"
    return vehicle.license_plate


def route_item(departure: str, destination: str) -> str:
    return f"{departure} → {destination}"


def _name_key(value: str):
    return value.casefold(), value


# ---------------------------------------------------------------------------
# Daily report
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class DailyTripRow:
    trip_id: Any
    date: dt.date
    month: int
    day: int
    vehicle_number: str
    departure: str
    destination: str
    unit_price: float
    count: int
    daily_total: float
    driver_name: Optional[str] = None


@dataclass(slots=True)
class DailyDestinationLine:
    destination: str
    total_count: int = 0
    total_amount: float = 0.0


@dataclass(slots=True)
class DailyDepartureGroup:
    departure: str
    total_count: int = 0
    total_amount: float = 0.0
    destinations: List[DailyDestinationLine] = field(default_factory=list)


@dataclass(slots=True)
class DailyReport:
    period: str
    vehicle_name: str
    rows: List[DailyTripRow] = field(default_factory=list)
    groups: List[DailyDepartureGroup] = field(default_factory=list)
    total_count: int = 0
    monthly_total: float = 0.0


def _daily_vehicle_name(
    vehicles: List[Any],
    vehicle_id: Optional[Any],
    departure_filter: Optional[str],
    destination_filter: Optional[str],
    labels: Dict[str, str],
) -> str:
    name = labels["all_vehicles"]
    if vehicle_id not in (None, ALL_VEHICLES):
        selected = next((vehicle for vehicle in vehicles if vehicle.id == vehicle_id), None)
        if selected is not None:
            name = vehicle_label(selected)
    filter_parts = []
    if departure_filter:
        filter_parts.append(f"{labels['departure']}: {departure_filter}")
    if destination_filter:
        filter_parts.append(f"{labels['destination']}: {destination_filter}")
    if filter_parts:
        name += f" ({', '.join(filter_parts)})"
    return name


def _daily_groups(trips: List[Any]) -> List[DailyDepartureGroup]:
    groups: Dict[str, DailyDepartureGroup] = {}
    for route in group_by_route(trips):
        group = groups.get(route.departure)
        if group is None:
            group = groups[route.departure] = DailyDepartureGroup(departure=route.departure)
        group.total_count += route.total_count
        group.total_amount += route.total_amount
        group.destinations.append(
            DailyDestinationLine(
                destination=route.destination,
                total_count=route.total_count,
                total_amount=route.total_amount,
            )
        )
    ordered = sorted(groups.values(), key=lambda group: _name_key(group.departure))
    for group in ordered:
        group.destinations.sort(key=lambda line: _name_key(line.destination))
    return ordered


def generate_daily_report(
    trips: Iterable[Any],
    vehicles: Iterable[Any],
    start: dt.date,
    end: dt.date,
    vehicle_id: Optional[Any] = None,
    departure_filter: Optional[str] = None,
    destination_filter: Optional[str] = None,
    locale: Optional[str] = None,
) -> DailyReport:
    labels = _labels(locale)
    vehicle_list = list(vehicles)
    selected = filter_trips(
        trips,
        start=start,
        end=end,
        vehicle_id=vehicle_id,
        departure=departure_filter,
        destination=destination_filter,
    )
    if not selected:
        return DailyReport(period="", vehicle_name=labels["no_data"])

    plates = {vehicle.id: vehicle_label(vehicle) for vehicle in vehicle_list}
    rows = [
        DailyTripRow(
            trip_id=trip.id,
            date=trip.date,
            month=trip.date.month,
            day=trip.date.day,
            vehicle_number=plates.get(trip.vehicle_id, labels["unknown_vehicle"]),
            departure=trip.departure,
            destination=trip.destination,
            unit_price=trip.unit_price,
            count=trip.count,
            daily_total=trip.total_amount,
            driver_name=getattr(trip, "driver_name", None),
        )
        for trip in sorted(selected, key=lambda trip: trip.date)
    ]
    return DailyReport(
        period=format_daily_period(start, end, locale),
        vehicle_name=_daily_vehicle_name(vehicle_list, vehicle_id, departure_filter, destination_filter, labels),
        rows=rows,
        groups=_daily_groups(selected),
        total_count=sum(row.count for row in rows),
        monthly_total=sum(row.daily_total for row in rows),
    )


# ---------------------------------------------------------------------------
# Monthly report
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class MonthlyReportRow:
    id: str
    date: Optional[dt.date] = None
    item: str = ""
    count: int = 0
    unit_price: float = 0.0
    total_amount: float = 0.0


@dataclass(slots=True)
class MonthlyReport:
    period: str
    rows: List[MonthlyReportRow] = field(default_factory=list)
    total_amount: float = 0.0
    departure_stats: List[DepartureAggregate] = field(default_factory=list)


def empty_monthly_row() -> MonthlyReportRow:
    return MonthlyReportRow(id=f"empty-{uuid.uuid4().hex[:12]}")


def calculate_row_total(count: int, unit_price: float) -> float:
    return calculate_total_amount(unit_price, count)


def recalculate_row(row: MonthlyReportRow) -> MonthlyReportRow:
    return replace(row, total_amount=calculate_row_total(row.count, row.unit_price))


def generate_monthly_report(trips: Iterable[Any], locale: Optional[str] = None, blank_rows: int = 3) -> MonthlyReport:
    items = list(trips)
    if not items:
        return MonthlyReport(period="")

    departure_stats = sorted(group_by_departure(items), key=lambda stat: stat.total_amount, reverse=True)

    rows: List[MonthlyReportRow] = []
    index_on_date: Dict[dt.date, int] = {}
    for trip in sorted(items, key=lambda trip: trip.date):
        index = index_on_date.get(trip.date, 0)
        index_on_date[trip.date] = index + 1
        rows.append(
            MonthlyReportRow(
                id=f"{trip.id}-{index}",
                date=trip.date,
                item=route_item(trip.departure, trip.destination),
                count=trip.count,
                unit_price=trip.unit_price,
                total_amount=trip.total_amount,
            )
        )
    rows.extend(empty_monthly_row() for _ in range(blank_rows))

    dates = sorted(index_on_date)
    return MonthlyReport(
        period=format_monthly_period(dates[0], dates[-1], locale),
        rows=rows,
        total_amount=sum(row.total_amount for row in rows),
        departure_stats=departure_stats,
    )


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class InvoiceSiteInfo:
    site_name: str = ""
    registration_number: str = ""
    company_name: str = ""
    owner_name: str = ""
    address: str = ""
    business_type: str = ""
    business_category: str = ""


@dataclass(slots=True)
class InvoiceRow:
    id: str
    date: Optional[dt.date] = None
    item: str = ""
    direction: str = "inbound"
    count: int = 0
    unit_price: float = 0.0
    amount: float = 0.0
    memo: str = ""


@dataclass(slots=True)
class InvoiceReport:
    title: str
    site_info: InvoiceSiteInfo = field(default_factory=InvoiceSiteInfo)
    rows: List[InvoiceRow] = field(default_factory=list)
    total_count: int = 0
    total_amount: float = 0.0


def default_invoice_title(today: dt.date, locale: Optional[str] = None) -> str:
    return _render(_labels(locale)["invoice_title"], today)


def create_empty_invoice_row() -> InvoiceRow:
    return InvoiceRow(id=f"row-{uuid.uuid4().hex[:12]}")


def create_empty_invoice(title: str, rows: int = 10) -> InvoiceReport:
    return InvoiceReport(title=title, rows=[create_empty_invoice_row() for _ in range(rows)])


def recalculate_invoice(invoice: InvoiceReport) -> InvoiceReport:
    rows = [replace(row, amount=calculate_total_amount(row.unit_price, row.count)) for row in invoice.rows]
    return replace(
        invoice,
        rows=rows,
        total_count=sum(row.count for row in rows),
        total_amount=sum(row.amount for row in rows),
    )


def invoice_from_trips(
    trips: Iterable[Any],
    title: str,
    site_info: Optional[InvoiceSiteInfo] = None,
    direction: str = "inbound",
) -> InvoiceReport:
    rows = [
        InvoiceRow(
            id=f"trip-{trip.id}",
            date=trip.date,
            item=route_item(trip.departure, trip.destination),
            direction=direction,
            count=trip.count,
            unit_price=trip.unit_price,
            amount=trip.total_amount,
            memo=getattr(trip, "memo", None) or "",
        )
        for trip in sorted(trips, key=lambda trip: trip.date)
    ]
    return InvoiceReport(
        title=title,
        site_info=site_info or InvoiceSiteInfo(),
        rows=rows,
        total_count=sum(row.count for row in rows),
        total_amount=sum(row.amount for row in rows),
    )


def invoice_from_dict(data: Dict[str, Any]) -> InvoiceReport:
    site = data.get("site_info") or {}
    rows = []
    for raw in data.get("rows") or []:
        row = dict(raw)
        if not row.get("id"):
            row["id"] = create_empty_invoice_row().id
        rows.append(InvoiceRow(**row))
    return InvoiceReport(
        title=data.get("title") or "",
        site_info=InvoiceSiteInfo(**site),
        rows=rows,
        total_count=data.get("total_count") or 0,
        total_amount=data.get("total_amount") or 0.0,
    )
