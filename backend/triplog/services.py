from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, List, Optional, Set, Tuple

from zoneinfo import ZoneInfo

from fastapi import HTTPException, status
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from . import aggregation, reports
from .config import settings
from .models import Location, Note, Report, Trip, User, Vehicle, utcnow
from .state import RoutePrice, RoutePriceCache, route_price_cache

logger = logging.getLogger(__name__)

LOCAL_TZ = ZoneInfo(settings.timezone)

TRIP_FIELDS: Set[str] = {
    "date",
    "start_time",
    "end_time",
    "departure",
    "destination",
    "unit_price",
    "count",
    "vehicle_id",
    "driver_name",
    "memo",
}


def _today() -> dt.date:
    return dt.datetime.now(LOCAL_TZ).date()


def _normalize_optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = value.strip()
    return normalized or None


def _normalize_drivers(values: Optional[List[str]]) -> List[str]:
    seen: Set[str] = set()
    drivers: List[str] = []
    for value in values or []:
        candidate = _normalize_optional(value)
        if not candidate or candidate in seen:
            continue
        drivers.append(candidate)
        seen.add(candidate)
    return drivers


def _like_pattern(query: str) -> str:
    escaped = query.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


def _check_range(start_date: Optional[dt.date], end_date: Optional[dt.date]) -> None:
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="End date must not be before start date")


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def register_user(db: Session, email: str, full_name: Optional[str] = None) -> User:
    existing = db.query(User).filter(func.lower(User.email) == email.lower()).one_or_none()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
    user = User(email=email.lower(), full_name=_normalize_optional(full_name))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)
    return user


def update_profile(db: Session, user: User, changes: Dict[str, Any]) -> User:
    if "full_name" in changes:
        user.full_name = _normalize_optional(changes["full_name"])
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def delete_account(db: Session, user: User, cache: RoutePriceCache = route_price_cache) -> None:
    user_id = user.id
    # Trips reference vehicles, so they go first
    for model in (Trip, Vehicle, Location, Note, Report):
        db.query(model).filter(model.user_id == user_id).delete(synchronize_session=False)
    db.delete(user)
    db.commit()
    cache.invalidate_user(user_id)
    logger.info("Deleted account %s and all owned rows", user_id)


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------


def _get_vehicle(db: Session, user: User, vehicle_id: int) -> Vehicle:
    vehicle = db.query(Vehicle).filter(Vehicle.id == vehicle_id, Vehicle.user_id == user.id).one_or_none()
    if not vehicle:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    return vehicle


def list_vehicles(db: Session, user: User) -> List[Vehicle]:
    return (
        db.query(Vehicle)
        .filter(Vehicle.user_id == user.id)
        .order_by(Vehicle.created_at.desc(), Vehicle.id.desc())
        .all()
    )


def create_vehicle(
    db: Session,
    user: User,
    name: str,
    license_plate: str,
    main_driver: Optional[str] = None,
    drivers: Optional[List[str]] = None,
    default_unit_price: Optional[float] = None,
) -> Vehicle:
    vehicle = Vehicle(
        user_id=user.id,
        name=name.strip(),
        license_plate=license_plate.strip(),
        main_driver=_normalize_optional(main_driver),
        drivers=_normalize_drivers(drivers),
        default_unit_price=default_unit_price,
    )
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    logger.info("Created vehicle %s for user %s", vehicle.id, user.id)
    return vehicle


def update_vehicle(db: Session, user: User, vehicle_id: int, changes: Dict[str, Any]) -> Vehicle:
    vehicle = _get_vehicle(db, user, vehicle_id)
    for key in ("name", "license_plate"):
        if key in changes:
            value = _normalize_optional(changes[key])
            if not value:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{key} must not be empty")
            setattr(vehicle, key, value)
    if "main_driver" in changes:
        vehicle.main_driver = _normalize_optional(changes["main_driver"])
    if "drivers" in changes:
        vehicle.drivers = _normalize_drivers(changes["drivers"])
    if "default_unit_price" in changes:
        vehicle.default_unit_price = changes["default_unit_price"]
    db.add(vehicle)
    db.commit()
    db.refresh(vehicle)
    return vehicle


def delete_vehicle(db: Session, user: User, vehicle_id: int) -> None:
    vehicle = _get_vehicle(db, user, vehicle_id)
    in_use = db.query(Trip.id).filter(Trip.vehicle_id == vehicle.id).first()
    if in_use:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Vehicle still has recorded trips")
    db.delete(vehicle)
    db.commit()
    logger.info("Deleted vehicle %s for user %s", vehicle_id, user.id)


def search_vehicles(db: Session, user: User, query: str) -> List[Dict[str, Any]]:
    """Exact plate matches first, then partial plate matches, then name matches."""
    query = query.strip()
    if not query:
        return []
    base = db.query(Vehicle).filter(Vehicle.user_id == user.id)
    pattern = _like_pattern(query)
    results: List[Dict[str, Any]] = []
    seen: Set[int] = set()

    def _add(vehicle: Vehicle, result_type: str, info: Optional[str] = None) -> None:
        if vehicle.id in seen:
            return
        seen.add(vehicle.id)
        metadata: Dict[str, Any] = {"vehicle_id": vehicle.id}
        if info:
            metadata["additional_info"] = info
        results.append(
            {
                "id": f"{result_type}-{vehicle.id}",
                "value": vehicle.license_plate,
                "label": reports.vehicle_label(vehicle),
                "type": result_type,
                "category": "vehicle",
                "metadata": metadata,
            }
        )

    for vehicle in base.filter(Vehicle.license_plate == query).all():
        _add(vehicle, "exact")
    partial = (
        base.filter(Vehicle.license_plate.ilike(pattern, escape="\\"), Vehicle.license_plate != query)
        .order_by(Vehicle.license_plate.asc())
        .limit(5)
        .all()
    )
    for vehicle in partial:
        price = vehicle.default_unit_price
        _add(vehicle, "search", reports.format_amount(price, settings.locale) if price else None)
    if len(query) > 1:
        for vehicle in base.filter(Vehicle.name.ilike(pattern, escape="\\")).order_by(Vehicle.name.asc()).limit(3).all():
            _add(vehicle, "search", "name")
    return results


def vehicle_statistics(db: Session, user: User, vehicle_id: int) -> aggregation.VehicleStats:
    trips = db.query(Trip).filter(Trip.user_id == user.id, Trip.vehicle_id == vehicle_id).all()
    stats = aggregation.vehicle_stats(vehicle_id, trips, list_vehicles(db, user))
    if stats is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    return stats


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


def _get_location(db: Session, user: User, location_id: int) -> Location:
    location = (
        db.query(Location).filter(Location.id == location_id, Location.user_id == user.id).one_or_none()
    )
    if not location:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Location not found")
    return location


def list_locations(
    db: Session,
    user: User,
    category: Optional[str] = None,
    location_type: Optional[str] = None,
) -> List[Location]:
    query = db.query(Location).filter(Location.user_id == user.id)
    if category:
        query = query.filter(Location.category == category)
    if location_type:
        # "both" locations serve either direction
        query = query.filter(or_(Location.type == location_type, Location.type == "both"))
    return query.order_by(Location.created_at.desc(), Location.id.desc()).all()


def create_location(
    db: Session,
    user: User,
    name: str,
    alias: Optional[str] = None,
    category: str = "other",
    location_type: str = "both",
) -> Location:
    location = Location(
        user_id=user.id,
        name=name.strip(),
        alias=_normalize_optional(alias),
        category=category,
        type=location_type,
    )
    db.add(location)
    db.commit()
    db.refresh(location)
    logger.info("Created location %s for user %s", location.id, user.id)
    return location


def update_location(db: Session, user: User, location_id: int, changes: Dict[str, Any]) -> Location:
    location = _get_location(db, user, location_id)
    if "name" in changes:
        name = _normalize_optional(changes["name"])
        if not name:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="name must not be empty")
        location.name = name
    if "alias" in changes:
        location.alias = _normalize_optional(changes["alias"])
    if changes.get("category") is not None:
        location.category = changes["category"]
    if changes.get("type") is not None:
        location.type = changes["type"]
    db.add(location)
    db.commit()
    db.refresh(location)
    return location


def delete_location(db: Session, user: User, location_id: int) -> None:
    location = _get_location(db, user, location_id)
    db.delete(location)
    db.commit()


def location_usage(db: Session, user: User, location_id: int) -> Dict[str, Any]:
    location = _get_location(db, user, location_id)
    scoped = db.query(func.coalesce(func.sum(Trip.count), 0)).filter(Trip.user_id == user.id)
    departure_trips = scoped.filter(Trip.departure == location.name).scalar() or 0
    destination_trips = scoped.filter(Trip.destination == location.name).scalar() or 0
    return {
        "location_id": location.id,
        "name": location.name,
        "departure_trips": int(departure_trips),
        "destination_trips": int(destination_trips),
        "total_trips": int(departure_trips + destination_trips),
    }


def search_locations(db: Session, user: User, query: str, limit: int = 10) -> List[Dict[str, Any]]:
    query = query.strip()
    if not query:
        return []
    base = db.query(Location).filter(Location.user_id == user.id)
    pattern = _like_pattern(query)
    results: List[Dict[str, Any]] = []
    seen: Set[int] = set()
    exact = base.filter(or_(Location.name == query, Location.alias == query)).all()
    partial = (
        base.filter(or_(Location.name.ilike(pattern, escape="\\"), Location.alias.ilike(pattern, escape="\\")))
        .order_by(Location.name.asc())
        .limit(limit)
        .all()
    )
    for result_type, locations in (("exact", exact), ("search", partial)):
        for location in locations:
            if location.id in seen:
                continue
            seen.add(location.id)
            label = f"{location.name} ({location.alias})" if location.alias else location.name
            results.append(
                {
                    "id": f"{result_type}-{location.id}",
                    "value": location.name,
                    "label": label,
                    "type": result_type,
                    "category": "location",
                    "metadata": {"location_id": location.id, "category": location.category},
                }
            )
    return results[:limit]


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------


def _get_trip(db: Session, user: User, trip_id: int) -> Trip:
    trip = db.query(Trip).filter(Trip.id == trip_id, Trip.user_id == user.id).one_or_none()
    if not trip:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Trip not found")
    return trip


def list_trips(
    db: Session,
    user: User,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
    vehicle_id: Optional[int] = None,
) -> List[Trip]:
    _check_range(start_date, end_date)
    query = db.query(Trip).filter(Trip.user_id == user.id)
    if start_date:
        query = query.filter(Trip.date >= start_date)
    if end_date:
        query = query.filter(Trip.date <= end_date)
    if vehicle_id is not None:
        query = query.filter(Trip.vehicle_id == vehicle_id)
    return query.order_by(Trip.date.desc(), Trip.id.desc()).all()


def get_trip(db: Session, user: User, trip_id: int) -> Trip:
    return _get_trip(db, user, trip_id)


def create_trip(
    db: Session,
    user: User,
    payload: Dict[str, Any],
    cache: RoutePriceCache = route_price_cache,
) -> Trip:
    values = {key: value for key, value in payload.items() if key in TRIP_FIELDS}
    _get_vehicle(db, user, values["vehicle_id"])
    values["driver_name"] = _normalize_optional(values.get("driver_name"))
    values["memo"] = _normalize_optional(values.get("memo"))
    trip = Trip(user_id=user.id, **values)
    trip.total_amount = aggregation.calculate_total_amount(trip.unit_price, trip.count)
    db.add(trip)
    db.commit()
    db.refresh(trip)
    cache.invalidate_user(user.id)
    logger.info("Recorded trip %s (%s -> %s) for user %s", trip.id, trip.departure, trip.destination, user.id)
    return trip


def update_trip(
    db: Session,
    user: User,
    trip_id: int,
    changes: Dict[str, Any],
    cache: RoutePriceCache = route_price_cache,
) -> Trip:
    trip = _get_trip(db, user, trip_id)
    if changes.get("vehicle_id") is not None:
        _get_vehicle(db, user, changes["vehicle_id"])
    for key in ("departure", "destination"):
        if key in changes:
            value = _normalize_optional(changes[key])
            if not value:
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{key} must not be empty")
            changes[key] = value
    for key in ("driver_name", "memo"):
        if key in changes:
            changes[key] = _normalize_optional(changes[key])
    for key, value in changes.items():
        if key not in TRIP_FIELDS:
            continue
        if value is None and key in {"date", "unit_price", "count", "vehicle_id"}:
            continue
        setattr(trip, key, value)
    trip.total_amount = aggregation.calculate_total_amount(trip.unit_price, trip.count)
    trip.updated_at = utcnow()
    db.add(trip)
    db.commit()
    db.refresh(trip)
    cache.invalidate_user(user.id)
    return trip


def delete_trip(db: Session, user: User, trip_id: int, cache: RoutePriceCache = route_price_cache) -> None:
    trip = _get_trip(db, user, trip_id)
    db.delete(trip)
    db.commit()
    cache.invalidate_user(user.id)
    logger.info("Deleted trip %s for user %s", trip_id, user.id)


def get_recent_unit_price(
    db: Session,
    user: User,
    departure: str,
    destination: str,
    today: Optional[dt.date] = None,
    cache: RoutePriceCache = route_price_cache,
) -> Optional[float]:
    """Unit price of the latest trip on this route inside the look-back window."""
    departure = departure.strip()
    destination = destination.strip()
    cached = cache.get(user.id, departure, destination)
    if cached is not None:
        return cached.unit_price

    since = (today or _today()) - dt.timedelta(days=settings.recent_price_days)
    latest = (
        db.query(Trip)
        .filter(
            and_(
                Trip.user_id == user.id,
                Trip.departure == departure,
                Trip.destination == destination,
                Trip.date >= since,
            )
        )
        .order_by(Trip.date.desc(), Trip.id.desc())
        .first()
    )
    if latest is None:
        return None
    cache.put(
        user.id,
        RoutePrice(departure=departure, destination=destination, unit_price=latest.unit_price, last_used=latest.date),
    )
    return latest.unit_price


# ---------------------------------------------------------------------------
# Statistics and reports
# ---------------------------------------------------------------------------


def period_statistics(
    db: Session,
    user: User,
    start_date: Optional[dt.date] = None,
    end_date: Optional[dt.date] = None,
) -> aggregation.PeriodStats:
    trips = list_trips(db, user, start_date, end_date)
    return aggregation.period_stats(trips, limit=settings.top_routes_limit)


def user_overview(db: Session, user: User, today: Optional[dt.date] = None) -> aggregation.UserOverview:
    return aggregation.user_overview(list_trips(db, user), list_vehicles(db, user), today or _today())


def build_daily_report(
    db: Session,
    user: User,
    start_date: dt.date,
    end_date: dt.date,
    vehicle_id: Optional[int] = None,
    departure_filter: Optional[str] = None,
    destination_filter: Optional[str] = None,
    locale: Optional[str] = None,
) -> Tuple[reports.DailyReport, str]:
    locale = locale or settings.locale
    report = reports.generate_daily_report(
        list_trips(db, user, start_date, end_date),
        list_vehicles(db, user),
        start_date,
        end_date,
        vehicle_id=vehicle_id,
        departure_filter=departure_filter,
        destination_filter=destination_filter,
        locale=locale,
    )
    return report, reports.format_amount(report.monthly_total, locale)


def build_monthly_report(
    db: Session,
    user: User,
    start_date: dt.date,
    end_date: dt.date,
    vehicle_id: Optional[int] = None,
    locale: Optional[str] = None,
) -> Tuple[reports.MonthlyReport, str]:
    locale = locale or settings.locale
    trips = list_trips(db, user, start_date, end_date, vehicle_id)
    report = reports.generate_monthly_report(trips, locale=locale, blank_rows=settings.monthly_blank_rows)
    return report, reports.format_amount(report.total_amount, locale)


def build_invoice_template(title: Optional[str] = None, locale: Optional[str] = None) -> reports.InvoiceReport:
    title = _normalize_optional(title) or reports.default_invoice_title(_today(), locale or settings.locale)
    return reports.create_empty_invoice(title, rows=settings.invoice_template_rows)


def build_invoice_from_trips(
    db: Session,
    user: User,
    start_date: dt.date,
    end_date: dt.date,
    title: Optional[str] = None,
    vehicle_id: Optional[int] = None,
    direction: str = "inbound",
    site_info: Optional[Dict[str, Any]] = None,
    locale: Optional[str] = None,
) -> reports.InvoiceReport:
    trips = list_trips(db, user, start_date, end_date, vehicle_id)
    title = _normalize_optional(title) or reports.default_invoice_title(start_date, locale or settings.locale)
    return reports.invoice_from_trips(
        trips,
        title,
        site_info=reports.InvoiceSiteInfo(**site_info) if site_info else None,
        direction=direction,
    )


# ---------------------------------------------------------------------------
# Saved reports
# ---------------------------------------------------------------------------


def _get_report(db: Session, user: User, report_id: int) -> Report:
    report = db.query(Report).filter(Report.id == report_id, Report.user_id == user.id).one_or_none()
    if not report:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found")
    return report


def list_reports(db: Session, user: User, report_type: Optional[str] = None) -> List[Report]:
    query = db.query(Report).filter(Report.user_id == user.id)
    if report_type:
        query = query.filter(Report.type == report_type)
    return query.order_by(Report.created_at.desc(), Report.id.desc()).all()


def get_report(db: Session, user: User, report_id: int) -> Report:
    return _get_report(db, user, report_id)


def save_report(
    db: Session,
    user: User,
    title: str,
    report_type: str,
    settings_data: Dict[str, Any],
    data: Dict[str, Any],
    editable_rows: Optional[List[Any]] = None,
) -> Report:
    report = Report(
        user_id=user.id,
        title=title.strip(),
        type=report_type,
        settings=settings_data,
        data=data,
        editable_rows=editable_rows or None,
    )
    db.add(report)
    db.commit()
    db.refresh(report)
    logger.info("Saved %s report %s for user %s", report_type, report.id, user.id)
    return report


def update_report(db: Session, user: User, report_id: int, changes: Dict[str, Any]) -> Report:
    report = _get_report(db, user, report_id)
    if "title" in changes:
        title = _normalize_optional(changes["title"])
        if not title:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="title must not be empty")
        report.title = title
    for key in ("settings", "data", "editable_rows"):
        if key in changes and (changes[key] is not None or key == "editable_rows"):
            setattr(report, key, changes[key])
    report.updated_at = utcnow()
    db.add(report)
    db.commit()
    db.refresh(report)
    return report


def delete_report(db: Session, user: User, report_id: int) -> None:
    report = _get_report(db, user, report_id)
    db.delete(report)
    db.commit()


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


def _get_note(db: Session, user: User, note_id: int) -> Note:
    note = db.query(Note).filter(Note.id == note_id, Note.user_id == user.id).one_or_none()
    if not note:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Note not found")
    return note


def list_notes(db: Session, user: User) -> List[Note]:
    notes = db.query(Note).filter(Note.user_id == user.id).all()
    # Most recently touched first; never-edited notes fall back to creation time
    return sorted(notes, key=lambda note: (note.updated_at or note.created_at, note.id), reverse=True)


def create_note(db: Session, user: User, title: str, content: Optional[List[List[Any]]] = None) -> Note:
    note = Note(user_id=user.id, title=title.strip(), content=content or [])
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def update_note(db: Session, user: User, note_id: int, changes: Dict[str, Any]) -> Note:
    note = _get_note(db, user, note_id)
    if "title" in changes:
        title = _normalize_optional(changes["title"])
        if not title:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="title must not be empty")
        note.title = title
    if changes.get("content") is not None:
        note.content = changes["content"]
    note.updated_at = utcnow()
    db.add(note)
    db.commit()
    db.refresh(note)
    return note


def delete_note(db: Session, user: User, note_id: int) -> None:
    note = _get_note(db, user, note_id)
    db.delete(note)
    db.commit()
