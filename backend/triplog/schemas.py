from __future__ import annotations

import datetime as dt
from typing import Any, Dict, List, Optional

from typing_extensions import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_serializer, model_validator

LocationCategory = Literal["company", "client", "personal", "other"]
LocationType = Literal["departure", "destination", "both"]
ReportType = Literal["daily", "monthly", "invoice"]
InvoiceDirection = Literal["inbound", "outbound"]

# Bounded so stored totals stay finite and fit an SQLite INTEGER
MAX_COUNT = 2**31 - 1
MAX_UNIT_PRICE = 1e12


def _serialize_datetime(value: dt.datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=dt.timezone.utc)
    else:
        value = value.astimezone(dt.timezone.utc)
    return value.isoformat()


def _strip_required(value: str) -> str:
    stripped = value.strip()
    if not stripped:
        raise ValueError("must not be empty")
    return stripped


class _DateRange(BaseModel):
    start_date: dt.date
    end_date: dt.date

    @model_validator(mode="after")
    def _check_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


# ---------------------------------------------------------------------------
# Users and tokens
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    email: str
    full_name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        value = _strip_required(value).lower()
        if "@" not in value:
            raise ValueError("invalid email address")
        return value


class ProfileUpdateRequest(BaseModel):
    full_name: Optional[str] = None


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    email: str
    full_name: Optional[str]
    created_at: dt.datetime

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "created_at": _serialize_datetime(self.created_at),
        }


class TokenCreateRequest(BaseModel):
    ttl_minutes: Optional[int] = Field(default=None, ge=1)


class TokenCreatedResponse(BaseModel):
    id: int
    user: UserResponse
    expires_at: Optional[dt.datetime]
    token: str

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user": self.user._serialize(),
            "expires_at": _serialize_datetime(self.expires_at) if self.expires_at else None,
            "token": self.token,
        }


# ---------------------------------------------------------------------------
# Vehicles and locations
# ---------------------------------------------------------------------------


class VehicleCreateRequest(BaseModel):
    name: str
    license_plate: str
    main_driver: Optional[str] = None
    drivers: List[str] = Field(default_factory=list)
    default_unit_price: Optional[float] = Field(default=None, ge=0, le=MAX_UNIT_PRICE, allow_inf_nan=False)

    @field_validator("name", "license_plate")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return _strip_required(value)


class VehicleUpdateRequest(BaseModel):
    name: Optional[str] = None
    license_plate: Optional[str] = None
    main_driver: Optional[str] = None
    drivers: Optional[List[str]] = None
    default_unit_price: Optional[float] = Field(default=None, ge=0, le=MAX_UNIT_PRICE, allow_inf_nan=False)


class VehicleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    license_plate: str
    main_driver: Optional[str]
    drivers: List[str]
    default_unit_price: Optional[float]


class LocationCreateRequest(BaseModel):
    name: str
    alias: Optional[str] = None
    category: LocationCategory = "other"
    type: LocationType = "both"

    @field_validator("name")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return _strip_required(value)


class LocationUpdateRequest(BaseModel):
    name: Optional[str] = None
    alias: Optional[str] = None
    category: Optional[LocationCategory] = None
    type: Optional[LocationType] = None


class LocationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    alias: Optional[str]
    category: str
    type: str


class LocationUsageResponse(BaseModel):
    location_id: int
    name: str
    departure_trips: int
    destination_trips: int
    total_trips: int


class SearchResultResponse(BaseModel):
    id: str
    value: str
    label: str
    type: Literal["exact", "search"]
    category: Literal["vehicle", "location"]
    metadata: Dict[str, Any] = Field(default_factory=dict)


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------


class TripCreateRequest(BaseModel):
    date: dt.date
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    departure: str
    destination: str
    unit_price: float = Field(ge=0, le=MAX_UNIT_PRICE, allow_inf_nan=False)
    count: int = Field(default=1, ge=1, le=MAX_COUNT)
    vehicle_id: int
    driver_name: Optional[str] = None
    memo: Optional[str] = None

    @field_validator("departure", "destination")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return _strip_required(value)


class TripUpdateRequest(BaseModel):
    date: Optional[dt.date] = None
    start_time: Optional[dt.time] = None
    end_time: Optional[dt.time] = None
    departure: Optional[str] = None
    destination: Optional[str] = None
    unit_price: Optional[float] = Field(default=None, ge=0, le=MAX_UNIT_PRICE, allow_inf_nan=False)
    count: Optional[int] = Field(default=None, ge=1, le=MAX_COUNT)
    vehicle_id: Optional[int] = None
    driver_name: Optional[str] = None
    memo: Optional[str] = None


class TripResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    date: dt.date
    start_time: Optional[dt.time]
    end_time: Optional[dt.time]
    departure: str
    destination: str
    unit_price: float
    count: int
    total_amount: float
    vehicle_id: int
    driver_name: Optional[str]
    memo: Optional[str]
    created_at: dt.datetime
    updated_at: Optional[dt.datetime]

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "start_time": self.start_time.strftime("%H:%M") if self.start_time else None,
            "end_time": self.end_time.strftime("%H:%M") if self.end_time else None,
            "departure": self.departure,
            "destination": self.destination,
            "unit_price": self.unit_price,
            "count": self.count,
            "total_amount": self.total_amount,
            "vehicle_id": self.vehicle_id,
            "driver_name": self.driver_name,
            "memo": self.memo,
            "created_at": _serialize_datetime(self.created_at),
            "updated_at": _serialize_datetime(self.updated_at) if self.updated_at else None,
        }


class RecentPriceResponse(BaseModel):
    departure: str
    destination: str
    unit_price: Optional[float]


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


class RouteAggregateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    departure: str
    destination: str
    total_count: int
    total_amount: float


class DepartureAggregateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    departure: str
    total_count: int
    total_amount: float


class PeriodStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    total_trips: int
    total_amount: float
    unique_routes: int
    top_routes: List[RouteAggregateResponse]


class VehicleStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    vehicle: VehicleResponse
    total_trips: int
    total_amount: float
    avg_unit_price: float
    most_frequent_route: Optional[RouteAggregateResponse] = None


class VehicleUsageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    vehicle: VehicleResponse
    trip_count: int
    amount: float


class UserOverviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    total_trips: int
    total_amount: float
    this_month_trips: int
    this_month_amount: float
    trips_last_7_days: int
    trips_last_30_days: int
    last_trip_date: Optional[dt.date]
    first_trip_date: Optional[dt.date]
    days_since_first_trip: int
    unique_routes: int
    top_vehicles: List[VehicleUsageResponse]
    most_used_vehicle: Optional[VehicleUsageResponse] = None
    most_frequent_route: Optional[RouteAggregateResponse] = None


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class DailyReportRequest(_DateRange):
    vehicle_id: Optional[int] = None
    departure_filter: Optional[str] = None
    destination_filter: Optional[str] = None
    locale: Optional[str] = None


class DailyTripRowResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    trip_id: int
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


class DailyDestinationLineResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    destination: str
    total_count: int
    total_amount: float


class DailyDepartureGroupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    departure: str
    total_count: int
    total_amount: float
    destinations: List[DailyDestinationLineResponse]


class DailyReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    period: str
    vehicle_name: str
    rows: List[DailyTripRowResponse]
    groups: List[DailyDepartureGroupResponse]
    total_count: int
    monthly_total: float
    formatted_total: str = ""


class MonthlyReportRequest(_DateRange):
    vehicle_id: Optional[int] = None
    locale: Optional[str] = None


class MonthlyReportRowModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str
    date: Optional[dt.date] = None
    item: str = ""
    count: int = 0
    unit_price: float = 0.0
    total_amount: float = 0.0


class MonthlyReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    period: str
    rows: List[MonthlyReportRowModel]
    total_amount: float
    departure_stats: List[DepartureAggregateResponse]
    formatted_total: str = ""


class InvoiceSiteInfoModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    site_name: str = ""
    registration_number: str = ""
    company_name: str = ""
    owner_name: str = ""
    address: str = ""
    business_type: str = ""
    business_category: str = ""


class InvoiceRowModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: str = ""
    date: Optional[dt.date] = None
    item: str = ""
    direction: InvoiceDirection = "inbound"
    count: int = Field(default=0, ge=0, le=MAX_COUNT)
    unit_price: float = Field(default=0.0, ge=0, le=MAX_UNIT_PRICE, allow_inf_nan=False)
    amount: float = Field(default=0.0, allow_inf_nan=False)
    memo: str = ""


class InvoiceReportModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    title: str
    site_info: InvoiceSiteInfoModel = Field(default_factory=InvoiceSiteInfoModel)
    rows: List[InvoiceRowModel] = Field(default_factory=list)
    total_count: int = 0
    total_amount: float = Field(default=0.0, allow_inf_nan=False)


class InvoiceFromTripsRequest(_DateRange):
    title: Optional[str] = None
    vehicle_id: Optional[int] = None
    direction: InvoiceDirection = "inbound"
    site_info: Optional[InvoiceSiteInfoModel] = None
    locale: Optional[str] = None


class SavedReportCreateRequest(BaseModel):
    title: str
    type: ReportType
    settings: Dict[str, Any] = Field(default_factory=dict)
    data: Dict[str, Any] = Field(default_factory=dict)
    editable_rows: Optional[List[Any]] = None

    @field_validator("title")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return _strip_required(value)


class SavedReportUpdateRequest(BaseModel):
    title: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    editable_rows: Optional[List[Any]] = None


class SavedReportResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    title: str
    type: str
    settings: Dict[str, Any]
    data: Dict[str, Any]
    editable_rows: Optional[List[Any]] = None
    created_at: dt.datetime
    updated_at: Optional[dt.datetime] = None

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "settings": self.settings,
            "data": self.data,
            "editable_rows": self.editable_rows,
            "created_at": _serialize_datetime(self.created_at),
            "updated_at": _serialize_datetime(self.updated_at) if self.updated_at else None,
        }


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


class NoteCreateRequest(BaseModel):
    title: str
    content: List[List[Any]] = Field(default_factory=list)

    @field_validator("title")
    @classmethod
    def _strip_text(cls, value: str) -> str:
        return _strip_required(value)


class NoteUpdateRequest(BaseModel):
    title: Optional[str] = None
    content: Optional[List[List[Any]]] = None


class NoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    title: str
    content: List[List[Any]]
    created_at: dt.datetime
    updated_at: Optional[dt.datetime] = None

    @model_serializer(mode="plain", when_used="json")
    def _serialize(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "created_at": _serialize_datetime(self.created_at),
            "updated_at": _serialize_datetime(self.updated_at) if self.updated_at else None,
        }
