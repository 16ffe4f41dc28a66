from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

from fastapi import Depends, FastAPI, Query, Response, status
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import Session

from . import models, reports
from .config import settings
from .database import engine, get_db
from .middleware import RequestLogMiddleware
from .models import User
from .schemas import (
    DailyReportRequest,
    DailyReportResponse,
    InvoiceFromTripsRequest,
    InvoiceReportModel,
    LocationCreateRequest,
    LocationResponse,
    LocationUpdateRequest,
    LocationUsageResponse,
    MonthlyReportRequest,
    MonthlyReportResponse,
    NoteCreateRequest,
    NoteResponse,
    NoteUpdateRequest,
    PeriodStatsResponse,
    ProfileUpdateRequest,
    RecentPriceResponse,
    RegisterRequest,
    SavedReportCreateRequest,
    SavedReportResponse,
    SavedReportUpdateRequest,
    SearchResultResponse,
    TokenCreatedResponse,
    TokenCreateRequest,
    TripCreateRequest,
    TripResponse,
    TripUpdateRequest,
    UserOverviewResponse,
    UserResponse,
    VehicleCreateRequest,
    VehicleResponse,
    VehicleStatsResponse,
    VehicleUpdateRequest,
)
from .services import (
    build_daily_report,
    build_invoice_from_trips,
    build_invoice_template,
    build_monthly_report,
    create_location,
    create_note,
    create_trip,
    create_vehicle,
    delete_account,
    delete_location,
    delete_note,
    delete_report,
    delete_trip,
    delete_vehicle,
    get_recent_unit_price,
    get_report,
    get_trip,
    list_locations,
    list_notes,
    list_reports,
    list_trips,
    list_vehicles,
    location_usage,
    period_statistics,
    register_user,
    save_report,
    search_locations,
    search_vehicles,
    update_location,
    update_note,
    update_profile,
    update_report,
    update_trip,
    update_vehicle,
    user_overview,
    vehicle_statistics,
)
from .token_utils import create_token, get_current_user
from .utils import configure_logging

configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

models.Base.metadata.create_all(bind=engine)
logger.info("Database ready at %s", settings.sqlite_path)

app = FastAPI(title=settings.app_name)
app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _token_response(user: User, token, token_value: str) -> TokenCreatedResponse:
    return TokenCreatedResponse(
        id=token.id,
        user=UserResponse.model_validate(user),
        expires_at=token.expires_at,
        token=token_value,
    )


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Auth and profile
# ---------------------------------------------------------------------------


@app.post("/auth/register", response_model=TokenCreatedResponse, status_code=status.HTTP_201_CREATED)
def auth_register(payload: RegisterRequest, db: Session = Depends(get_db)) -> TokenCreatedResponse:
    user = register_user(db, payload.email, payload.full_name)
    token, token_value = create_token(db, user)
    return _token_response(user, token, token_value)


@app.post("/auth/tokens", response_model=TokenCreatedResponse, status_code=status.HTTP_201_CREATED)
def auth_create_token(
    payload: TokenCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TokenCreatedResponse:
    token, token_value = create_token(db, user, payload.ttl_minutes)
    return _token_response(user, token, token_value)


@app.get("/profile", response_model=UserResponse)
def read_profile(user: User = Depends(get_current_user)) -> UserResponse:
    return user


@app.patch("/profile", response_model=UserResponse)
def patch_profile(
    payload: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserResponse:
    return update_profile(db, user, payload.model_dump(exclude_unset=True))


@app.delete("/profile", status_code=status.HTTP_204_NO_CONTENT)
def remove_profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Response:
    delete_account(db, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/profile/overview", response_model=UserOverviewResponse)
def profile_overview(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> UserOverviewResponse:
    return UserOverviewResponse.model_validate(user_overview(db, user))


# ---------------------------------------------------------------------------
# Vehicles
# ---------------------------------------------------------------------------


@app.get("/vehicles", response_model=list[VehicleResponse])
def vehicles_list(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[VehicleResponse]:
    return list_vehicles(db, user)


@app.post("/vehicles", response_model=VehicleResponse, status_code=status.HTTP_201_CREATED)
def vehicles_create(
    payload: VehicleCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> VehicleResponse:
    return create_vehicle(
        db,
        user,
        payload.name,
        payload.license_plate,
        payload.main_driver,
        payload.drivers,
        payload.default_unit_price,
    )


@app.get("/vehicles/search", response_model=list[SearchResultResponse])
def vehicles_search(
    q: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[SearchResultResponse]:
    return search_vehicles(db, user, q)


@app.patch("/vehicles/{vehicle_id}", response_model=VehicleResponse)
def vehicles_update(
    vehicle_id: int,
    payload: VehicleUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> VehicleResponse:
    return update_vehicle(db, user, vehicle_id, payload.model_dump(exclude_unset=True))


@app.delete("/vehicles/{vehicle_id}", status_code=status.HTTP_204_NO_CONTENT)
def vehicles_delete(vehicle_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Response:
    delete_vehicle(db, user, vehicle_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/vehicles/{vehicle_id}/stats", response_model=VehicleStatsResponse)
def vehicles_stats(
    vehicle_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> VehicleStatsResponse:
    return VehicleStatsResponse.model_validate(vehicle_statistics(db, user, vehicle_id))


# ---------------------------------------------------------------------------
# Locations
# ---------------------------------------------------------------------------


@app.get("/locations", response_model=list[LocationResponse])
def locations_list(
    category: Optional[str] = None,
    type: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[LocationResponse]:
    return list_locations(db, user, category, type)


@app.post("/locations", response_model=LocationResponse, status_code=status.HTTP_201_CREATED)
def locations_create(
    payload: LocationCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LocationResponse:
    return create_location(db, user, payload.name, payload.alias, payload.category, payload.type)


@app.get("/locations/search", response_model=list[SearchResultResponse])
def locations_search(
    q: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[SearchResultResponse]:
    return search_locations(db, user, q)


@app.patch("/locations/{location_id}", response_model=LocationResponse)
def locations_update(
    location_id: int,
    payload: LocationUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LocationResponse:
    return update_location(db, user, location_id, payload.model_dump(exclude_unset=True))


@app.delete("/locations/{location_id}", status_code=status.HTTP_204_NO_CONTENT)
def locations_delete(
    location_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    delete_location(db, user, location_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/locations/{location_id}/usage", response_model=LocationUsageResponse)
def locations_usage(
    location_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> LocationUsageResponse:
    return LocationUsageResponse(**location_usage(db, user, location_id))


# ---------------------------------------------------------------------------
# Trips
# ---------------------------------------------------------------------------


@app.get("/trips", response_model=list[TripResponse])
def trips_list(
    from_date: Optional[dt.date] = None,
    to_date: Optional[dt.date] = None,
    vehicle_id: Optional[int] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[TripResponse]:
    return list_trips(db, user, from_date, to_date, vehicle_id)


@app.post("/trips", response_model=TripResponse, status_code=status.HTTP_201_CREATED)
def trips_create(
    payload: TripCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TripResponse:
    return create_trip(db, user, payload.model_dump())


@app.get("/trips/recent-price", response_model=RecentPriceResponse)
def trips_recent_price(
    departure: str = Query(..., min_length=1),
    destination: str = Query(..., min_length=1),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> RecentPriceResponse:
    unit_price = get_recent_unit_price(db, user, departure, destination)
    return RecentPriceResponse(departure=departure.strip(), destination=destination.strip(), unit_price=unit_price)


@app.get("/trips/{trip_id}", response_model=TripResponse)
def trips_read(trip_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> TripResponse:
    return get_trip(db, user, trip_id)


@app.patch("/trips/{trip_id}", response_model=TripResponse)
def trips_update(
    trip_id: int,
    payload: TripUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> TripResponse:
    return update_trip(db, user, trip_id, payload.model_dump(exclude_unset=True))


@app.delete("/trips/{trip_id}", status_code=status.HTTP_204_NO_CONTENT)
def trips_delete(trip_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Response:
    delete_trip(db, user, trip_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.get("/stats/period", response_model=PeriodStatsResponse)
def stats_period(
    from_date: Optional[dt.date] = None,
    to_date: Optional[dt.date] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> PeriodStatsResponse:
    return PeriodStatsResponse.model_validate(period_statistics(db, user, from_date, to_date))


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


@app.post("/reports/daily", response_model=DailyReportResponse)
def reports_daily(
    payload: DailyReportRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> DailyReportResponse:
    report, formatted_total = build_daily_report(
        db,
        user,
        payload.start_date,
        payload.end_date,
        payload.vehicle_id,
        payload.departure_filter,
        payload.destination_filter,
        payload.locale,
    )
    response = DailyReportResponse.model_validate(report)
    response.formatted_total = formatted_total
    return response


@app.post("/reports/monthly", response_model=MonthlyReportResponse)
def reports_monthly(
    payload: MonthlyReportRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MonthlyReportResponse:
    report, formatted_total = build_monthly_report(
        db, user, payload.start_date, payload.end_date, payload.vehicle_id, payload.locale
    )
    response = MonthlyReportResponse.model_validate(report)
    response.formatted_total = formatted_total
    return response


@app.get("/reports/invoice/template", response_model=InvoiceReportModel)
def reports_invoice_template(
    title: Optional[str] = None,
    locale: Optional[str] = None,
    user: User = Depends(get_current_user),
) -> InvoiceReportModel:
    return InvoiceReportModel.model_validate(build_invoice_template(title, locale))


@app.post("/reports/invoice", response_model=InvoiceReportModel)
def reports_invoice(
    payload: InvoiceFromTripsRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> InvoiceReportModel:
    invoice = build_invoice_from_trips(
        db,
        user,
        payload.start_date,
        payload.end_date,
        payload.title,
        payload.vehicle_id,
        payload.direction,
        payload.site_info.model_dump() if payload.site_info else None,
        payload.locale,
    )
    return InvoiceReportModel.model_validate(invoice)


@app.post("/reports/invoice/recalculate", response_model=InvoiceReportModel)
def reports_invoice_recalculate(
    payload: InvoiceReportModel,
    user: User = Depends(get_current_user),
) -> InvoiceReportModel:
    invoice = reports.recalculate_invoice(reports.invoice_from_dict(payload.model_dump()))
    return InvoiceReportModel.model_validate(invoice)


@app.get("/reports/saved", response_model=list[SavedReportResponse])
def saved_reports_list(
    type: Optional[str] = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> list[SavedReportResponse]:
    return list_reports(db, user, type)


@app.post("/reports/saved", response_model=SavedReportResponse, status_code=status.HTTP_201_CREATED)
def saved_reports_create(
    payload: SavedReportCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SavedReportResponse:
    return save_report(db, user, payload.title, payload.type, payload.settings, payload.data, payload.editable_rows)


@app.get("/reports/saved/{report_id}", response_model=SavedReportResponse)
def saved_reports_read(
    report_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SavedReportResponse:
    return get_report(db, user, report_id)


@app.patch("/reports/saved/{report_id}", response_model=SavedReportResponse)
def saved_reports_update(
    report_id: int,
    payload: SavedReportUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> SavedReportResponse:
    return update_report(db, user, report_id, payload.model_dump(exclude_unset=True))


@app.delete("/reports/saved/{report_id}", status_code=status.HTTP_204_NO_CONTENT)
def saved_reports_delete(
    report_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Response:
    delete_report(db, user, report_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Notes
# ---------------------------------------------------------------------------


@app.get("/notes", response_model=list[NoteResponse])
def notes_list(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> list[NoteResponse]:
    return list_notes(db, user)


@app.post("/notes", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
def notes_create(
    payload: NoteCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NoteResponse:
    return create_note(db, user, payload.title, payload.content)


@app.patch("/notes/{note_id}", response_model=NoteResponse)
def notes_update(
    note_id: int,
    payload: NoteUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> NoteResponse:
    return update_note(db, user, note_id, payload.model_dump(exclude_unset=True))


@app.delete("/notes/{note_id}", status_code=status.HTTP_204_NO_CONTENT)
def notes_delete(note_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> Response:
    delete_note(db, user, note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
