from __future__ import annotations

import datetime as dt

import pytest
from fastapi.testclient import TestClient

from triplog_client import api_client as api_client_module
from triplog_client.api_client import ApiClient, ApiError
from triplog_client.config import load_config


@pytest.fixture()
def api(client: TestClient, monkeypatch) -> ApiClient:
    def fake_request(method, url, **kwargs):
        return client.request(method, url, **kwargs)

    monkeypatch.setattr(api_client_module.requests, "request", fake_request)
    return ApiClient("http://testserver", locale="en-US")


def test_client_round_trip(api: ApiClient):
    api.register("client@example.com", "Client")
    assert api.get_profile()["email"] == "client@example.com"

    vehicle = api.create_vehicle("Truck", "99다9999", drivers=["Choi"], default_unit_price=30000)
    assert vehicle.label == "99다9999 (Truck)"
    assert [item.vehicle_id for item in api.list_vehicles()] == [vehicle.vehicle_id]

    today = dt.date.today()
    trip = api.create_trip(today, "Seoul", "Suwon", 30000, vehicle.vehicle_id, count=2)
    assert trip.total_amount == 60000
    assert trip.date == today
    assert trip.created_at is not None

    updated = api.update_trip(trip.trip_id, count=3)
    assert updated.total_amount == 90000
    assert api.get_recent_unit_price("Seoul", "Suwon") == 30000

    stats = api.get_period_stats(today, today)
    assert stats.total_trips == 3
    assert stats.top_routes[0].destination == "Suwon"

    daily = api.daily_report(today, today)
    assert daily["total_count"] == 3
    assert daily["formatted_total"] == "$90,000"
    assert api.daily_report(today, today, locale="ko-KR")["formatted_total"] == "90,000원"

    note = api.create_note("Fuel", [["liters"], [40]])
    assert [item.note_id for item in api.list_notes()] == [note.note_id]

    api.delete_trip(trip.trip_id)
    assert api.list_trips() == []


def test_client_raises_api_error(api: ApiClient):
    with pytest.raises(ApiError) as excinfo:
        api.list_trips()
    assert excinfo.value.status_code == 401

    api.register("errors@example.com")
    with pytest.raises(ApiError) as excinfo:
        api.delete_trip(12345)
    assert excinfo.value.status_code == 404


def test_load_config_reads_environment(monkeypatch, tmp_path):
    monkeypatch.setenv("TRIPLOG_API_BASE_URL", "http://api.example.com")
    monkeypatch.setenv("TRIPLOG_API_TOKEN", "secret")
    monkeypatch.setenv("TRIPLOG_API_TIMEOUT", "5")
    monkeypatch.setenv("TRIPLOG_LOCALE", "de-DE")
    config = load_config(tmp_path / "missing.env")
    assert config.api_base_url == "http://api.example.com"
    assert config.api_token == "secret"
    assert config.timeout_seconds == 5

    client = ApiClient.from_config(config)
    assert client.base_url == "http://api.example.com/"
    assert client.token == "secret"
    assert client.locale == "de-DE"
