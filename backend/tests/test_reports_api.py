from __future__ import annotations

import datetime as dt

from fastapi.testclient import TestClient


def add_trips(client: TestClient, headers, vehicle_id: int) -> None:
    trips = [
        ("2024-01-03", "Seoul", "Busan", 50000, 2),
        ("2024-01-01", "Seoul", "Incheon", 30000, 1),
        ("2024-01-02", "Daegu", "Busan", 40000, 1),
        ("2024-02-10", "Seoul", "Busan", 50000, 1),
    ]
    for day, departure, destination, unit_price, count in trips:
        resp = client.post(
            "/trips",
            json={
                "date": day,
                "departure": departure,
                "destination": destination,
                "unit_price": unit_price,
                "count": count,
                "vehicle_id": vehicle_id,
            },
            headers=headers,
        )
        assert resp.status_code == 201


def test_daily_report(client: TestClient, auth_headers, vehicle):
    add_trips(client, auth_headers, vehicle["id"])
    resp = client.post(
        "/reports/daily",
        json={"start_date": "2024-01-01", "end_date": "2024-01-31"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    report = resp.json()
    assert report["period"] == "2024년 01월 01일 ~ 01월 31일"
    assert report["vehicle_name"] == "전체 차량"
    assert [row["date"] for row in report["rows"]] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert report["rows"][0]["vehicle_number"] == "12가3456 (Truck 1)"
    assert report["total_count"] == 4
    assert report["monthly_total"] == 170000
    assert report["formatted_total"] == "170,000원"
    assert [group["departure"] for group in report["groups"]] == ["Daegu", "Seoul"]
    seoul = report["groups"][1]
    assert [line["destination"] for line in seoul["destinations"]] == ["Busan", "Incheon"]
    assert seoul["total_amount"] == 130000


def test_daily_report_filters_and_locale(client: TestClient, auth_headers, vehicle):
    add_trips(client, auth_headers, vehicle["id"])
    resp = client.post(
        "/reports/daily",
        json={
            "start_date": "2024-01-01",
            "end_date": "2024-01-31",
            "vehicle_id": vehicle["id"],
            "destination_filter": "busan",
            "locale": "en-US",
        },
        headers=auth_headers,
    )
    report = resp.json()
    assert report["period"] == "Jan 01, 2024 - Jan 31"
    assert report["vehicle_name"] == "12가3456 (Truck 1) (Destination: busan)"
    assert report["total_count"] == 3
    assert report["formatted_total"] == "$140,000"


def test_daily_report_without_data_and_bad_range(client: TestClient, auth_headers):
    resp = client.post("/reports/daily", json={"start_date": "2030-01-01", "end_date": "2030-01-02"}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["vehicle_name"] == "데이터 없음"
    assert resp.json()["rows"] == []

    bad = client.post("/reports/daily", json={"start_date": "2024-01-02", "end_date": "2024-01-01"}, headers=auth_headers)
    assert bad.status_code == 422


def test_monthly_report(client: TestClient, auth_headers, vehicle):
    add_trips(client, auth_headers, vehicle["id"])
    resp = client.post(
        "/reports/monthly",
        json={"start_date": "2024-01-01", "end_date": "2024-02-29"},
        headers=auth_headers,
    )
    assert resp.status_code == 200
    report = resp.json()
    assert report["period"] == "2024년 01월 ~ 2024년 02월"
    assert len(report["rows"]) == 4 + 3
    assert report["rows"][0]["item"] == "Seoul → Incheon"
    assert report["rows"][-1]["item"] == ""
    assert report["total_amount"] == 220000
    assert report["formatted_total"] == "220,000원"
    assert report["departure_stats"][0] == {"departure": "Seoul", "total_count": 4, "total_amount": 180000}


def test_invoice_template_and_recalculate(client: TestClient, auth_headers):
    template = client.get("/reports/invoice/template", params={"title": "January"}, headers=auth_headers).json()
    assert template["title"] == "January"
    assert len(template["rows"]) == 10
    assert template["total_amount"] == 0

    template["rows"][0].update({"item": "Gravel", "count": 3, "unit_price": 12000, "direction": "outbound"})
    template["rows"][1].update({"item": "Sand", "count": 2, "unit_price": 5000})
    recalculated = client.post("/reports/invoice/recalculate", json=template, headers=auth_headers)
    assert recalculated.status_code == 200
    data = recalculated.json()
    assert data["rows"][0]["amount"] == 36000
    assert data["rows"][0]["id"] == template["rows"][0]["id"]
    assert data["total_count"] == 5
    assert data["total_amount"] == 46000

    invalid = dict(template, rows=[{"direction": "sideways"}])
    assert client.post("/reports/invoice/recalculate", json=invalid, headers=auth_headers).status_code == 422


def test_invoice_from_trips(client: TestClient, auth_headers, vehicle):
    add_trips(client, auth_headers, vehicle["id"])
    resp = client.post(
        "/reports/invoice",
        json={
            "start_date": "2024-01-01",
            "end_date": "2024-01-31",
            "direction": "outbound",
            "site_info": {"site_name": "Harbor", "company_name": "ACME"},
        },
        headers=auth_headers,
    )
    assert resp.status_code == 200
    invoice = resp.json()
    assert invoice["title"] == "2024년 01월 청구서"
    assert invoice["site_info"]["site_name"] == "Harbor"
    assert [row["date"] for row in invoice["rows"]] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert {row["direction"] for row in invoice["rows"]} == {"outbound"}
    assert invoice["total_count"] == 4
    assert invoice["total_amount"] == 170000


def test_reports_only_include_own_trips(client: TestClient, auth_headers, other_headers, vehicle):
    add_trips(client, auth_headers, vehicle["id"])
    resp = client.post(
        "/reports/monthly",
        json={"start_date": "2024-01-01", "end_date": "2024-12-31"},
        headers=other_headers,
    )
    assert resp.json()["rows"] == []
    assert resp.json()["total_amount"] == 0


def test_saved_reports(client: TestClient, auth_headers, other_headers):
    payload = {
        "title": "January daily",
        "type": "daily",
        "settings": {"start_date": "2024-01-01", "end_date": "2024-01-31"},
        "data": {"total": 10},
    }
    created = client.post("/reports/saved", json=payload, headers=auth_headers)
    assert created.status_code == 201
    report_id = created.json()["id"]
    assert created.json()["editable_rows"] is None

    client.post("/reports/saved", json={**payload, "type": "invoice", "title": "Invoice"}, headers=auth_headers)
    daily = client.get("/reports/saved", params={"type": "daily"}, headers=auth_headers).json()
    assert [item["title"] for item in daily] == ["January daily"]

    bad_type = client.post("/reports/saved", json={**payload, "type": "weekly"}, headers=auth_headers)
    assert bad_type.status_code == 422

    updated = client.patch(
        f"/reports/saved/{report_id}",
        json={"editable_rows": [{"id": "r1", "count": 2}], "title": "Renamed"},
        headers=auth_headers,
    )
    assert updated.status_code == 200
    assert updated.json()["title"] == "Renamed"
    assert updated.json()["editable_rows"] == [{"id": "r1", "count": 2}]
    assert updated.json()["settings"] == payload["settings"]

    assert client.get(f"/reports/saved/{report_id}", headers=other_headers).status_code == 404
    assert client.delete(f"/reports/saved/{report_id}", headers=auth_headers).status_code == 204
    assert client.get(f"/reports/saved/{report_id}", headers=auth_headers).status_code == 404


def test_notes_crud_and_ordering(client: TestClient, auth_headers, other_headers):
    first = client.post("/notes", json={"title": "Fuel", "content": [["date", "liters"]]}, headers=auth_headers).json()
    second = client.post("/notes", json={"title": "Tolls"}, headers=auth_headers).json()
    assert second["content"] == []

    client.patch(f"/notes/{first['id']}", json={"content": [["date", "liters"], ["2024-01-01", 40]]}, headers=auth_headers)
    notes = client.get("/notes", headers=auth_headers).json()
    assert [note["id"] for note in notes] == [first["id"], second["id"]]
    assert notes[0]["content"][1] == ["2024-01-01", 40]

    assert client.get("/notes", headers=other_headers).json() == []
    assert client.patch(f"/notes/{first['id']}", json={"title": "x"}, headers=other_headers).status_code == 404
    assert client.patch(f"/notes/{first['id']}", json={"title": " "}, headers=auth_headers).status_code == 400
    assert client.delete(f"/notes/{second['id']}", headers=auth_headers).status_code == 204
    assert [note["id"] for note in client.get("/notes", headers=auth_headers).json()] == [first["id"]]
    assert isinstance(dt.datetime.fromisoformat(notes[0]["updated_at"]), dt.datetime)


def test_invoice_recalculation_rejects_unbounded_values(client: TestClient, auth_headers):
    template = client.get("/reports/invoice/template", headers=auth_headers).json()
    template["rows"][0].update({"count": 10**20, "unit_price": 1})
    assert client.post("/reports/invoice/recalculate", json=template, headers=auth_headers).status_code == 422

    raw = '{"title": "x", "rows": [{"count": 1, "unit_price": 1e309}]}'
    headers = {**auth_headers, "Content-Type": "application/json"}
    assert client.post("/reports/invoice/recalculate", content=raw, headers=headers).status_code == 422
