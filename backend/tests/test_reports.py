from __future__ import annotations

import datetime as dt
import itertools
from types import SimpleNamespace

from triplog import reports


def make_trip(trip_id, day, departure, destination, unit_price, count=1, vehicle_id=1, memo=None):
    return SimpleNamespace(
        id=trip_id,
        date=day,
        departure=departure,
        destination=destination,
        unit_price=unit_price,
        count=count,
        total_amount=unit_price * count,
        vehicle_id=vehicle_id,
        driver_name=None,
        memo=memo,
    )


VEHICLES = [
    SimpleNamespace(id=1, license_plate="12가3456", name="Truck"),
    SimpleNamespace(id=2, license_plate="34나7890", name=""),
]


def test_period_labels_per_locale():
    start, end = dt.date(2024, 1, 5), dt.date(2024, 1, 20)
    assert reports.format_daily_period(start, start) == "2024년 01월 05일"
    assert reports.format_daily_period(start, end) == "2024년 01월 05일 ~ 01월 20일"
    assert reports.format_daily_period(start, end, "de-DE") == "05.01.2024 - 20.01."
    assert reports.format_monthly_period(start, end) == "2024년 01월"
    assert reports.format_monthly_period(start, dt.date(2024, 3, 1)) == "2024년 01월 ~ 2024년 03월"


def test_monthly_period_compares_year_and_month():
    label = reports.format_monthly_period(dt.date(2023, 5, 1), dt.date(2024, 5, 31), "en-US")
    assert label == "May 2023 - May 2024"


def test_format_amount():
    assert reports.format_amount(1234567) == "1,234,567원"
    assert reports.format_amount(1234.6, "de-DE") == "1.235 €"
    assert reports.format_amount(0, "en-US") == "$0"


def test_unknown_locale_falls_back_to_default():
    assert reports.format_date(dt.date(2024, 2, 3), "xx-XX") == "2024년 02월 03일"


def test_vehicle_label_and_route_item():
    assert reports.vehicle_label(VEHICLES[0]) == "12가3456 (Truck)"
    assert reports.vehicle_label(VEHICLES[1]) == "34나7890"
    assert reports.route_item("A", "B") == "A → B"


def test_daily_report_rows_and_groups():
    trips = [
        make_trip(3, dt.date(2024, 1, 3), "beta", "Zeta", 100, 2),
        make_trip(1, dt.date(2024, 1, 1), "Alpha", "Yard", 50, 1, vehicle_id=2),
        make_trip(2, dt.date(2024, 1, 2), "Alpha", "Depot", 70, 3),
        make_trip(4, dt.date(2024, 2, 1), "Alpha", "Depot", 70, 1),
    ]
    report = reports.generate_daily_report(trips, VEHICLES, dt.date(2024, 1, 1), dt.date(2024, 1, 31))
    assert report.period == "2024년 01월 01일 ~ 01월 31일"
    assert report.vehicle_name == "전체 차량"
    assert [row.trip_id for row in report.rows] == [1, 2, 3]
    assert report.rows[0].vehicle_number == "34나7890"
    assert report.rows[1].month == 1 and report.rows[1].day == 2
    assert report.total_count == 6
    assert report.monthly_total == 50 + 210 + 200

    assert [group.departure for group in report.groups] == ["Alpha", "beta"]
    alpha = report.groups[0]
    assert [line.destination for line in alpha.destinations] == ["Depot", "Yard"]
    assert alpha.total_count == 4
    assert alpha.total_amount == 260


def test_daily_report_vehicle_and_filter_label():
    trips = [
        make_trip(1, dt.date(2024, 1, 1), "Seoul", "Busan", 100),
        make_trip(2, dt.date(2024, 1, 1), "Seoul", "Incheon", 100, vehicle_id=2),
    ]
    report = reports.generate_daily_report(
        trips,
        VEHICLES,
        dt.date(2024, 1, 1),
        dt.date(2024, 1, 1),
        vehicle_id=1,
        departure_filter="seoul",
        locale="en-US",
    )
    assert report.period == "Jan 01, 2024"
    assert report.vehicle_name == "12가3456 (Truck) (Departure: seoul)"
    assert [row.trip_id for row in report.rows] == [1]


def test_daily_report_without_matches():
    report = reports.generate_daily_report([], VEHICLES, dt.date(2024, 1, 1), dt.date(2024, 1, 2))
    assert report.period == ""
    assert report.vehicle_name == "데이터 없음"
    assert report.rows == []
    assert report.monthly_total == 0


def test_monthly_report_rows_blank_rows_and_stats():
    trips = [
        make_trip(7, dt.date(2024, 1, 2), "A", "B", 100, 2),
        make_trip(8, dt.date(2024, 1, 2), "C", "B", 500, 1),
        make_trip(9, dt.date(2024, 1, 1), "A", "D", 10, 1),
    ]
    report = reports.generate_monthly_report(trips, blank_rows=3)
    assert report.period == "2024년 01월"
    assert [row.id for row in report.rows[:3]] == ["9-0", "7-0", "8-1"]
    assert report.rows[1].item == "A → B"
    assert len(report.rows) == 6
    blank = report.rows[-1]
    assert blank.id.startswith("empty-")
    assert blank.count == 0 and blank.total_amount == 0
    assert report.total_amount == 710
    assert [stat.departure for stat in report.departure_stats] == ["C", "A"]
    assert report.departure_stats[1].total_count == 3


def test_monthly_report_without_trips_is_empty():
    report = reports.generate_monthly_report([])
    assert report.period == ""
    assert report.rows == []


def test_recalculate_row():
    row = reports.MonthlyReportRow(id="x", count=4, unit_price=2500, total_amount=1)
    updated = reports.recalculate_row(row)
    assert updated.total_amount == 10000
    assert row.total_amount == 1


def test_empty_invoice_template():
    invoice = reports.create_empty_invoice("2024년 01월 청구서", rows=10)
    assert len(invoice.rows) == 10
    assert len({row.id for row in invoice.rows}) == 10
    assert invoice.total_amount == 0
    assert reports.default_invoice_title(dt.date(2024, 1, 9)) == "2024년 01월 청구서"


def test_recalculate_invoice_totals():
    invoice = reports.create_empty_invoice("Invoice", rows=2)
    invoice.rows[0].count = 3
    invoice.rows[0].unit_price = 1000
    invoice.rows[1].count = 1
    invoice.rows[1].unit_price = 250
    updated = reports.recalculate_invoice(invoice)
    assert [row.amount for row in updated.rows] == [3000, 250]
    assert updated.total_count == 4
    assert updated.total_amount == 3250


def test_invoice_from_trips_and_dict():
    trips = [
        make_trip(2, dt.date(2024, 1, 5), "A", "B", 100, 2, memo="late"),
        make_trip(1, dt.date(2024, 1, 1), "C", "D", 50, 1),
    ]
    invoice = reports.invoice_from_trips(trips, "Invoice", direction="outbound")
    assert [row.id for row in invoice.rows] == ["trip-1", "trip-2"]
    assert invoice.rows[1].memo == "late"
    assert all(row.direction == "outbound" for row in invoice.rows)
    assert invoice.total_count == 3
    assert invoice.total_amount == 250

    parsed = reports.invoice_from_dict(
        {"title": "Manual", "site_info": {"site_name": "Site"}, "rows": [{"item": "x", "count": 2, "unit_price": 5}]}
    )
    assert parsed.site_info.site_name == "Site"
    assert parsed.rows[0].id.startswith("row-")
    assert reports.recalculate_invoice(parsed).total_amount == 10


def test_reports_ignore_input_order_and_keep_input_intact():
    trips = [
        make_trip(1, dt.date(2024, 1, 3), "beta", "Zeta", 100, 2),
        make_trip(2, dt.date(2024, 1, 1), "Alpha", "Yard", 50, 1, vehicle_id=2),
        make_trip(3, dt.date(2024, 1, 2), "Alpha", "Depot", 70, 3),
        make_trip(4, dt.date(2024, 1, 2), "Alpha", "Yard", 20, 1),
    ]
    start, end = dt.date(2024, 1, 1), dt.date(2024, 1, 31)
    expected = reports.generate_daily_report(trips, VEHICLES, start, end).groups
    for ordering in itertools.permutations(trips):
        report = reports.generate_daily_report(list(ordering), VEHICLES, start, end)
        assert report.groups == expected
        assert report.monthly_total == 50 + 210 + 200 + 20

    snapshot = [dict(vars(trip)) for trip in trips]
    order = [trip.id for trip in trips]
    reports.generate_daily_report(trips, VEHICLES, start, end, departure_filter="alpha")
    reports.generate_monthly_report(trips)
    reports.invoice_from_trips(trips, "Invoice")
    assert [trip.id for trip in trips] == order
    assert [dict(vars(trip)) for trip in trips] == snapshot


def test_monthly_departure_stats_ties_keep_first_occurrence():
    trips = [
        make_trip(1, dt.date(2024, 1, 1), "North", "A", 100),
        make_trip(2, dt.date(2024, 1, 2), "South", "A", 100),
        make_trip(3, dt.date(2024, 1, 3), "East", "A", 300),
    ]
    report = reports.generate_monthly_report(trips, blank_rows=0)
    assert [stat.departure for stat in report.departure_stats] == ["East", "North", "South"]

    swapped = reports.generate_monthly_report([trips[1], trips[0], trips[2]], blank_rows=0)
    assert [stat.departure for stat in swapped.departure_stats] == ["East", "South", "North"]
