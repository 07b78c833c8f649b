from datetime import date, timedelta

import pytest

from app.services import AlertService, MovementService, ReportService


def deliver(db, user, movement):
    for status in ("approved", "in_transit", "delivered"):
        MovementService.update_status(db, movement.id, status, user)


def test_inventory_report(db, make_drug):
    make_drug(batch_no="A", quantity=100, price="2.00")
    make_drug(batch_no="B", quantity=0, price="4.00", location="city-hospital")

    report = ReportService.get_inventory_report(db)
    assert report["summary"]["total_items"] == 2
    assert report["summary"]["total_value"] == pytest.approx(200.0)
    assert report["summary"]["out_of_stock"] == 1

    filtered = ReportService.get_inventory_report(db, location="city-hospital")
    assert [item.batch_no for item in filtered["items"]] == ["B"]

    future = ReportService.get_inventory_report(db, start_date=date.today() + timedelta(days=2))
    assert future["summary"]["total_items"] == 0


def test_expiry_report_buckets(db, make_drug):
    today = date.today()
    old = today - timedelta(days=400)
    make_drug(batch_no="gone", manufacture_date=old, expiry_date=today - timedelta(days=3), price="1.00")
    make_drug(batch_no="crit", expiry_date=today + timedelta(days=5), price="1.00")
    make_drug(batch_no="warn", expiry_date=today + timedelta(days=25), price="1.00")
    make_drug(batch_no="later", expiry_date=today + timedelta(days=60), price="1.00")
    make_drug(batch_no="fine", expiry_date=today + timedelta(days=300), price="1.00")

    report = ReportService.get_expiry_report(db, days=90)

    summary = report["summary"]
    assert summary["total"] == 4
    assert (summary["expired"], summary["critical"], summary["warning"], summary["upcoming"]) == (1, 1, 1, 1)
    assert summary["total_value_at_risk"] == pytest.approx(400.0)
    assert [d.batch_no for d in report["categories"]["critical"]] == ["crit"]


def test_movement_report(db, users, make_drug, make_movement):
    drug = make_drug(quantity=500)
    first = make_movement(drug, quantity=10)
    make_movement(drug, quantity=10, to_location="mobile-unit")
    MovementService.update_status(db, first.id, "cancelled", users["admin"])

    report = ReportService.get_movement_report(db)
    assert report["summary"]["total"] == 2
    assert report["summary"]["cancelled"] == 1
    assert report["summary"]["pending"] == 1

    to_unit = ReportService.get_movement_report(db, to_location="mobile-unit")
    assert len(to_unit["items"]) == 1


def test_consumption_report_counts_delivered_only(db, users, make_drug, make_movement):
    amox = make_drug(quantity=500)
    insulin = make_drug(name="Insulin", batch_no="INS-1", quantity=500)
    deliver(db, users["warehouse"], make_movement(amox, quantity=40))
    deliver(db, users["warehouse"], make_movement(amox, quantity=20))
    deliver(db, users["warehouse"], make_movement(insulin, quantity=50))
    make_movement(insulin, quantity=100)

    report = ReportService.get_consumption_report(db)

    rows = report["consumption_by_drug"]
    assert [(row["drug"].name, row["total_quantity"], row["movements"]) for row in rows] == [
        (amox.name, 60, 2),
        ("Insulin", 50, 1),
    ]
    assert report["summary"] == {"total_movements": 3, "total_quantity_moved": 110, "unique_drugs": 2}

    later = date.today() + timedelta(days=2)
    assert ReportService.get_consumption_report(db, start_date=later)["consumption_by_drug"] == []


def test_dashboard(db, users, make_drug, make_movement):
    drug = make_drug(quantity=0)
    make_drug(batch_no="OK", quantity=200)
    AlertService.detect(db, drug)
    stocked = make_drug(batch_no="MV", quantity=100)
    make_movement(stocked, quantity=10, priority="urgent")

    stats = ReportService.get_dashboard_stats(db)

    assert stats["inventory"]["total_drugs"] == 3
    assert stats["inventory"]["out_of_stock"] == 1
    assert stats["movements"] == {
        "total": 1, "pending": 1, "approved": 0, "in_transit": 0, "delivered": 0, "cancelled": 0,
    }
    # one low-stock alert plus the urgent movement alert
    assert stats["alerts"]["critical"] == 2
    assert stats["alerts"]["total"] == 2
