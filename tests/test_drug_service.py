import re
from datetime import date, timedelta

import pytest

from app.core.exceptions import NotFoundError, ValidationError
from app.models import AuditLog, Drug, generate_reference
from app.schemas.drug import DrugUpdate
from app.services import DrugService
from app.services.qr_service import encode_qr_payload
from app.services.realtime import ALL_ROOM, manager


def test_create_assigns_code_and_qr(db, make_drug):
    drug = make_drug()

    assert re.fullmatch(r"DRG-[0-9A-Z]+-[0-9A-Z]{4}", drug.drug_code)
    assert drug.qr_code.startswith("data:image/png;base64,")
    assert drug.is_active is True
    audit = db.query(AuditLog).filter(AuditLog.record_id == str(drug.id)).one()
    assert audit.action == "INSERT"
    assert audit.after_data["quantity"] == 100


def test_references_are_unique():
    codes = {generate_reference("MOV") for _ in range(200)}
    assert len(codes) == 200


def test_qr_payload_is_deterministic(make_drug):
    drug = make_drug()
    fields = drug.qr_fields()

    assert set(fields) == {"drugId", "name", "batchNo", "expiryDate", "location"}
    assert encode_qr_payload(fields) == encode_qr_payload(drug.qr_fields())
    assert fields["expiryDate"] == drug.expiry_date.isoformat()


@pytest.mark.parametrize("quantity, status", [
    (0, "out-of-stock"),
    (1, "low-stock"),
    (50, "low-stock"),
    (51, "in-stock"),
    (999, "in-stock"),
    (1000, "overstocked"),
])
def test_stock_status(make_drug, quantity, status):
    assert make_drug(quantity=quantity).stock_status == status


def test_stock_status_filter_matches_property(db, make_drug):
    for i, quantity in enumerate((0, 10, 200, 2000)):
        make_drug(batch_no=f"B-{i}", quantity=quantity)

    for status in ("out-of-stock", "low-stock", "in-stock", "overstocked"):
        drugs, total = DrugService.get_drugs(db, status=status)
        assert total == 1
        assert drugs[0].stock_status == status


def test_days_until_expiry(make_drug):
    assert make_drug(expiry_date=date.today() + timedelta(days=12)).days_until_expiry == 12


def test_list_filters_sorting_and_pages(db, users, make_drug):
    make_drug(name="Paracetamol", batch_no="PCM-1", category="painkillers", quantity=300)
    make_drug(name="Insulin", batch_no="INS-1", category="diabetes", quantity=80, location="city-hospital")
    gone = make_drug(name="Ibuprofen", batch_no="IBU-1", category="painkillers", quantity=150)
    DrugService.delete_drug(db, gone.id, users["admin"])

    drugs, total = DrugService.get_drugs(db, category="painkillers")
    assert total == 1 and drugs[0].name == "Paracetamol"

    drugs, total = DrugService.get_drugs(db, location="city-hospital")
    assert [d.name for d in drugs] == ["Insulin"]

    drugs, _ = DrugService.get_drugs(db, search="ins-")
    assert [d.name for d in drugs] == ["Insulin"]

    drugs, total = DrugService.get_drugs(db, sort_by="quantity", order="asc", per_page=1, page=2)
    assert total == 2
    assert [d.name for d in drugs] == ["Paracetamol"]


def test_list_rejects_unknown_sort_or_status(db):
    with pytest.raises(ValidationError):
        DrugService.get_drugs(db, sort_by="hashed_password")
    with pytest.raises(ValidationError):
        DrugService.get_drugs(db, status="plenty")


def test_update_is_audited_and_detects(db, users, make_drug):
    drug = make_drug(quantity=100)
    drug = DrugService.update_drug(db, drug.id, DrugUpdate(quantity=20, price="3.10"), users["warehouse"])

    assert drug.quantity == 20
    update = db.query(AuditLog).filter(AuditLog.action == "UPDATE").one()
    assert update.before_data["quantity"] == 100
    assert update.after_data["quantity"] == 20
    assert update.performed_by == users["warehouse"].id
    assert len(drug.alerts) == 1


def test_update_broadcasts_stock_level(db, users, make_drug, monkeypatch):
    events = []
    monkeypatch.setattr(manager, "emit", lambda event, payload, rooms=(ALL_ROOM,): events.append((event, payload)))
    drug = make_drug(quantity=100)

    DrugService.update_drug(db, drug.id, DrugUpdate(quantity=0), users["warehouse"])

    stock = [payload for event, payload in events if event == "stockUpdate"]
    assert stock == [{"drugId": drug.id, "quantity": 0, "stockStatus": "out-of-stock"}]


def test_update_regenerates_qr_on_identity_change(db, users, make_drug):
    drug = make_drug()
    original = drug.qr_code

    drug = DrugService.update_drug(db, drug.id, DrugUpdate(description="Keep dry"), users["admin"])
    assert drug.qr_code == original

    drug = DrugService.update_drug(db, drug.id, DrugUpdate(batch_no="AMX-2026-02"), users["admin"])
    assert drug.qr_code != original


def test_update_rejects_invalid_values(db, users, make_drug):
    drug = make_drug(quantity=100)

    with pytest.raises(ValidationError):
        DrugService.update_drug(db, drug.id, DrugUpdate(name=None), users["admin"])
    with pytest.raises(ValidationError):
        DrugService.update_drug(
            db, drug.id, DrugUpdate(quantity=5, expiry_date=drug.manufacture_date), users["admin"]
        )
    with pytest.raises(ValidationError):
        DrugService.update_drug(db, drug.id, DrugUpdate(min_threshold=2000), users["admin"])

    db.refresh(drug)
    assert drug.quantity == 100
    assert db.query(AuditLog).filter(AuditLog.action == "UPDATE").count() == 0


def test_soft_delete(db, users, make_drug):
    drug = make_drug()
    DrugService.delete_drug(db, drug.id, users["admin"])

    assert db.get(Drug, drug.id).is_active is False
    assert DrugService.get_drugs(db)[1] == 0
    assert DrugService.get_drug(db, drug.id).id == drug.id
    with pytest.raises(NotFoundError):
        DrugService.get_drug(db, drug.id, include_inactive=False)
    with pytest.raises(NotFoundError):
        DrugService.get_drug_by_qr(db, drug.drug_code, drug.batch_no)
    with pytest.raises(NotFoundError):
        DrugService.update_drug(db, drug.id, DrugUpdate(quantity=1), users["admin"])
    with pytest.raises(NotFoundError):
        DrugService.delete_drug(db, drug.id, users["admin"])


def test_lookup_by_qr(db, make_drug):
    drug = make_drug()
    assert DrugService.get_drug_by_qr(db, drug.drug_code, drug.batch_no).id == drug.id
    with pytest.raises(NotFoundError):
        DrugService.get_drug_by_qr(db, drug.drug_code, "OTHER")


def test_inventory_stats(db, make_drug):
    make_drug(batch_no="A", quantity=100, price="2.00")
    make_drug(batch_no="B", quantity=10, price="1.00", category="vitamins")
    make_drug(batch_no="C", quantity=0, price="5.00", location="mobile-unit",
              expiry_date=date.today() + timedelta(days=10))

    stats = DrugService.get_inventory_stats(db)

    assert stats["total_drugs"] == 3
    assert stats["total_quantity"] == 110
    assert stats["total_value"] == pytest.approx(210.0)
    assert stats["low_stock"] == 1
    assert stats["out_of_stock"] == 1
    assert stats["expiring_soon"] == 1
    assert stats["expired"] == 0
    assert stats["by_category"]["vitamins"] == {"count": 1, "quantity": 10}
    assert stats["by_location"]["central-warehouse"]["count"] == 2
