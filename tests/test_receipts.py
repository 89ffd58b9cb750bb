from datetime import date, timedelta
from decimal import Decimal

import pytest

from pharmacy_inventory.services.catalog_service import create_medication
from pharmacy_inventory.services.dispense_service import register_exit
from pharmacy_inventory.services.errors import (
    InsufficientStockError,
    InventoryValidationError,
    InvalidQuantityError,
    NotFoundError,
)
from pharmacy_inventory.services.receipt_service import ReceiptData, apply_receipt, edit_entry

EXPIRY = date.today() + timedelta(days=200)


def _receipt(**overrides) -> ReceiptData:
    fields = {
        "medication_key": "MED-1",
        "lot_id": "L-1",
        "quantity": Decimal("100"),
        "unit_cost": Decimal("12.50"),
        "expiry_date": EXPIRY,
        "responsible": "Ana Torres",
        "supplier": "Distribuidora Norte",
        "invoice": "F-10023",
    }
    fields.update(overrides)
    return ReceiptData(**fields)


@pytest.fixture()
def seeded_store(store):
    create_medication(store, key="MED-1", description="Paracetamol", presentation="Tablet 500 mg")
    create_medication(store, key="MED-2", description="Ibuprofen", presentation="Tablet 400 mg")
    return store


def _dispense(store, quantity, key: str = "MED-1"):
    return register_exit(
        store,
        medication_key=key,
        quantity=quantity,
        reason="waste",
        responsible="Ana Torres",
    )


def test_identical_receipts_accumulate(seeded_store):
    first = apply_receipt(seeded_store, _receipt(quantity=Decimal("10")))
    second = apply_receipt(seeded_store, _receipt(quantity=Decimal("10")))

    assert first.id != second.id
    assert seeded_store.lots.get("MED-1", "L-1").stock == Decimal("20")


def test_repeat_receipt_overwrites_cost_and_expiry(seeded_store):
    apply_receipt(seeded_store, _receipt(quantity=Decimal("10")))
    later_expiry = EXPIRY + timedelta(days=30)
    apply_receipt(
        seeded_store,
        _receipt(quantity=Decimal("5"), unit_cost=Decimal("14.00"), expiry_date=later_expiry),
    )

    lot = seeded_store.lots.get("MED-1", "L-1")
    assert lot.stock == Decimal("15")
    assert lot.unit_cost == Decimal("14.00")
    assert lot.expiry_date == later_expiry


def test_receipt_requires_catalogued_medication_and_positive_quantity(seeded_store):
    with pytest.raises(NotFoundError):
        apply_receipt(seeded_store, _receipt(medication_key="MED-404"))
    with pytest.raises(InvalidQuantityError):
        apply_receipt(seeded_store, _receipt(quantity=Decimal("0")))
    with pytest.raises(InventoryValidationError):
        apply_receipt(seeded_store, _receipt(unit_cost=Decimal("-1")))
    with pytest.raises(InventoryValidationError):
        apply_receipt(seeded_store, _receipt(lot_id="   "))
    with pytest.raises(InvalidQuantityError):
        apply_receipt(seeded_store, _receipt(quantity=Decimal("1e30")))
    with pytest.raises(InventoryValidationError) as exc_info:
        apply_receipt(seeded_store, _receipt(unit_cost=Decimal("1e30")))
    assert exc_info.value.details[0]["field"] == "unit_cost"

    assert seeded_store.lots.get("MED-1", "L-1") is None


def test_edit_lowers_lot_stock_by_the_difference(seeded_store):
    movement = apply_receipt(seeded_store, _receipt())

    result = edit_entry(seeded_store, movement.id, _receipt(quantity=Decimal("60")))

    assert result.reversal_skipped is False
    assert result.movement.quantity == Decimal("60")
    assert result.movement.updated_at is not None
    assert seeded_store.lots.get("MED-1", "L-1").stock == Decimal("60")


def test_edit_after_partial_dispense_keeps_dispensed_units(seeded_store):
    movement = apply_receipt(seeded_store, _receipt())
    _dispense(seeded_store, 30)

    edit_entry(seeded_store, movement.id, _receipt(quantity=Decimal("60")))

    assert seeded_store.lots.get("MED-1", "L-1").stock == Decimal("30")


def test_edit_refused_when_lot_would_go_negative(seeded_store):
    movement = apply_receipt(seeded_store, _receipt())
    _dispense(seeded_store, 80)

    with pytest.raises(InsufficientStockError) as exc_info:
        edit_entry(seeded_store, movement.id, _receipt(quantity=Decimal("10"), lot_id="L-9"))

    assert exc_info.value.lot_id == "L-1"
    assert exc_info.value.available == Decimal("20")
    assert seeded_store.lots.get("MED-1", "L-1").stock == Decimal("20")
    assert seeded_store.lots.get("MED-1", "L-9") is None
    assert seeded_store.movements.get(movement.id).quantity == Decimal("100")
    assert seeded_store.audit.list_for_target("movement", movement.id) == []


def test_edit_moves_stock_to_another_lot(seeded_store):
    movement = apply_receipt(seeded_store, _receipt())

    edit_entry(seeded_store, movement.id, _receipt(lot_id="L-2"))

    assert seeded_store.lots.get("MED-1", "L-1").stock == Decimal("0")
    assert seeded_store.lots.get("MED-1", "L-2").stock == Decimal("100")
    assert [lot.lot_id for lot in seeded_store.lots.list_available("MED-1")] == ["L-2"]


def test_edit_moves_stock_to_another_medication(seeded_store):
    movement = apply_receipt(seeded_store, _receipt())

    result = edit_entry(seeded_store, movement.id, _receipt(medication_key="MED-2"))

    assert result.movement.medication_key == "MED-2"
    assert seeded_store.lots.get("MED-1", "L-1").stock == Decimal("0")
    assert seeded_store.lots.get("MED-2", "L-1").stock == Decimal("100")


def test_edit_skips_reversal_when_original_lot_is_gone(seeded_store):
    movement = apply_receipt(seeded_store, _receipt())
    seeded_store.db.delete(seeded_store.lots.get("MED-1", "L-1"))
    seeded_store.db.commit()

    result = edit_entry(seeded_store, movement.id, _receipt(quantity=Decimal("60")))

    assert result.reversal_skipped is True
    assert seeded_store.lots.get("MED-1", "L-1").stock == Decimal("60")
    audit_rows = seeded_store.audit.list_for_target("movement", movement.id)
    assert len(audit_rows) == 1
    assert audit_rows[0].metadata_json["reversal_skipped"] is True


def test_edit_writes_audit_trail(seeded_store):
    movement = apply_receipt(seeded_store, _receipt())

    edit_entry(
        seeded_store,
        movement.id,
        _receipt(quantity=Decimal("60"), responsible="Luis Gomez"),
    )

    audit_rows = seeded_store.audit.list_for_target("movement", movement.id)
    assert len(audit_rows) == 1
    event = audit_rows[0]
    assert event.action == "movement.entry.update"
    assert event.actor == "Luis Gomez"
    assert Decimal(event.metadata_json["previous"]["quantity"]) == Decimal("100")
    assert Decimal(event.metadata_json["current"]["quantity"]) == Decimal("60")
    assert event.metadata_json["reversal_skipped"] is False


def test_edit_rejects_exit_and_unknown_ids(seeded_store):
    apply_receipt(seeded_store, _receipt())
    exit_result = _dispense(seeded_store, 1)

    with pytest.raises(NotFoundError):
        edit_entry(seeded_store, exit_result.movement.id, _receipt())
    with pytest.raises(NotFoundError):
        edit_entry(seeded_store, "missing-id", _receipt())
