from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from pharmacy_inventory.services.catalog_service import create_medication, create_staff
from pharmacy_inventory.services.dispense_service import register_exit
from pharmacy_inventory.services.errors import InventoryValidationError, NotFoundError
from pharmacy_inventory.services.pdf_export_service import (
    build_text_pdf,
    history_table_lines,
    render_history_pdf,
)
from pharmacy_inventory.services.receipt_service import ReceiptData, apply_receipt
from pharmacy_inventory.services.report_service import (
    HistoryFilters,
    fefo_lots,
    global_inventory,
    movement_detail,
    movement_history,
)

DAY_ONE = datetime(2026, 10, 18, 23, 30, tzinfo=timezone.utc)
DAY_TWO = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)


def _receive(store, *, lot_id: str, quantity: int, days: int, now: datetime, key: str = "MED-1"):
    return apply_receipt(
        store,
        ReceiptData(
            medication_key=key,
            lot_id=lot_id,
            quantity=Decimal(quantity),
            unit_cost=Decimal("4.00"),
            expiry_date=now.date() + timedelta(days=days),
            responsible="Ana Torres",
        ),
        now=now,
    )


@pytest.fixture()
def history_store(store):
    create_medication(store, key="MED-1", description="Paracetamol", presentation="Tablet 500 mg")
    create_staff(store, staff_id="EMP-7", name="Ana Torres", position="Pharmacist")
    _receive(store, lot_id="A", quantity=5, days=10, now=DAY_ONE)
    _receive(store, lot_id="B", quantity=10, days=40, now=DAY_ONE)
    register_exit(
        store,
        medication_key="MED-1",
        quantity=8,
        reason="waste",
        responsible="Ana Torres",
        now=DAY_TWO,
    )
    return store


def test_history_is_newest_first_with_exit_lot_breakdown(history_store):
    rows = movement_history(history_store, HistoryFilters())

    assert [row.movement.movement_type for row in rows] == ["exit", "entry", "entry"]
    assert rows[0].affected_lots == "A (5), B (3)"
    assert rows[0].reason_label == "waste"
    assert rows[1].reason_label == "Entry (receipt)"
    assert rows[0].description == "Paracetamol"


def test_history_filters_by_type_and_inclusive_dates(history_store):
    exits = movement_history(history_store, HistoryFilters(movement_type="exit"))
    assert len(exits) == 1

    first_day = movement_history(
        history_store,
        HistoryFilters(start_date=date(2026, 10, 18), end_date=date(2026, 10, 18)),
    )
    assert [row.movement.movement_type for row in first_day] == ["entry", "entry"]

    second_day = movement_history(history_store, HistoryFilters(start_date=date(2026, 10, 19)))
    assert [row.movement.movement_type for row in second_day] == ["exit"]


def test_history_respects_limit(history_store):
    rows = movement_history(history_store, HistoryFilters(), limit=2)

    assert len(rows) == 2
    assert rows[0].movement.movement_type == "exit"


def test_history_rejects_bad_filters(history_store):
    with pytest.raises(InventoryValidationError):
        movement_history(history_store, HistoryFilters(movement_type="transfer"))
    with pytest.raises(InventoryValidationError):
        movement_history(
            history_store,
            HistoryFilters(start_date=date(2026, 10, 20), end_date=date(2026, 10, 19)),
        )


def test_global_inventory_and_fefo_lots(history_store):
    totals = global_inventory(history_store)
    assert [(row.medication_key, row.total_stock) for row in totals] == [("MED-1", Decimal("7"))]

    lots = fefo_lots(history_store, "MED-1")
    assert [(lot.lot_id, lot.stock) for lot in lots] == [("B", Decimal("7"))]

    with pytest.raises(InventoryValidationError):
        fefo_lots(history_store, "  ")
    with pytest.raises(NotFoundError):
        fefo_lots(history_store, "MED-404")


def test_movement_detail_resolves_catalog_and_staff(history_store):
    exit_row = movement_history(history_store, HistoryFilters(movement_type="exit"))[0]

    detail = movement_detail(history_store, exit_row.movement.id)

    assert detail.description == "Paracetamol"
    assert detail.unit == "mg"
    assert detail.responsible_staff_id == "EMP-7"
    assert [allocation.lot_id for allocation in detail.allocations] == ["A", "B"]

    with pytest.raises(NotFoundError):
        movement_detail(history_store, "missing-id")


def test_history_table_lines_align_columns(history_store):
    rows = movement_history(history_store, HistoryFilters())

    header, body = history_table_lines(rows)

    assert header[0].startswith("Type   Date       Key")
    assert set(header[1]) == {"-"}
    assert body[0].startswith("Exit   19/10/2026 MED-1")
    assert "Qty: 8, Reason: waste" in body[0]
    assert any("Lot: A, Qty: 5" in line for line in body)


def test_build_text_pdf_paginates_and_escapes():
    lines = [f"row {index} (value)" for index in range(150)]

    pdf = build_text_pdf(
        title="Inventory Traceability and Movements Report",
        lines=lines,
        generated_at=DAY_TWO,
        lines_per_page=60,
    )

    assert pdf.startswith(b"%PDF-1.4")
    assert pdf.rstrip().endswith(b"%%EOF")
    assert b"/Count 3" in pdf
    assert b"(Page 3 of 3) Tj" in pdf
    assert b"(row 0 \\(value\\)) Tj" in pdf
    assert b"(row 149 \\(value\\)) Tj" in pdf


def test_render_history_pdf_handles_empty_results():
    pdf = render_history_pdf([], HistoryFilters(movement_type="entry"), generated_at=DAY_TWO)

    assert pdf.startswith(b"%PDF")
    assert b"/Count 1" in pdf
    assert b"No movements match the selected filters." in pdf
    assert b"Filter: type=entry, period=start to end" in pdf
