import threading
from contextlib import contextmanager
from datetime import date, timedelta
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import sessionmaker

from pharmacy_inventory.core.locks import KeyedLockRegistry
from pharmacy_inventory.db.base import Base
from pharmacy_inventory.models.lot import InventoryLot
from pharmacy_inventory.models.movement import MOVEMENT_EXIT
from pharmacy_inventory.repositories.sql import SqlInventoryStore
from pharmacy_inventory.services.catalog_service import create_medication
from pharmacy_inventory.services.dispense_service import register_exit
from pharmacy_inventory.services.errors import InsufficientStockError
from pharmacy_inventory.services.receipt_service import ReceiptData, apply_receipt, edit_entry

TODAY = date.today()


@pytest.fixture()
def session_factory(tmp_path):
    # A file database gives every thread its own connection.
    engine = create_engine(
        f"sqlite:///{tmp_path / 'inventory.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@contextmanager
def _open_store(session_factory):
    db = session_factory()
    try:
        yield SqlInventoryStore(db)
    finally:
        db.close()


def _receipt(lot_id: str, quantity, days: int = 30, key: str = "MED-1") -> ReceiptData:
    return ReceiptData(
        medication_key=key,
        lot_id=lot_id,
        quantity=Decimal(str(quantity)),
        unit_cost=Decimal("10.00"),
        expiry_date=TODAY + timedelta(days=days),
        responsible="Ana Torres",
    )


def _withdraw(store, quantity, locks: KeyedLockRegistry | None = None):
    kwargs = {"locks": locks} if locks is not None else {}
    return register_exit(
        store,
        medication_key="MED-1",
        quantity=Decimal(str(quantity)),
        reason="waste",
        responsible="Ana Torres",
        **kwargs,
    )


def _all_lots(store) -> list[InventoryLot]:
    return list(store.db.execute(select(InventoryLot)).scalars().all())


def test_concurrent_exits_never_oversell(session_factory):
    workers, per_exit, initial = 8, 3, 10
    with _open_store(session_factory) as store:
        create_medication(store, key="MED-1", description="Paracetamol", presentation="Tablet 500 mg")
        apply_receipt(store, _receipt("A", initial, days=10))

    locks = KeyedLockRegistry()
    barrier = threading.Barrier(workers)
    outcomes: list[str] = []
    outcomes_lock = threading.Lock()

    def worker():
        with _open_store(session_factory) as store:
            barrier.wait(timeout=10)
            try:
                _withdraw(store, per_exit, locks=locks)
                outcome = "ok"
            except InsufficientStockError:
                outcome = "insufficient"
            except Exception as exc:  # surfaced through the assertion below
                outcome = repr(exc)
        with outcomes_lock:
            outcomes.append(outcome)

    threads = [threading.Thread(target=worker) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)
    assert not any(thread.is_alive() for thread in threads)

    succeeded = initial // per_exit
    assert sorted(outcomes) == ["insufficient"] * (workers - succeeded) + ["ok"] * succeeded

    with _open_store(session_factory) as store:
        lot = store.lots.get("MED-1", "A")
        assert lot.stock == Decimal(initial - succeeded * per_exit)
        assert lot.stock >= 0
        exits = store.movements.search(movement_type=MOVEMENT_EXIT, start=None, end=None, limit=50)
        assert len(exits) == succeeded
        assert sum(exit_.quantity for exit_ in exits) == Decimal(succeeded * per_exit)


# ("receive", lot_id, quantity, days_to_expiry)
# ("exit", quantity, accepted)
# ("edit", receipt_index, new_quantity, accepted)
STOCK_SEQUENCES = {
    "refused_exit_then_corrected_receipt": [
        ("receive", "A", 10, 10),
        ("receive", "B", 5, 40),
        ("exit", 7, True),
        ("exit", 20, False),
        ("edit", 0, 12, True),
        ("exit", 8, True),
    ],
    "edit_refused_after_full_dispense": [
        ("receive", "A", 5, 10),
        ("exit", 5, True),
        ("edit", 0, 1, False),
        ("exit", 1, False),
    ],
    "repeat_receipts_on_one_lot": [
        ("receive", "A", 4, 10),
        ("receive", "A", 4, 10),
        ("exit", 3, True),
        ("edit", 1, 10, True),
        ("exit", 15, False),
        ("exit", 11, True),
    ],
    "edits_on_untouched_and_partly_used_lots": [
        ("receive", "A", 6, 10),
        ("receive", "B", 6, 40),
        ("exit", 4, True),
        ("edit", 0, 3, False),
        ("edit", 1, 2, True),
        ("exit", 4, True),
        ("exit", 1, False),
    ],
    "fractional_quantities": [
        ("receive", "A", "2.5", 10),
        ("exit", "0.75", True),
        ("exit", "1.75", True),
        ("exit", "0.001", False),
    ],
}


@pytest.mark.parametrize("steps", list(STOCK_SEQUENCES.values()), ids=list(STOCK_SEQUENCES.keys()))
def test_total_stock_equals_receipts_minus_withdrawals(store, steps):
    create_medication(store, key="MED-1", description="Paracetamol", presentation="Tablet 500 mg")
    receipts: list[dict] = []
    withdrawn = Decimal("0")

    for step in steps:
        action = step[0]
        if action == "receive":
            _, lot_id, quantity, days = step
            movement = apply_receipt(store, _receipt(lot_id, quantity, days))
            receipts.append(
                {"id": movement.id, "lot_id": lot_id, "days": days, "quantity": Decimal(str(quantity))}
            )
        elif action == "exit":
            _, quantity, accepted = step
            if accepted:
                _withdraw(store, quantity)
                withdrawn += Decimal(str(quantity))
            else:
                with pytest.raises(InsufficientStockError):
                    _withdraw(store, quantity)
        else:
            _, index, quantity, accepted = step
            entry = receipts[index]
            corrected = _receipt(entry["lot_id"], quantity, entry["days"])
            if accepted:
                edit_entry(store, entry["id"], corrected)
                entry["quantity"] = Decimal(str(quantity))
            else:
                with pytest.raises(InsufficientStockError):
                    edit_entry(store, entry["id"], corrected)

        received = sum((entry["quantity"] for entry in receipts), Decimal("0"))
        total = store.lots.stock_totals().get("MED-1", Decimal("0"))
        assert total == received - withdrawn, step
        assert all(lot.stock >= 0 for lot in _all_lots(store)), step


class _InterleavingLocks(KeyedLockRegistry):
    """Records every key set requested and runs `before_first_hold` ahead of the first one."""

    def __init__(self, before_first_hold):
        super().__init__()
        self.requested: list[set[str]] = []
        self._before_first_hold = before_first_hold

    @contextmanager
    def hold(self, *keys: str):
        if not self.requested:
            self._before_first_hold()
        self.requested.append(set(keys))
        with super().hold(*keys):
            yield


def test_edit_relocks_when_entry_moves_to_another_medication(session_factory):
    with _open_store(session_factory) as store:
        create_medication(store, key="MED-1", description="Paracetamol", presentation="Tablet 500 mg")
        create_medication(store, key="MED-2", description="Ibuprofen", presentation="Tablet 400 mg")
        movement_id = apply_receipt(store, _receipt("L-1", 50)).id

    def move_entry_to_other_medication():
        with _open_store(session_factory) as other:
            edit_entry(other, movement_id, _receipt("L-1", 100, key="MED-2"), locks=KeyedLockRegistry())

    locks = _InterleavingLocks(move_entry_to_other_medication)
    with _open_store(session_factory) as store:
        result = edit_entry(store, movement_id, _receipt("L-1", 60, key="MED-1"), locks=locks)
        assert result.movement.medication_key == "MED-1"
        assert result.reversal_skipped is False

    # First attempt locked only MED-1; the retry covers the medication the entry now belongs to.
    assert locks.requested == [{"MED-1"}, {"MED-1", "MED-2"}]

    with _open_store(session_factory) as store:
        assert store.lots.get("MED-1", "L-1").stock == Decimal("60")
        assert store.lots.get("MED-2", "L-1").stock == Decimal("0")
        audit_rows = store.audit.list_for_target("movement", movement_id)
        assert sorted(row.metadata_json["current"]["medication_key"] for row in audit_rows) == ["MED-1", "MED-2"]
