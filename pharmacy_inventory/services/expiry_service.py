import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum

from pharmacy_inventory.core.config import settings
from pharmacy_inventory.repositories.base import InventoryStore


class Semaphore(str, Enum):
    EXPIRED = "expired"
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"


@dataclass(frozen=True)
class ExpiryReportRow:
    medication_key: str
    description: str
    presentation: str
    lot_id: str
    stock: Decimal
    expiry_date: date
    days_remaining: int
    semaphore: Semaphore


def days_remaining(expiry_date: date, today: date) -> int:
    delta = expiry_date - today
    return math.ceil(delta.total_seconds() / 86400)


def classify_expiry(
    expiry_date: date,
    today: date,
    *,
    red_days: int | None = None,
    yellow_days: int | None = None,
) -> Semaphore:
    red_limit = settings.expiry_red_days if red_days is None else red_days
    yellow_limit = settings.expiry_yellow_days if yellow_days is None else yellow_days

    remaining = days_remaining(expiry_date, today)
    if remaining <= 0:
        return Semaphore.EXPIRED
    if remaining <= red_limit:
        return Semaphore.RED
    if remaining <= yellow_limit:
        return Semaphore.YELLOW
    return Semaphore.GREEN


def build_expiry_report(store: InventoryStore, *, today: date | None = None) -> list[ExpiryReportRow]:
    """Lots with stock, soonest expiry first. Zero-stock lots are left out."""
    as_of = today or date.today()
    lots = store.lots.list_all_available()
    catalog = store.catalog.medications_by_key(sorted({lot.medication_key for lot in lots}))

    rows: list[ExpiryReportRow] = []
    for lot in lots:
        medication = catalog.get(lot.medication_key)
        rows.append(
            ExpiryReportRow(
                medication_key=lot.medication_key,
                description=medication.description if medication else "N/A",
                presentation=medication.presentation if medication else "N/A",
                lot_id=lot.lot_id,
                stock=lot.stock,
                expiry_date=lot.expiry_date,
                days_remaining=days_remaining(lot.expiry_date, as_of),
                semaphore=classify_expiry(lot.expiry_date, as_of),
            )
        )
    return rows
