from datetime import date

from pydantic import BaseModel


class InventoryItemOut(BaseModel):
    medication_key: str
    description: str
    presentation: str
    unit: str
    total_stock: float


class FefoLotOut(BaseModel):
    lot_id: str
    expiry_date: date
    stock: float
    unit_cost: float


class ExpiryReportItemOut(BaseModel):
    medication_key: str
    description: str
    presentation: str
    lot_id: str
    stock: float
    expiry_date: date
    days_remaining: int
    semaphore: str
