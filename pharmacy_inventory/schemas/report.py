from datetime import date, datetime

from pydantic import BaseModel


class HistoryDetailsOut(BaseModel):
    quantity: float
    reason: str
    affected_lots: str
    expiry_date: date | None = None


class HistoryItemOut(BaseModel):
    id: str
    movement_type: str
    medication_key: str
    description: str
    presentation: str
    occurred_at: datetime
    responsible: str
    details: HistoryDetailsOut


class HistoryListOut(BaseModel):
    items: list[HistoryItemOut]
    count: int
    limit: int
